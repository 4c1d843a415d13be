# Pipe Production Scheduler - Core Package
# Version: 1.0.0

"""
Order-to-machine scheduler for pipe production.

Decodes order spreadsheets, maps each order's diameters to a machine and
mold through the rule table, filters and prioritizes by shipping plan, and
places orders on per-machine timelines with one of four strategies.
"""

__version__ = "1.0.0"

from .errors import (
    SchedulingError,
    ValidationError,
    ConfigurationError,
    FileLoadError,
)

from .models import (
    OrderPriority,
    OrderStatus,
    ProductionOrder,
    Machine,
    PipeSpecification,
    MachineRule,
    SchedulingConstraints,
    MachineAssignment,
    SchedulingResult,
    SchedulingStatistics,
)

from .spec_parser import (
    parse_pipe_specs,
    parse_from_customer_model,
    exact_match,
    tolerant_match,
    outer_only_match,
)

from .constants import (
    SchedulerConfig,
    create_default_machine_rules,
    create_machines_from_rules,
    default_scheduler_config,
    load_scheduler_config,
    save_scheduler_config,
)

from .assignment import (
    assign_machine,
    compatible_machine_ids,
)

from .order_loader import (
    load_order_table,
    convert_to_orders,
)

from .order_filter import (
    FilterResult,
    FilterType,
    FilterCondition,
    filter_orders,
    adjust_priority,
    resolve_scheduled_quantity,
    filter_orders_by_condition,
)

from .scheduler import (
    SchedulingStrategy,
    schedule,
    run_all_strategies,
    generate_statistics,
)

from .table_merger import (
    MergeResult,
    merge_shipping_plan,
    smart_merge,
    remove_completed_orders,
)

from .flow import (
    SchedulingFlowResult,
    run_scheduling_flow,
)

from .plan_export import (
    build_plan_workbook,
    export_plan_workbook,
)

from .reporting import (
    export_result_to_dict,
    generate_schedule_summary,
    validate_schedule,
)

from .strategy_evaluation import (
    StrategyEvaluation,
    evaluate_result,
    rank_strategies,
    generate_evaluation_report,
)
