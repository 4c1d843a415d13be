# Strategy Evaluation and Comparison.
# Version: 1.0.0
# Evaluates and compares results from all scheduling strategies.

from dataclasses import dataclass, field

from .models import OrderPriority, SchedulingResult
from .scheduler import SchedulingStrategy


@dataclass
class PriorityMetrics:
    """Metrics for orders by priority level.

    Attributes:
        scheduled: Number of orders scheduled.
        units_scheduled: Production units scheduled.
        on_time: Scheduled orders finishing by their delivery date.
    """
    scheduled: int = 0
    units_scheduled: int = 0
    on_time: int = 0


@dataclass
class StrategyEvaluation:
    """Complete evaluation of a scheduling strategy result.

    Attributes:
        strategy: Strategy used.
        priority_metrics: Priority to metrics.
        machine_orders: Machine id to number of orders placed on it.
        total_orders_scheduled: Orders placed.
        total_conflicts: Orders not placed.
        total_production_days: Sum of production days.
        utilization_rate: Scheduled output over capacity.
        on_time_delivery_rate: Share of scheduled orders on time.
    """
    strategy: SchedulingStrategy
    priority_metrics: dict[OrderPriority, PriorityMetrics] = field(default_factory=dict)
    machine_orders: dict[str, int] = field(default_factory=dict)
    total_orders_scheduled: int = 0
    total_conflicts: int = 0
    total_production_days: int = 0
    utilization_rate: float = 0.0
    on_time_delivery_rate: float = 0.0

    @property
    def strategy_name(self) -> str:
        names = {
            SchedulingStrategy.CAPACITY_FIRST: "Capacity First",
            SchedulingStrategy.TIME_FIRST: "Time First",
            SchedulingStrategy.ORDER_FIRST: "Order First",
            SchedulingStrategy.BALANCED: "Balanced",
        }
        return names.get(self.strategy, str(self.strategy))


def evaluate_result(result: SchedulingResult) -> StrategyEvaluation:
    """Evaluate a scheduling result.

    Args:
        result: SchedulingResult to evaluate.

    Returns:
        StrategyEvaluation with all metrics.
    """
    evaluation = StrategyEvaluation(
        strategy=SchedulingStrategy(result.strategy),
        total_orders_scheduled=len(result.orders),
        total_conflicts=len(result.conflicts),
        total_production_days=result.total_production_days,
        utilization_rate=result.utilization_rate,
        on_time_delivery_rate=result.on_time_delivery_rate,
    )

    for priority in OrderPriority:
        evaluation.priority_metrics[priority] = PriorityMetrics()

    for order in result.orders:
        pm = evaluation.priority_metrics[order.priority]
        pm.scheduled += 1
        pm.units_scheduled += order.total_units()
        if order.is_on_time():
            pm.on_time += 1

    for machine_id, orders in result.machine_schedule.items():
        evaluation.machine_orders[machine_id] = len(orders)

    return evaluation


def rank_strategies(evaluations: list[StrategyEvaluation]) -> list[StrategyEvaluation]:
    """Order evaluations best first.

    On-time rate descending, then fewer conflicts, then fewer total
    production days. Ties keep their input sequence.
    """
    return sorted(
        evaluations,
        key=lambda e: (-e.on_time_delivery_rate, e.total_conflicts, e.total_production_days)
    )


def compare_strategies(
    evaluations: list[StrategyEvaluation]
) -> dict[str, StrategyEvaluation]:
    """Identify the best strategy per category.

    Returns:
        Dict with keys for each "best" category and the winning evaluation.
    """
    if not evaluations:
        return {}

    comparisons = {}
    comparisons["best_on_time"] = max(evaluations, key=lambda e: e.on_time_delivery_rate)
    comparisons["fewest_conflicts"] = min(evaluations, key=lambda e: e.total_conflicts)
    comparisons["highest_utilization"] = max(evaluations, key=lambda e: e.utilization_rate)
    comparisons["most_urgent_scheduled"] = max(
        evaluations,
        key=lambda e: e.priority_metrics.get(OrderPriority.URGENT, PriorityMetrics()).scheduled
    )
    return comparisons


def generate_evaluation_report(
    evaluations: list[StrategyEvaluation],
    include_comparison: bool = True
) -> str:
    """Generate a text report comparing strategy evaluations.

    Args:
        evaluations: Evaluations to report.
        include_comparison: Whether to include the comparison summary.

    Returns:
        Multi-line report string.
    """
    lines = []
    lines.append("=" * 80)
    lines.append("SCHEDULING STRATEGY EVALUATION REPORT")
    lines.append("=" * 80)
    lines.append("")

    lines.append("SUMMARY:")
    lines.append("-" * 80)
    header = (
        f"{'Strategy':<20} {'Orders':<8} {'Conflicts':<10} "
        f"{'Days':<8} {'Util %':<10} {'On-time %':<10}"
    )
    lines.append(header)
    lines.append("-" * 80)

    for ev in evaluations:
        row = (
            f"{ev.strategy_name:<20} "
            f"{ev.total_orders_scheduled:<8} "
            f"{ev.total_conflicts:<10} "
            f"{ev.total_production_days:<8} "
            f"{ev.utilization_rate * 100:<10.1f} "
            f"{ev.on_time_delivery_rate * 100:<10.1f}"
        )
        lines.append(row)

    lines.append("")
    lines.append("ORDERS BY PRIORITY:")
    lines.append("-" * 80)

    for ev in evaluations:
        lines.append(f"\n{ev.strategy_name}:")
        for priority in OrderPriority:
            pm = ev.priority_metrics.get(priority, PriorityMetrics())
            lines.append(
                f"  {priority.value}: {pm.scheduled} scheduled, "
                f"{pm.units_scheduled} units, {pm.on_time} on time"
            )

    if include_comparison and evaluations:
        lines.append("")
        lines.append("=" * 80)
        lines.append("COMPARISON SUMMARY:")
        lines.append("=" * 80)

        for category, winner in compare_strategies(evaluations).items():
            category_name = category.replace("_", " ").title()
            lines.append(f"  {category_name}: {winner.strategy_name}")

        ranked = rank_strategies(evaluations)
        lines.append(f"  Recommended: {ranked[0].strategy_name}")

    return "\n".join(lines)
