# Scheduling flow orchestration.
# Version: 1.0.0
# Merge -> decode -> filter -> prioritize -> schedule -> plan table, in one call.

import logging
from dataclasses import dataclass
from datetime import date, timedelta

import pandas as pd

from .constants import create_default_machine_rules, create_machines_from_rules
from .models import (
    Machine, MachineRule, ProductionOrder, SchedulingConstraints, SchedulingResult
)
from .order_filter import FilterResult, adjust_priority, filter_orders
from .order_loader import convert_to_orders, row_order_id
from .scheduler import SchedulingStrategy, schedule
from .table_merger import merge_shipping_plan


logger = logging.getLogger(__name__)

# Plan table columns appended to the merged table
PLAN_COL_MACHINE = "排产机台"
PLAN_COL_START = "计划开始时间"
PLAN_COL_END = "计划完成时间"
PLAN_COL_TOTAL_UNITS = "总段数"
PLAN_COL_STATUS = "排产备注"

PLAN_COLUMNS: tuple[str, ...] = (
    PLAN_COL_MACHINE, PLAN_COL_START, PLAN_COL_END, PLAN_COL_TOTAL_UNITS, PLAN_COL_STATUS
)

# Row statuses
STATUS_SCHEDULED = "scheduled"
STATUS_NOT_SCHEDULED = "not scheduled"

# Per-day cell values
DAY_PRODUCTION = "production"
DAY_CHANGEOVER = "changeover"


@dataclass
class SchedulingFlowResult:
    """Everything one flow run produced.

    Attributes:
        merged_table: Order table after the shipping plan merge.
        orders: Every decoded order.
        filter_result: Schedulable/excluded split.
        prioritized_orders: Schedulable orders after priority adjustment.
        scheduling_result: Scheduler output.
        plan_table: Merged table plus plan columns and one column per day.
    """
    merged_table: pd.DataFrame
    orders: list[ProductionOrder]
    filter_result: FilterResult
    prioritized_orders: list[ProductionOrder]
    scheduling_result: SchedulingResult
    plan_table: pd.DataFrame


def run_scheduling_flow(
    order_table: pd.DataFrame,
    shipping_plan: pd.DataFrame | None = None,
    rules: list[MachineRule] | None = None,
    machines: list[Machine] | None = None,
    strategy: SchedulingStrategy | str = SchedulingStrategy.ORDER_FIRST,
    constraints: SchedulingConstraints | None = None,
    today: date | None = None
) -> SchedulingFlowResult:
    """Run the full scheduling pipeline over an order table.

    Args:
        order_table: Order table with Chinese header names.
        shipping_plan: Optional shipping plan table.
        rules: Machine rule table (defaults to the built-in catalogue).
        machines: Machine pool (defaults to one machine per rule machine id).
        strategy: Strategy to run.
        constraints: Run constraints (defaults to SchedulingConstraints()).
        today: Reference date (defaults to today).

    Returns:
        SchedulingFlowResult.
    """
    today = today or date.today()
    strategy = SchedulingStrategy(strategy)
    rules = rules if rules is not None else create_default_machine_rules()
    machines = machines if machines is not None else create_machines_from_rules(rules)
    constraints = constraints or SchedulingConstraints()

    if shipping_plan is not None:
        merged = merge_shipping_plan(order_table, shipping_plan)
    else:
        merged = order_table.copy()

    orders = convert_to_orders(merged, today)
    filter_result = filter_orders(orders)
    prioritized = adjust_priority(filter_result.schedulable, merged, shipping_plan)
    result = schedule(prioritized, strategy, constraints, machines, rules, today)
    plan_table = build_plan_table(merged, result, filter_result, today)

    return SchedulingFlowResult(
        merged_table=merged,
        orders=orders,
        filter_result=filter_result,
        prioritized_orders=prioritized,
        scheduling_result=result,
        plan_table=plan_table,
    )


def _changeover_days(result: SchedulingResult) -> dict[str, list[date]]:
    """Order id to the idle days between it and the next order on its machine."""
    changeovers: dict[str, list[date]] = {}
    for machine_orders in result.machine_schedule.values():
        ordered = sorted(machine_orders, key=lambda o: o.start_date)
        for current, following in zip(ordered, ordered[1:]):
            gap = (following.start_date - current.end_date).days - 1
            if gap > 0:
                changeovers[current.order_id] = [
                    current.end_date + timedelta(days=i + 1) for i in range(gap)
                ]
    return changeovers


def build_plan_table(
    merged: pd.DataFrame,
    result: SchedulingResult,
    filter_result: FilterResult,
    today: date
) -> pd.DataFrame:
    """Flat plan view: one row per input row.

    Adds machine, start, end, total units and status columns, then one
    column per day from ``today`` through the last scheduled end date,
    holding "production", "changeover" or "".

    Args:
        merged: Merged order table.
        result: Scheduler output.
        filter_result: Filter output, for exclusion reasons.
        today: First day column.

    Returns:
        New DataFrame; ``merged`` is not modified.
    """
    scheduled = {o.order_id: o for o in result.orders}
    combined_into = {
        absorbed: o.order_id for o in result.orders for absorbed in o.combined_ids
    }
    changeovers = _changeover_days(result)

    end_dates = [o.end_date for o in result.orders if o.end_date is not None]
    last_day = max(end_dates) if end_dates else None
    days = []
    if last_day is not None:
        days = [today + timedelta(days=i) for i in range((last_day - today).days + 1)]

    plan_rows = []
    for position, (_, row) in enumerate(merged.iterrows()):
        order_id = row_order_id(row, position + 2)
        entry = {column: "" for column in PLAN_COLUMNS}
        entry.update({d.isoformat(): "" for d in days})

        order = scheduled.get(order_id)
        parent = scheduled.get(combined_into.get(order_id, ""))

        if order is not None:
            entry[PLAN_COL_MACHINE] = order.machine_id
            entry[PLAN_COL_START] = order.start_date.isoformat()
            entry[PLAN_COL_END] = order.end_date.isoformat()
            entry[PLAN_COL_TOTAL_UNITS] = str(order.total_units())
            entry[PLAN_COL_STATUS] = STATUS_SCHEDULED
            for d in days:
                if order.start_date <= d <= order.end_date:
                    entry[d.isoformat()] = DAY_PRODUCTION
            for d in changeovers.get(order_id, []):
                if d.isoformat() in entry:
                    entry[d.isoformat()] = DAY_CHANGEOVER
        elif parent is not None:
            entry[PLAN_COL_MACHINE] = parent.machine_id
            entry[PLAN_COL_START] = parent.start_date.isoformat()
            entry[PLAN_COL_END] = parent.end_date.isoformat()
            entry[PLAN_COL_STATUS] = f"combined into {parent.order_id}"
        elif order_id in filter_result.reasons:
            entry[PLAN_COL_STATUS] = "excluded: " + "; ".join(filter_result.reasons[order_id])
        else:
            entry[PLAN_COL_STATUS] = STATUS_NOT_SCHEDULED

        plan_rows.append(entry)

    columns = list(PLAN_COLUMNS) + [d.isoformat() for d in days]
    plan = pd.DataFrame(plan_rows, columns=columns, index=merged.index)

    logger.info(
        "Plan table: %d rows, %d day columns", len(plan), len(days)
    )
    return pd.concat([merged, plan], axis=1)
