# Order-to-machine scheduler.
# Version: 1.0.0
# Four placement strategies over per-machine timelines, plus run metrics.

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Callable

from .assignment import compatible_machine_ids
from .constants import CHANGEOVER_DAYS
from .models import (
    Machine, MachineRule, OrderPriority, OrderStatus, ProductionOrder,
    SchedulingConstraints, SchedulingResult, SchedulingStatistics
)
from .order_filter import resolve_scheduled_quantity


logger = logging.getLogger(__name__)

# Balanced strategy weights
URGENCY_WINDOW_DAYS = 3
URGENCY_FACTOR = 2.0
PIPE_SUFFICIENT_WEIGHT = 2.0
PIPE_SHORT_WEIGHT = 0.5
PIPE_ARRIVED_WEIGHT = 1.5
PIPE_PENDING_WEIGHT = 0.8

# Weight of the capacity mismatch term in machine scoring
CAPACITY_MISMATCH_WEIGHT = 10.0

# Base period for per-machine utilization in generate_statistics
STATISTICS_BASE_DAYS = 30.0

COMBINED_NOTES_PREFIX = "combined order: "


class SchedulingStrategy(Enum):
    """The four scheduling strategies."""
    CAPACITY_FIRST = "CAPACITY_FIRST"
    TIME_FIRST = "TIME_FIRST"
    ORDER_FIRST = "ORDER_FIRST"
    BALANCED = "BALANCED"


StrategyFunc = Callable[
    [list[ProductionOrder], list[Machine], SchedulingConstraints, list[MachineRule], date],
    SchedulingResult
]


@dataclass
class _Placement:
    """Where and when one order lands."""
    machine: Machine
    start: date
    end: date
    days: int


# =============================================================================
# Ordering helpers
# =============================================================================

def _delivery_key(order: ProductionOrder) -> date:
    return order.delivery_date or date.max


def _readiness_key(order: ProductionOrder, today: date) -> tuple[bool, bool]:
    """Orders with enough pipe first, then orders whose pipe has arrived."""
    return (not order.has_enough_pipe(), not order.is_pipe_arrived(today))


def combine_orders_by_spec(orders: list[ProductionOrder]) -> list[ProductionOrder]:
    """Merge orders sharing (inner, outer, priority) into the first of them.

    The merged order keeps the first order's identity and fields, sums
    the quantity, unshipped, shipped, pipe stock and injection counts,
    and records the absorbed ids in ``combined_ids`` and in its notes.

    Args:
        orders: Orders in placement sequence.

    Returns:
        One order per distinct key, in first-occurrence sequence.
    """
    groups: dict[tuple[float, float, OrderPriority], list[ProductionOrder]] = {}
    for order in orders:
        key = (order.inner_diameter, order.outer_diameter, order.priority)
        groups.setdefault(key, []).append(order)

    combined = []
    for group in groups.values():
        first, rest = group[0], group[1:]
        if not rest:
            combined.append(first)
            continue

        injections = [o.injection_completed for o in group if o.injection_completed is not None]
        combined.append(first.with_changes(
            quantity=sum(o.quantity for o in group),
            unshipped_quantity=sum(o.unshipped_quantity for o in group),
            shipped_quantity=sum(o.shipped_quantity for o in group),
            pipe_quantity=sum(o.pipe_quantity for o in group),
            injection_completed=sum(injections) if injections else None,
            notes=f"{COMBINED_NOTES_PREFIX}{first.order_id} + "
                  f"{', '.join(o.order_id for o in rest)}",
            combined_ids=first.combined_ids + tuple(o.order_id for o in rest),
        ))
        logger.debug("Combined %d orders into %s", len(group), first.order_id)

    return combined


def balanced_weight(order: ProductionOrder, max_quantity: int, today: date) -> float:
    """Composite weight used by the balanced strategy; higher places first."""
    urgency = URGENCY_FACTOR if order.is_due_within(today, URGENCY_WINDOW_DAYS) else 1.0
    pipe = PIPE_SUFFICIENT_WEIGHT if order.has_enough_pipe() else PIPE_SHORT_WEIGHT
    arrival = PIPE_ARRIVED_WEIGHT if order.is_pipe_arrived(today) else PIPE_PENDING_WEIGHT
    quantity_share = order.quantity / (max_quantity if max_quantity > 0 else 1)
    return order.priority.weight * urgency * quantity_share * pipe * arrival


# =============================================================================
# Machine selection
# =============================================================================

def _candidate_machines(
    order: ProductionOrder,
    machines: list[Machine],
    rules: list[MachineRule]
) -> list[Machine]:
    """Pool machines that can physically run an order.

    Empty when the rule table cannot place the order, or when none of the
    machines it names (assigned or interchangeable) are in the pool.
    """
    machine_ids = compatible_machine_ids(order, rules)
    compatible = [m for m in machines if m.id in machine_ids]
    if machine_ids and not compatible:
        logger.warning(
            "Order %s: machines %s not available",
            order.order_id, ", ".join(machine_ids)
        )
    return compatible


def _machine_score(order: ProductionOrder, machine: Machine, available: date, today: date) -> float:
    """Waiting days plus capacity mismatch; lower is better."""
    waiting_days = (available - today).days
    if machine.capacity > 0:
        mismatch = abs(order.daily_production - machine.capacity) / machine.capacity
    else:
        mismatch = 1.0
    return waiting_days + CAPACITY_MISMATCH_WEIGHT * mismatch


def _next_free_day(schedule: list[ProductionOrder], today: date) -> date:
    """Day after the machine's last committed order, never before today."""
    available = today
    for order in schedule:
        if order.end_date is not None and order.end_date >= available:
            available = order.end_date + timedelta(days=1)
    return available


# =============================================================================
# Result assembly
# =============================================================================

def _scheduled_days(order: ProductionOrder) -> int:
    if order.start_date is None or order.end_date is None:
        return 0
    return (order.end_date - order.start_date).days + 1


def calculate_total_production_days(orders: list[ProductionOrder]) -> int:
    return sum(_scheduled_days(o) for o in orders)


def calculate_utilization_rate(
    machine_schedule: dict[str, list[ProductionOrder]],
    machines: list[Machine]
) -> float:
    """Scheduled output (days x daily rate) over total machine capacity."""
    if not machines:
        return 0.0
    total_capacity = sum(m.capacity for m in machines)
    if total_capacity <= 0:
        return 0.0
    used = sum(
        _scheduled_days(o) * o.daily_production
        for orders in machine_schedule.values()
        for o in orders
    )
    return used / total_capacity


def calculate_on_time_delivery_rate(orders: list[ProductionOrder]) -> float:
    """Share of scheduled orders ending by their delivery date."""
    if not orders:
        return 0.0
    on_time = sum(1 for o in orders if o.is_on_time())
    return on_time / len(orders)


def _build_result(
    scheduled: list[ProductionOrder],
    machine_schedule: dict[str, list[ProductionOrder]],
    machines: list[Machine],
    conflicts: list[str],
    strategy: SchedulingStrategy
) -> SchedulingResult:
    return SchedulingResult(
        orders=scheduled,
        machine_schedule=machine_schedule,
        total_production_days=calculate_total_production_days(scheduled),
        utilization_rate=calculate_utilization_rate(machine_schedule, machines),
        on_time_delivery_rate=calculate_on_time_delivery_rate(scheduled),
        conflicts=conflicts,
        strategy=strategy.value,
    )


def _place(order: ProductionOrder, placement: _Placement, quantity: int) -> ProductionOrder:
    return order.with_changes(
        machine_id=placement.machine.id,
        start_date=placement.start,
        end_date=placement.end,
        status=OrderStatus.IN_PRODUCTION,
        quantity=quantity,
        production_days=float(placement.days),
        remaining_days=float(placement.days),
    )


def _unplaceable(order: ProductionOrder) -> str:
    return f"order {order.order_id} could not be placed"


# =============================================================================
# Strategies
# =============================================================================

def capacity_first(
    orders: list[ProductionOrder],
    machines: list[Machine],
    constraints: SchedulingConstraints,
    rules: list[MachineRule],
    today: date
) -> SchedulingResult:
    """Place urgent, stocked, arrived orders first on the earliest free machine.

    Same-spec orders are combined before placement. Each machine keeps a
    cursor; an order starts at its machine's cursor and the cursor then
    moves past the order plus one changeover day.
    """
    ordered = sorted(
        orders,
        key=lambda o: (o.priority.rank, *_readiness_key(o, today), _delivery_key(o))
    )
    ordered = combine_orders_by_spec(ordered)

    cursors = {m.id: today for m in machines}
    machine_schedule: dict[str, list[ProductionOrder]] = {m.id: [] for m in machines}
    scheduled = []
    conflicts = []

    for order in ordered:
        candidates = _candidate_machines(order, machines, rules)
        if not candidates:
            conflicts.append(_unplaceable(order))
            continue

        machine = min(candidates, key=lambda m: cursors[m.id])
        quantity = resolve_scheduled_quantity(order)
        days = order.production_days_for(quantity)
        start = cursors[machine.id]
        end = start + timedelta(days=days - 1)

        placed = _place(order, _Placement(machine, start, end, days), quantity)
        machine_schedule[machine.id].append(placed)
        scheduled.append(placed)
        cursors[machine.id] = end + timedelta(days=CHANGEOVER_DAYS + 1)

    return _build_result(
        scheduled, machine_schedule, machines, conflicts, SchedulingStrategy.CAPACITY_FIRST
    )


def _place_after_last_order(
    ordered: list[ProductionOrder],
    machines: list[Machine],
    constraints: SchedulingConstraints,
    rules: list[MachineRule],
    today: date,
    strategy: SchedulingStrategy,
    quantity_for: Callable[[ProductionOrder], int],
    check_deadline: bool = False
) -> SchedulingResult:
    """Shared placement loop for the strategies without a cursor map.

    Each order starts the day after its machine's last committed order.
    The machine is the compatible one with the lowest score.

    Args:
        ordered: Orders in placement sequence.
        machines: Available machines.
        constraints: Run constraints.
        rules: Machine rule table.
        today: Reference date.
        strategy: Strategy reported in the result.
        quantity_for: Quantity to produce for an order.
        check_deadline: Reject orders that would end after delivery
            (when constraints.respect_deadline is set).
    """
    machine_schedule: dict[str, list[ProductionOrder]] = {m.id: [] for m in machines}
    scheduled = []
    conflicts = []

    for order in ordered:
        candidates = _candidate_machines(order, machines, rules)
        if not candidates:
            conflicts.append(_unplaceable(order))
            continue

        free_days = {m.id: _next_free_day(machine_schedule[m.id], today) for m in candidates}
        machine = min(
            candidates,
            key=lambda m: _machine_score(order, m, free_days[m.id], today)
        )

        quantity = quantity_for(order)
        days = order.production_days_for(quantity)
        start = free_days[machine.id]
        end = start + timedelta(days=days - 1)

        if (
            check_deadline
            and constraints.respect_deadline
            and order.delivery_date is not None
            and end > order.delivery_date
        ):
            conflicts.append(
                f"order {order.order_id} could not be completed by its delivery date "
                f"{order.delivery_date.isoformat()}"
            )
            continue

        placed = _place(order, _Placement(machine, start, end, days), quantity)
        machine_schedule[machine.id].append(placed)
        scheduled.append(placed)

    return _build_result(scheduled, machine_schedule, machines, conflicts, strategy)


def time_first(
    orders: list[ProductionOrder],
    machines: list[Machine],
    constraints: SchedulingConstraints,
    rules: list[MachineRule],
    today: date
) -> SchedulingResult:
    """Earliest delivery first; optionally reject orders that would be late."""
    ordered = sorted(orders, key=lambda o: (_delivery_key(o), *_readiness_key(o, today)))
    return _place_after_last_order(
        ordered, machines, constraints, rules, today,
        SchedulingStrategy.TIME_FIRST,
        quantity_for=lambda o: o.unshipped_quantity,
        check_deadline=True,
    )


def order_first(
    orders: list[ProductionOrder],
    machines: list[Machine],
    constraints: SchedulingConstraints,
    rules: list[MachineRule],
    today: date
) -> SchedulingResult:
    """Shipping-plan (URGENT) orders first, then the rest, each by delivery date."""
    def sort_key(o: ProductionOrder):
        return (_delivery_key(o), *_readiness_key(o, today), -o.unshipped_quantity)

    urgent = sorted((o for o in orders if o.priority == OrderPriority.URGENT), key=sort_key)
    others = sorted((o for o in orders if o.priority != OrderPriority.URGENT), key=sort_key)

    return _place_after_last_order(
        urgent + others, machines, constraints, rules, today,
        SchedulingStrategy.ORDER_FIRST,
        quantity_for=resolve_scheduled_quantity,
    )


def balanced(
    orders: list[ProductionOrder],
    machines: list[Machine],
    constraints: SchedulingConstraints,
    rules: list[MachineRule],
    today: date
) -> SchedulingResult:
    """Highest composite weight first, using the requested quantity as-is."""
    max_quantity = max((o.quantity for o in orders), default=0)
    ordered = sorted(orders, key=lambda o: -balanced_weight(o, max_quantity, today))
    return _place_after_last_order(
        ordered, machines, constraints, rules, today,
        SchedulingStrategy.BALANCED,
        quantity_for=lambda o: o.quantity,
    )


STRATEGY_MAP: dict[SchedulingStrategy, StrategyFunc] = {
    SchedulingStrategy.CAPACITY_FIRST: capacity_first,
    SchedulingStrategy.TIME_FIRST: time_first,
    SchedulingStrategy.ORDER_FIRST: order_first,
    SchedulingStrategy.BALANCED: balanced,
}


# =============================================================================
# Entry points
# =============================================================================

def run_strategy(
    strategy: SchedulingStrategy,
    orders: list[ProductionOrder],
    machines: list[Machine],
    constraints: SchedulingConstraints,
    rules: list[MachineRule],
    today: date
) -> SchedulingResult:
    """Run one strategy as-is over the given orders and machines.

    Raises:
        ValueError: If the strategy is unknown.
    """
    func = STRATEGY_MAP.get(strategy)
    if not func:
        raise ValueError(f"Unknown strategy: {strategy}")
    return func(orders, machines, constraints, rules, today)


def schedule(
    orders: list[ProductionOrder],
    strategy: SchedulingStrategy,
    constraints: SchedulingConstraints,
    machines: list[Machine],
    rules: list[MachineRule],
    today: date | None = None
) -> SchedulingResult:
    """Schedule pending orders on available machines.

    Args:
        orders: Filtered, prioritized orders.
        strategy: Strategy to run.
        constraints: Run constraints.
        machines: Machine pool; unavailable machines are ignored.
        rules: Machine rule table.
        today: Reference date (defaults to today).

    Returns:
        SchedulingResult. Orders that could not be placed are listed in
        its conflicts; nothing is raised for them.
    """
    today = today or date.today()
    available = [m for m in machines if m.is_available]
    pending = [o for o in orders if o.status == OrderStatus.PENDING]

    logger.info(
        "Scheduling %d orders on %d machines with %s",
        len(pending), len(available), strategy.value
    )
    result = run_strategy(strategy, pending, available, constraints, rules, today)
    logger.info(
        "%s: %d scheduled, %d conflicts",
        strategy.value, len(result.orders), len(result.conflicts)
    )
    return result


def run_all_strategies(
    orders: list[ProductionOrder],
    constraints: SchedulingConstraints,
    machines: list[Machine],
    rules: list[MachineRule],
    today: date | None = None
) -> dict[SchedulingStrategy, SchedulingResult]:
    """Run every strategy on the same input.

    Returns:
        Dict mapping strategy to result, in enum order.
    """
    today = today or date.today()
    return {
        strategy: schedule(orders, strategy, constraints, machines, rules, today)
        for strategy in SchedulingStrategy
    }


def generate_statistics(orders: list[ProductionOrder]) -> SchedulingStatistics:
    """Summary counts over a set of orders.

    Per-machine utilization is scheduled production days over a
    30-day base.
    """
    total_quantity = sum(o.quantity for o in orders)
    days = [_scheduled_days(o) or o.estimated_production_days() for o in orders]
    average_days = sum(days) / len(days) if days else 0.0

    machine_days: dict[str, int] = {}
    for order, order_days in zip(orders, days):
        machine_days[order.machine_id] = machine_days.get(order.machine_id, 0) + order_days

    return SchedulingStatistics(
        total_orders=len(orders),
        completed_orders=sum(1 for o in orders if o.status == OrderStatus.COMPLETED),
        pending_orders=sum(1 for o in orders if o.status == OrderStatus.PENDING),
        urgent_orders=sum(1 for o in orders if o.priority == OrderPriority.URGENT),
        total_quantity=total_quantity,
        average_production_days=average_days,
        machine_utilization={
            machine_id: total / STATISTICS_BASE_DAYS
            for machine_id, total in machine_days.items()
        },
    )
