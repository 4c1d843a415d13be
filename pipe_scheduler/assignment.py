# Machine Assignment Engine.
# Version: 1.0.0
# Maps an order's diameter pair to a (machine, mold) pair via the rule table.

import logging

from .constants import (
    DEFAULT_CHANGEOVER_HOURS, DEFAULT_PIPE_CHANGE_HOURS, OUTER_DIAMETER_FALLBACK_BANDS
)
from .models import MachineAssignment, MachineRule, OrderPriority, ProductionOrder


logger = logging.getLogger(__name__)

# Cost weights
SETUP_COST_PER_HOUR = 10.0
PRODUCTION_COST_PER_DAY = 5.0

PRIORITY_COST_ADJUSTMENT: dict[OrderPriority, float] = {
    OrderPriority.URGENT: -50.0,
    OrderPriority.HIGH: -20.0,
    OrderPriority.MEDIUM: 0.0,
    OrderPriority.LOW: 10.0,
}


def assign_machine(
    order: ProductionOrder,
    rules: list[MachineRule]
) -> MachineAssignment | None:
    """Choose a machine and mold for an order.

    Lookup order:
    1. Rules whose outer diameters include the order's outer diameter.
       Among them the first rule whose inner diameters include the
       order's inner diameter (or 0, meaning unconstrained) wins,
       otherwise the first outer match.
    2. If no rule lists the outer diameter, the fallback band table
       picks a machine and that machine's first rule is used.

    Args:
        order: Order to place.
        rules: Machine rule table, searched in order.

    Returns:
        MachineAssignment, or None when neither path matches.
    """
    rule = find_matching_rule(order, rules)
    if rule is not None:
        return calculate_assignment(order, rule)

    machine_id = fallback_machine_for_outer_diameter(order.outer_diameter)
    if machine_id is None:
        return None

    for rule in rules:
        if rule.machine_id == machine_id:
            return calculate_assignment(order, rule)

    # Band matched but the rule table has no entry for that machine
    logger.debug(
        "Order %s: fallback machine %s has no rule, using default changeover",
        order.order_id, machine_id
    )
    return _build_assignment(
        order, machine_id, "", DEFAULT_CHANGEOVER_HOURS, DEFAULT_PIPE_CHANGE_HOURS
    )


def find_matching_rule(
    order: ProductionOrder,
    rules: list[MachineRule]
) -> MachineRule | None:
    """First rule matching the order's diameters exactly, or None."""
    outer_matches = [r for r in rules if order.outer_diameter in r.outer_diameters]
    if not outer_matches:
        return None

    for rule in outer_matches:
        inners = rule.inner_diameters
        if order.inner_diameter in inners or 0.0 in inners:
            return rule

    return outer_matches[0]


def fallback_machine_for_outer_diameter(outer_diameter: float) -> str | None:
    """Machine id from the outer-diameter band table, or None if no band covers it."""
    for low, high, machine_id in OUTER_DIAMETER_FALLBACK_BANDS:
        if low <= outer_diameter <= high:
            return machine_id
    return None


def calculate_assignment(order: ProductionOrder, rule: MachineRule) -> MachineAssignment:
    """Build the assignment for placing an order with a given rule."""
    return _build_assignment(
        order, rule.machine_id, rule.mold_id, rule.changeover_hours, rule.pipe_change_hours
    )


def _build_assignment(
    order: ProductionOrder,
    machine_id: str,
    mold_id: str,
    changeover_hours: int,
    pipe_change_hours: int
) -> MachineAssignment:
    total_setup = changeover_hours + pipe_change_hours
    return MachineAssignment(
        machine_id=machine_id,
        mold_id=mold_id,
        changeover_hours=changeover_hours,
        pipe_change_hours=pipe_change_hours,
        total_setup_hours=total_setup,
        cost=assignment_cost(order, total_setup),
    )


def assignment_cost(order: ProductionOrder, total_setup_hours: int) -> float:
    """Reporting cost; higher-priority orders score cheaper."""
    return (
        total_setup_hours * SETUP_COST_PER_HOUR
        + order.estimated_production_days() * PRODUCTION_COST_PER_DAY
        + PRIORITY_COST_ADJUSTMENT[order.priority]
    )


def compatible_machine_ids(
    order: ProductionOrder,
    rules: list[MachineRule]
) -> list[str]:
    """Machines that can run an order.

    The assigned machine comes first, followed by the machines its rule
    declares interchangeable. Empty when the order cannot be assigned.
    """
    assignment = assign_machine(order, rules)
    if assignment is None:
        return []

    machine_ids = [assignment.machine_id]
    for rule in rules:
        if rule.machine_id == assignment.machine_id and rule.mold_id == assignment.mold_id:
            for other in rule.interchangeable_with:
                if other not in machine_ids:
                    machine_ids.append(other)
            break
    return machine_ids
