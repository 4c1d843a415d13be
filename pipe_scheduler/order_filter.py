# Order Filter and Prioritizer.
# Version: 1.0.0
# Decides which orders are scheduled, which get urgent priority, and how much to make.

import logging
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd

from .models import OrderPriority, OrderStatus, ProductionOrder
from .order_loader import (
    COL_CONTRACT_NUMBER, COL_CUSTOMER_MODEL, COL_CUSTOMER_NAME, COL_DELIVERY_TIME,
    COL_ORDER_ID, cell_text, parse_date, row_order_id
)


logger = logging.getLogger(__name__)

# Note markers that take an order out of scheduling
NOTE_COMPLETED = "已完成"
NOTE_REMANUFACTURE = "改制"
EXCLUDED_NOTE_MARKERS: tuple[str, ...] = (NOTE_COMPLETED, NOTE_REMANUFACTURE)

# Columns that only the shipping plan fills in; any non-blank value marks the row as planned
SHIPPING_PLAN_COLUMNS: tuple[str, ...] = (
    COL_CONTRACT_NUMBER, "合同号", "签订客户", COL_CUSTOMER_NAME,
    COL_CUSTOMER_MODEL, "业务员", COL_DELIVERY_TIME,
)

# Exclusion reasons
REASON_NOTES = "notes mark the order completed or remanufactured"
REASON_NO_OUTER_DIAMETER = "outer diameter is not positive"
REASON_INJECTION_DONE = "injection completed covers the unshipped quantity"
REASON_NO_DAILY_PRODUCTION = "daily production is not positive"


@dataclass
class FilterResult:
    """Partition of orders into schedulable and excluded.

    Attributes:
        schedulable: Orders that take part in scheduling.
        excluded: Orders kept out of scheduling, retained for reporting.
        reasons: Order id to the reasons it was excluded.
    """
    schedulable: list[ProductionOrder] = field(default_factory=list)
    excluded: list[ProductionOrder] = field(default_factory=list)
    reasons: dict[str, list[str]] = field(default_factory=dict)


def exclusion_reasons(order: ProductionOrder) -> list[str]:
    """Every reason an order cannot be scheduled; empty if it can."""
    reasons = []
    if any(marker in order.notes for marker in EXCLUDED_NOTE_MARKERS):
        reasons.append(REASON_NOTES)
    if order.outer_diameter <= 0:
        reasons.append(REASON_NO_OUTER_DIAMETER)
    if order.injection_completed is not None and order.injection_completed >= order.unshipped_quantity:
        reasons.append(REASON_INJECTION_DONE)
    if order.daily_production <= 0:
        reasons.append(REASON_NO_DAILY_PRODUCTION)
    return reasons


def is_excluded(order: ProductionOrder) -> bool:
    return bool(exclusion_reasons(order))


def filter_orders(orders: list[ProductionOrder]) -> FilterResult:
    """Split orders into schedulable and excluded.

    Args:
        orders: Decoded orders.

    Returns:
        FilterResult; every input order lands in exactly one list.
    """
    result = FilterResult()
    for order in orders:
        reasons = exclusion_reasons(order)
        if reasons:
            result.excluded.append(order)
            result.reasons[order.order_id] = reasons
        else:
            result.schedulable.append(order)

    logger.info(
        "Filtered %d orders: %d schedulable, %d excluded",
        len(orders), len(result.schedulable), len(result.excluded)
    )
    return result


def shipping_plan_order_ids(shipping_plan: pd.DataFrame | None) -> set[str]:
    """Order ids listed in a shipping plan table."""
    if shipping_plan is None or shipping_plan.empty:
        return set()

    ids = set()
    for position, (_, row) in enumerate(shipping_plan.iterrows()):
        if COL_ORDER_ID in shipping_plan.columns:
            order_id = cell_text(row, COL_ORDER_ID)
        else:
            order_id = row_order_id(row, position + 2)
        if order_id:
            ids.add(order_id)
    return ids


def has_shipping_plan_fields(row: pd.Series) -> bool:
    """True when any shipping-plan-only column of the row is filled in."""
    return any(cell_text(row, column) for column in SHIPPING_PLAN_COLUMNS)


def adjust_priority(
    orders: list[ProductionOrder],
    table: pd.DataFrame | None = None,
    shipping_plan: pd.DataFrame | None = None
) -> list[ProductionOrder]:
    """Reclassify priority by shipping-plan membership.

    An order becomes URGENT when its id appears in the shipping plan, or
    when its row in ``table`` carries any shipping-plan field. Every
    other order becomes LOW, whatever priority it had before.

    Args:
        orders: Orders to reclassify.
        table: Order table the orders were decoded from (possibly merged
            with the shipping plan).
        shipping_plan: Optional shipping plan table.

    Returns:
        New orders in the same sequence with priority overwritten.
    """
    planned_ids = shipping_plan_order_ids(shipping_plan)

    if table is not None:
        for position, (_, row) in enumerate(table.iterrows()):
            if has_shipping_plan_fields(row):
                planned_ids.add(row_order_id(row, position + 2))

    adjusted = []
    urgent = 0
    for order in orders:
        if order.order_id in planned_ids:
            adjusted.append(order.with_changes(priority=OrderPriority.URGENT))
            urgent += 1
        else:
            adjusted.append(order.with_changes(priority=OrderPriority.LOW))

    logger.info("Priority adjusted: %d urgent, %d low", urgent, len(orders) - urgent)
    return adjusted


def resolve_scheduled_quantity(order: ProductionOrder) -> int:
    """Quantity to actually produce, given pipe stock on hand.

    - stock covers the unshipped quantity: the full unshipped quantity
    - no stock: unshipped minus injection-completed, floored at 0
    - partial stock: the stock

    Never exceeds the unshipped quantity.
    """
    stock = order.pipe_quantity
    unshipped = order.unshipped_quantity

    if stock >= unshipped:
        return max(0, unshipped)
    if stock <= 0:
        completed = max(0, order.injection_completed or 0)
        return max(0, unshipped - completed)
    return min(stock, unshipped)


class FilterType(Enum):
    """Ad hoc filters over an order list."""
    COMPLETION_STATUS = "COMPLETION_STATUS"
    PRIORITY = "PRIORITY"
    DELIVERY_DATE = "DELIVERY_DATE"
    MACHINE = "MACHINE"
    DIAMETER_RANGE = "DIAMETER_RANGE"
    QUANTITY_RANGE = "QUANTITY_RANGE"


# Accepted FilterCondition values
STATUS_INCOMPLETE = "未完成"
STATUS_COMPLETED = "已完成"
STATUS_IN_PRODUCTION = "生产中"
MACHINE_ALL = "全部"

PRIORITY_LABELS: dict[str, OrderPriority] = {
    "紧急": OrderPriority.URGENT,
    "高": OrderPriority.HIGH,
    "中": OrderPriority.MEDIUM,
    "低": OrderPriority.LOW,
}


@dataclass(frozen=True)
class FilterCondition:
    """One ad hoc filter.

    Attributes:
        type: Which field to filter on.
        value: Filter value; ranges are written "low-high".
    """
    type: FilterType
    value: str


def filter_orders_by_condition(
    orders: list[ProductionOrder],
    condition: FilterCondition
) -> list[ProductionOrder]:
    """Keep the orders matching a condition.

    A value that does not parse (unknown label, bad date, malformed
    range) matches every order.

    Args:
        orders: Orders to filter.
        condition: Filter to apply.

    Returns:
        Matching orders in their original sequence.
    """
    return [order for order in orders if _matches(order, condition)]


def _matches(order: ProductionOrder, condition: FilterCondition) -> bool:
    value = condition.value.strip()

    if condition.type == FilterType.COMPLETION_STATUS:
        if value == STATUS_INCOMPLETE:
            return not order.is_completed() and order.unshipped_quantity > 0
        if value == STATUS_COMPLETED:
            return order.is_completed()
        if value == STATUS_IN_PRODUCTION:
            return order.status == OrderStatus.IN_PRODUCTION
        return True

    if condition.type == FilterType.PRIORITY:
        priority = PRIORITY_LABELS.get(value)
        if priority is None:
            priority = OrderPriority.__members__.get(value.upper())
        return priority is None or order.priority == priority

    if condition.type == FilterType.DELIVERY_DATE:
        target = parse_date(value)
        if target is None:
            return True
        return order.delivery_date is not None and order.delivery_date < target

    if condition.type == FilterType.MACHINE:
        return value == MACHINE_ALL or order.machine_id == value

    if condition.type == FilterType.DIAMETER_RANGE:
        bounds = _parse_range(value)
        if bounds is None:
            return True
        return bounds[0] <= order.outer_diameter <= bounds[1]

    if condition.type == FilterType.QUANTITY_RANGE:
        bounds = _parse_range(value)
        if bounds is None:
            return True
        return bounds[0] <= order.quantity <= bounds[1]

    return True


def _parse_range(text: str) -> tuple[float, float] | None:
    parts = text.split("-")
    if len(parts) != 2:
        return None
    try:
        return float(parts[0]), float(parts[1])
    except ValueError:
        return None
