# Table merging for order spreadsheets.
# Version: 1.0.0
# Folds the shipping plan and refreshed exports into the order table.

import logging
from dataclasses import dataclass, field
from datetime import date

import pandas as pd

from .order_loader import (
    COL_COMPANY_MODEL, COL_CUSTOMER_MODEL, COL_CUSTOMER_NAME, COL_DELIVERY_TIME, COL_NOTES,
    COL_PLANNED_QUANTITY, COL_QUANTITY, COL_SHIPPED, cell_text, parse_date, parse_int,
    row_order_id
)


logger = logging.getLogger(__name__)

SHIPPING_PLAN_NOTE = "发货计划优先"

# Cell values produced by broken spreadsheet formulas; never copied over real data.
# Error codes start with "#"; the markers may appear anywhere in the value.
ERROR_PREFIX = "#"
ERROR_MARKERS: tuple[str, ...] = ("VALUE", "ERROR", "错误", "公式错误")

# CellChange.column for an appended row
NEW_ROW = -1


@dataclass(frozen=True)
class ShippingPlanEntry:
    """One shipping plan line, keyed by company model."""
    company_model: str
    customer_model: str
    customer_name: str
    delivery_date: date
    quantity: int


@dataclass(frozen=True)
class CellChange:
    """A cell rewritten (or a row appended) by smart_merge.

    Attributes:
        row: Row position in the updated table.
        column: Column position, or NEW_ROW for an appended row.
        original_value: Value before the merge.
        new_value: Value after the merge.
    """
    row: int
    column: int
    original_value: str
    new_value: str


@dataclass
class MergeResult:
    original: pd.DataFrame
    updated: pd.DataFrame
    changes: list[CellChange] = field(default_factory=list)

    @property
    def cell_changes(self) -> list[CellChange]:
        return [c for c in self.changes if c.column != NEW_ROW]

    @property
    def new_rows(self) -> list[CellChange]:
        return [c for c in self.changes if c.column == NEW_ROW]


@dataclass
class OrderRemovalResult:
    original: pd.DataFrame
    filtered: pd.DataFrame
    removed: pd.DataFrame

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def remaining_count(self) -> int:
        return len(self.filtered)


def _shipping_plan_entries(shipping_plan: pd.DataFrame) -> dict[str, ShippingPlanEntry]:
    """Company model to plan entry; rows without a model or delivery date are ignored."""
    entries = {}
    for _, row in shipping_plan.iterrows():
        company_model = cell_text(row, COL_COMPANY_MODEL)
        delivery_date = parse_date(row.get(COL_DELIVERY_TIME))
        if not company_model or delivery_date is None:
            continue
        entries[company_model] = ShippingPlanEntry(
            company_model=company_model,
            customer_model=cell_text(row, COL_CUSTOMER_MODEL),
            customer_name=cell_text(row, COL_CUSTOMER_NAME),
            delivery_date=delivery_date,
            quantity=parse_int(row.get(COL_QUANTITY), 0),
        )
    return entries


def merge_shipping_plan(order_table: pd.DataFrame, shipping_plan: pd.DataFrame) -> pd.DataFrame:
    """Annotate order rows whose company model appears in the shipping plan.

    Matched rows get the plan's customer name and a note
    "发货计划优先: <date>" appended to their notes. A customer-name
    column is added when the order table has none.

    Args:
        order_table: Order table.
        shipping_plan: Shipping plan table.

    Returns:
        New merged table; the inputs are not modified.
    """
    merged = order_table.copy()
    if COL_CUSTOMER_NAME not in merged.columns:
        merged[COL_CUSTOMER_NAME] = ""
    if COL_NOTES not in merged.columns:
        merged[COL_NOTES] = ""

    entries = _shipping_plan_entries(shipping_plan)
    matched = 0

    for index, row in merged.iterrows():
        entry = entries.get(cell_text(row, COL_COMPANY_MODEL))
        if entry is None:
            continue

        matched += 1
        merged.at[index, COL_CUSTOMER_NAME] = entry.customer_name
        note = f"{SHIPPING_PLAN_NOTE}: {entry.delivery_date.isoformat()}"
        current = cell_text(row, COL_NOTES)
        merged.at[index, COL_NOTES] = f"{current}; {note}" if current else note

    logger.info("Shipping plan matched %d of %d order rows", matched, len(merged))
    return merged


def _is_error_value(value: str) -> bool:
    return value.startswith(ERROR_PREFIX) or any(marker in value for marker in ERROR_MARKERS)


def _cell(value) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value)


def smart_merge(base: pd.DataFrame, update: pd.DataFrame) -> MergeResult:
    """Refresh a base table from a newer export.

    Rows are matched on the first column. A matched cell takes the
    update's value only when that value is non-blank, differs, and is
    not a spreadsheet error. Update rows with unknown keys are appended.

    Args:
        base: Table to refresh.
        update: Newer export with the same column layout.

    Returns:
        MergeResult with the refreshed table and every change made.
    """
    updated = base.copy().reset_index(drop=True)
    changes = []

    if base.columns.empty:
        return MergeResult(original=base, updated=updated, changes=changes)

    update_rows = {}
    for _, row in update.iterrows():
        update_rows.setdefault(_cell(row.iloc[0]), row)

    shared_columns = [c for c in base.columns if c in update.columns]
    base_keys = set()

    for position in range(len(updated)):
        key = _cell(updated.iat[position, 0])
        base_keys.add(key)
        update_row = update_rows.get(key)
        if update_row is None:
            continue

        for column in shared_columns:
            col_idx = updated.columns.get_loc(column)
            original = _cell(updated.iat[position, col_idx])
            new_value = _cell(update_row[column])
            if not new_value.strip() or new_value == original or _is_error_value(new_value):
                continue
            updated.iat[position, col_idx] = new_value
            changes.append(CellChange(position, col_idx, original, new_value))

    appended = []
    for key, row in update_rows.items():
        if key in base_keys:
            continue
        appended.append({c: _cell(row[c]) if c in update.columns else "" for c in base.columns})
        changes.append(CellChange(len(updated) + len(appended) - 1, NEW_ROW, "", key))

    if appended:
        updated = pd.concat([updated, pd.DataFrame(appended, columns=base.columns)], ignore_index=True)

    logger.info(
        "Merged tables: %d cells updated, %d rows added",
        len(changes) - len(appended), len(appended)
    )
    return MergeResult(original=base, updated=updated, changes=changes)


def remove_rows_by_order_ids(table: pd.DataFrame, order_ids) -> OrderRemovalResult:
    """Drop the rows of the given orders."""
    ids = {str(i) for i in order_ids}
    keep = [
        row_order_id(row, position + 2) not in ids
        for position, (_, row) in enumerate(table.iterrows())
    ]
    return _split(table, keep)


def remove_completed_orders(table: pd.DataFrame) -> OrderRemovalResult:
    """Drop rows whose planned quantity has been shipped in full."""
    keep = []
    for _, row in table.iterrows():
        planned = parse_int(row.get(COL_PLANNED_QUANTITY), 0)
        shipped = parse_int(row.get(COL_SHIPPED), 0)
        keep.append(not (planned > 0 and planned == shipped))
    return _split(table, keep)


def _split(table: pd.DataFrame, keep: list[bool]) -> OrderRemovalResult:
    mask = pd.Series(keep, index=table.index, dtype=bool)
    return OrderRemovalResult(
        original=table,
        filtered=table[mask].reset_index(drop=True),
        removed=table[~mask].reset_index(drop=True),
    )


def changes_summary(result: MergeResult, limit: int = 10) -> str:
    """Short text report of a merge."""
    if not result.changes:
        return "No changes"

    lines = [
        f"Cells updated: {len(result.cell_changes)}",
        f"Rows added: {len(result.new_rows)}",
    ]
    for change in result.cell_changes[:limit]:
        lines.append(
            f"  row {change.row + 1}, column {change.column + 1}: "
            f"'{change.original_value}' -> '{change.new_value}'"
        )
    if len(result.cell_changes) > limit:
        lines.append(f"  ... {len(result.cell_changes) - limit} more")
    return "\n".join(lines)
