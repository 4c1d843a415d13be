# Load production order tables for the scheduling engine.
# Version: 1.0.0
# Reads order spreadsheets into string DataFrames and decodes rows into ProductionOrder.

import logging
import math
from datetime import date, datetime, timedelta
from pathlib import Path

import pandas as pd

from .errors import FileLoadError, ValidationError
from .models import OrderPriority, OrderStatus, ProductionOrder


logger = logging.getLogger(__name__)

# Order table headers
COL_ORDER_ID = "序号"
COL_COMPANY_MODEL = "公司型号"
COL_CUSTOMER_MODEL = "客户型号"
COL_CUSTOMER_NAME = "客户名称"
COL_PLANNED_DELIVERY = "计划发货时间"
COL_PLANNED_QUANTITY = "计划发货数量"
COL_QUANTITY = "数量（支）"
COL_SEGMENTS = "段数"
COL_DELIVERY_PERIOD = "交付期"
COL_INNER_DIAMETER = "内径"
COL_OUTER_DIAMETER = "外径"
COL_DAILY_PRODUCTION = "日产量"
COL_PRODUCTION_DAYS = "生产天数"
COL_REMAINING_DAYS = "剩余天数"
COL_SHIPPED = "已发货数"
COL_UNSHIPPED = "未发数量"
COL_MACHINE = "机台"
COL_PIPE_STATUS = "管子情况"
COL_PIPE_QUANTITY = "管/棒数量"
COL_PIPE_ARRIVAL = "采购回馈（-1管子时间）"
COL_INJECTION_COMPLETED = "注射完成"
COL_NOTES = "备注"

# Shipping plan headers
COL_CONTRACT_NUMBER = "客户合同号"
COL_DELIVERY_TIME = "交货时间"

# Accepted date formats, tried in order
DATE_FORMATS: tuple[str, ...] = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d/%m/%Y")

# Initial priority thresholds (days until planned delivery)
URGENT_WITHIN_DAYS = 3
HIGH_WITHIN_DAYS = 7
MEDIUM_WITHIN_DAYS = 14
LARGE_ORDER_QUANTITY = 1000

SUPPORTED_SUFFIXES = (".xlsx", ".xls", ".csv")


def load_order_table(filepath: str | Path) -> pd.DataFrame:
    """Read an order spreadsheet into a DataFrame of strings.

    Blank cells become empty strings so header lookups never see NaN.

    Args:
        filepath: Path to an .xlsx, .xls or .csv file.

    Returns:
        DataFrame with the sheet's header row as columns.

    Raises:
        FileLoadError: If the file cannot be read.
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()

    if suffix not in SUPPORTED_SUFFIXES:
        raise FileLoadError(
            str(filepath), ValueError(f"Unsupported file type: {suffix or '(none)'}")
        )

    try:
        if suffix == ".csv":
            df = pd.read_csv(filepath, dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(filepath, dtype=str, keep_default_na=False)
    except Exception as e:
        raise FileLoadError(str(filepath), e)

    df.columns = [str(c).strip() for c in df.columns]
    logger.info("Loaded %d rows from %s", len(df), filepath)
    return df.fillna("")


def convert_to_orders(table: pd.DataFrame, today: date | None = None) -> list[ProductionOrder]:
    """Decode every row of an order table.

    Rows that cannot be decoded are logged and skipped; the rest of the
    batch is unaffected.

    Args:
        table: Order table with Chinese header names.
        today: Reference date for the initial priority (defaults to today).

    Returns:
        Orders in table order.
    """
    today = today or date.today()
    orders = []
    skipped = 0

    for position, (_, row) in enumerate(table.iterrows()):
        row_number = position + 2  # 1-indexed, plus header
        try:
            orders.append(parse_order_row(row, row_number, today))
        except ValidationError as e:
            skipped += 1
            logger.warning("Skipping row %d: %s", row_number, e)

    if skipped:
        logger.info("Decoded %d orders, skipped %d rows", len(orders), skipped)
    return orders


def parse_order_row(row: pd.Series, row_number: int, today: date) -> ProductionOrder:
    """Decode one row into a ProductionOrder.

    Unparseable numbers fall back to their defaults and unparseable
    dates to None.

    Args:
        row: Row of the order table.
        row_number: Row number for messages.
        today: Reference date for the initial priority.

    Returns:
        Decoded order.

    Raises:
        ValidationError: If the row is entirely blank.
    """
    if all(_is_blank(v) for v in row.tolist()):
        raise ValidationError(field="row", value="", reason="Row is empty", row=row_number)

    order_id = row_order_id(row, row_number)
    delivery_date = parse_date(row.get(COL_PLANNED_DELIVERY))
    quantity = parse_int(row.get(COL_QUANTITY), 0)
    remaining_days = _parse_float(row.get(COL_REMAINING_DAYS), 0.0)

    injection_raw = row.get(COL_INJECTION_COMPLETED)
    injection_completed = None if _is_blank(injection_raw) else parse_int(injection_raw, None)

    return ProductionOrder(
        order_id=order_id,
        company_model=cell_text(row, COL_COMPANY_MODEL),
        customer_model=cell_text(row, COL_CUSTOMER_MODEL),
        customer_name=cell_text(row, COL_CUSTOMER_NAME),
        delivery_date=delivery_date,
        delivery_period=parse_date(row.get(COL_DELIVERY_PERIOD)),
        planned_quantity=parse_int(row.get(COL_PLANNED_QUANTITY), 0),
        quantity=quantity,
        segments=parse_int(row.get(COL_SEGMENTS), 1),
        inner_diameter=parse_diameter(row.get(COL_INNER_DIAMETER)),
        outer_diameter=parse_diameter(row.get(COL_OUTER_DIAMETER)),
        daily_production=parse_int(row.get(COL_DAILY_PRODUCTION), 0),
        production_days=_parse_float(row.get(COL_PRODUCTION_DAYS), 0.0),
        remaining_days=remaining_days,
        shipped_quantity=parse_int(row.get(COL_SHIPPED), 0),
        unshipped_quantity=parse_int(row.get(COL_UNSHIPPED), 0),
        machine_id=cell_text(row, COL_MACHINE),
        pipe_status=cell_text(row, COL_PIPE_STATUS),
        pipe_quantity=parse_int(row.get(COL_PIPE_QUANTITY), 0),
        pipe_arrival_date=parse_date(row.get(COL_PIPE_ARRIVAL)),
        injection_completed=injection_completed,
        notes=cell_text(row, COL_NOTES),
        priority=initial_priority(delivery_date, remaining_days, quantity, today),
        status=OrderStatus.PENDING,
        row_number=row_number,
    )


def row_order_id(row: pd.Series, row_number: int) -> str:
    """Order id of a row: the id column, else the first cell, else ROW_<n>."""
    order_id = cell_text(row, COL_ORDER_ID)
    if order_id:
        return order_id

    first = row.iloc[0] if len(row) else ""
    if not _is_blank(first):
        return str(first).strip()

    return f"ROW_{row_number - 1}"


def initial_priority(
    delivery_date: date | None,
    remaining_days: float,
    quantity: int,
    today: date
) -> OrderPriority:
    """Priority from how soon the order ships, before any shipping-plan override."""
    remaining = int(remaining_days)

    def due_before(days: int) -> bool:
        return delivery_date is not None and delivery_date < today + timedelta(days=days)

    if due_before(URGENT_WITHIN_DAYS) or 1 <= remaining <= 3:
        return OrderPriority.URGENT
    if due_before(HIGH_WITHIN_DAYS) or 4 <= remaining <= 7:
        return OrderPriority.HIGH
    if quantity > LARGE_ORDER_QUANTITY or due_before(MEDIUM_WITHIN_DAYS) or 8 <= remaining <= 14:
        return OrderPriority.MEDIUM
    return OrderPriority.LOW


def cell_text(row: pd.Series, column: str) -> str:
    """Stripped cell text, or "" for a missing column or blank cell."""
    value = row.get(column)
    if _is_blank(value):
        return ""
    return str(value).strip()


def parse_date(value) -> date | None:
    """Parse a date cell in any accepted format; None when blank or unparseable."""
    if _is_blank(value):
        return None

    if isinstance(value, pd.Timestamp):
        return value.date()
    elif isinstance(value, datetime):
        return value.date()
    elif isinstance(value, date):
        return value

    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    # Spreadsheet readers hand back "2025-01-31 00:00:00" for date cells
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_diameter(value) -> float:
    """First valid diameter in a cell.

    Accepts "102", "102/195", "102/195 122/215" and "102-195".
    Returns 0.0 when nothing parses.
    """
    if _is_blank(value):
        return 0.0

    text = str(value).strip()
    number = _to_float(text)
    if number is not None:
        return number

    if " " in text and "/" in text:
        for part in text.split():
            number = _first_of_fraction(part)
            if number > 0:
                return number

    if "/" in text:
        return _first_of_fraction(text)

    if "-" in text:
        parts = text.split("-")
        if len(parts) == 2:
            number = _to_float(parts[0].strip())
            if number is not None and number > 0:
                return number

    return 0.0


def _first_of_fraction(text: str) -> float:
    head = text.split("/")[0].strip()
    number = _to_float(head)
    return number if number is not None else 0.0


def parse_int(value, default):
    if _is_blank(value):
        return default
    number = _to_float(str(value).strip())
    if number is None:
        return default
    return int(number)


def _parse_float(value, default: float) -> float:
    if _is_blank(value):
        return default
    number = _to_float(str(value).strip())
    return default if number is None else number


def _to_float(text: str) -> float | None:
    try:
        number = float(text)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and pd.isna(value):
        return True
    return isinstance(value, str) and not value.strip()
