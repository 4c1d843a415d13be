# Plan table workbook export.
# Version: 1.0.0
# Writes the flow's plan table to a styled .xlsx with openpyxl.

import logging
import re
from pathlib import Path

import openpyxl
import pandas as pd
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .flow import DAY_CHANGEOVER, DAY_PRODUCTION, PLAN_COL_STATUS, STATUS_SCHEDULED


logger = logging.getLogger(__name__)

SHEET_TITLE = "排产计划"

NUMERIC_PATTERN = re.compile(r"-?\d+(\.\d+)?")

# Column width bounds, in characters
MIN_COLUMN_WIDTH = 6
MAX_COLUMN_WIDTH = 40

HEADER_FILL = PatternFill(start_color="3498db", end_color="3498db", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF")
PRODUCTION_FILL = PatternFill(start_color="E8F5E9", end_color="E8F5E9", fill_type="solid")
CHANGEOVER_FILL = PatternFill(start_color="FFF9C4", end_color="FFF9C4", fill_type="solid")
UNSCHEDULED_FILL = PatternFill(start_color="FFEBEE", end_color="FFEBEE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)


def _cell_value(value):
    """Numeric text becomes a number; everything else stays text."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    text = str(value)
    if NUMERIC_PATTERN.fullmatch(text.strip()):
        number = float(text)
        return int(number) if number.is_integer() else number
    return text


def build_plan_workbook(plan_table: pd.DataFrame, title: str = SHEET_TITLE) -> openpyxl.Workbook:
    """Render a plan table into a workbook.

    Day cells are shaded by production or changeover, and the status cell
    of every row that did not get scheduled is shaded red.

    Args:
        plan_table: Output of build_plan_table.
        title: Worksheet title.

    Returns:
        Unsaved openpyxl Workbook.
    """
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = title

    headers = [str(c) for c in plan_table.columns]
    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.alignment = Alignment(horizontal="center")
        cell.border = THIN_BORDER

    status_idx = headers.index(PLAN_COL_STATUS) + 1 if PLAN_COL_STATUS in headers else None

    for row_idx, values in enumerate(plan_table.itertuples(index=False), 2):
        for col_idx, value in enumerate(values, 1):
            cell = ws.cell(row=row_idx, column=col_idx, value=_cell_value(value))
            cell.border = THIN_BORDER
            if value == DAY_PRODUCTION:
                cell.fill = PRODUCTION_FILL
            elif value == DAY_CHANGEOVER:
                cell.fill = CHANGEOVER_FILL

        if status_idx is not None:
            status = ws.cell(row=row_idx, column=status_idx)
            if status.value != STATUS_SCHEDULED:
                status.fill = UNSCHEDULED_FILL

    for col_idx, header in enumerate(headers, 1):
        longest = max(
            [len(header)] + [len(str(v)) for v in plan_table.iloc[:, col_idx - 1]],
            default=0
        )
        width = min(max(longest + 2, MIN_COLUMN_WIDTH), MAX_COLUMN_WIDTH)
        ws.column_dimensions[get_column_letter(col_idx)].width = width

    ws.freeze_panes = "B2"
    return wb


def export_plan_workbook(plan_table: pd.DataFrame, output_path: str | Path) -> Path:
    """Write a plan table to an .xlsx file.

    Args:
        plan_table: Output of build_plan_table.
        output_path: Destination path.

    Returns:
        Path to the written file.
    """
    output_path = Path(output_path)
    wb = build_plan_workbook(plan_table)
    wb.save(output_path)
    logger.info("Wrote plan workbook with %d rows to %s", len(plan_table), output_path)
    return output_path
