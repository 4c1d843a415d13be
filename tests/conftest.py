"""Shared fixtures for the pipe scheduler tests."""

from datetime import date, timedelta

import pandas as pd
import pytest

from pipe_scheduler.constants import create_default_machine_rules, create_machines_from_rules
from pipe_scheduler.models import ProductionOrder


TODAY = date(2025, 3, 3)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def rules():
    return create_default_machine_rules()


@pytest.fixture
def machines(rules):
    return create_machines_from_rules(rules)


@pytest.fixture
def make_order():
    """Factory for orders that run on machine 1 (outer 174, inner 160) by default.

    Ten pieces at five per day with full pipe stock: two production days.
    """
    def _make(order_id="A1", **overrides):
        values = dict(
            outer_diameter=174.0,
            inner_diameter=160.0,
            quantity=10,
            segments=1,
            daily_production=5,
            unshipped_quantity=10,
            pipe_quantity=10,
            delivery_date=TODAY + timedelta(days=30),
        )
        values.update(overrides)
        return ProductionOrder(order_id=order_id, **values)
    return _make


def order_row(order_id, outer="174", inner="160", quantity="10", daily="5",
              unshipped="10", pipe="10", delivery=None, notes="", company_model=None):
    """One order table row with the spreadsheet's Chinese headers."""
    return {
        "序号": order_id,
        "公司型号": company_model or f"CM-{order_id}",
        "计划发货时间": (delivery or TODAY + timedelta(days=20)).isoformat(),
        "数量（支）": quantity,
        "段数": "1",
        "内径": inner,
        "外径": outer,
        "日产量": daily,
        "未发数量": unshipped,
        "管/棒数量": pipe,
        "注射完成": "",
        "备注": notes,
    }


@pytest.fixture
def order_table():
    """Four rows: a normal order, a completed one, an unplaceable one and a machine-4 order."""
    return pd.DataFrame([
        order_row("A1"),
        order_row("A2", notes="已完成"),
        order_row("A3", outer="550", inner="12.5"),
        order_row("A4", outer="250", inner="230", pipe="0"),
    ])
