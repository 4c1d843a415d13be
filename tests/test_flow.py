"""End-to-end tests for the scheduling flow and plan table."""

from datetime import timedelta

import pandas as pd

from pipe_scheduler.flow import (
    DAY_CHANGEOVER,
    DAY_PRODUCTION,
    PLAN_COL_END,
    PLAN_COL_MACHINE,
    PLAN_COL_START,
    PLAN_COL_STATUS,
    PLAN_COL_TOTAL_UNITS,
    STATUS_NOT_SCHEDULED,
    STATUS_SCHEDULED,
    run_scheduling_flow,
)
from pipe_scheduler.models import OrderPriority
from pipe_scheduler.scheduler import SchedulingStrategy

from conftest import order_row


def status_of(plan, order_id):
    return plan.loc[plan["序号"] == order_id, PLAN_COL_STATUS].iloc[0]


class TestRunSchedulingFlow:

    def test_order_first_with_shipping_plan(self, order_table, today):
        plan = pd.DataFrame([
            {"公司型号": "CM-A1", "客户名称": "华东管业", "交货时间": "2025-03-20"},
        ])

        flow = run_scheduling_flow(order_table, shipping_plan=plan, today=today)

        assert [o.order_id for o in flow.orders] == ["A1", "A2", "A3", "A4"]
        assert [o.order_id for o in flow.filter_result.excluded] == ["A2"]
        priorities = {o.order_id: o.priority for o in flow.prioritized_orders}
        assert priorities == {
            "A1": OrderPriority.URGENT, "A3": OrderPriority.LOW, "A4": OrderPriority.LOW,
        }

        result = flow.scheduling_result
        assert result.strategy == "ORDER_FIRST"
        assert result.get_order("A1").machine_id == "1"
        assert result.get_order("A4").machine_id == "4"
        assert result.conflicts == ["order A3 could not be placed"]

    def test_plan_table_columns_and_statuses(self, order_table, today):
        flow = run_scheduling_flow(order_table, today=today)
        plan = flow.plan_table

        assert len(plan) == len(order_table)
        for column in (PLAN_COL_MACHINE, PLAN_COL_START, PLAN_COL_END,
                       PLAN_COL_TOTAL_UNITS, PLAN_COL_STATUS):
            assert column in plan.columns

        assert status_of(plan, "A1") == STATUS_SCHEDULED
        assert status_of(plan, "A2").startswith("excluded: ")
        assert status_of(plan, "A3") == STATUS_NOT_SCHEDULED

        row = plan[plan["序号"] == "A1"].iloc[0]
        assert row[PLAN_COL_MACHINE] == "1"
        assert row[PLAN_COL_START] == today.isoformat()
        assert row[PLAN_COL_TOTAL_UNITS] == "10"
        assert row[today.isoformat()] == DAY_PRODUCTION
        assert row[(today + timedelta(days=1)).isoformat()] == DAY_PRODUCTION

    def test_day_columns_run_to_last_end_date(self, order_table, today):
        plan = run_scheduling_flow(order_table, today=today).plan_table
        day_columns = [c for c in plan.columns if c.startswith("2025-")]
        assert day_columns == [today.isoformat(), (today + timedelta(days=1)).isoformat()]

    def test_capacity_first_combined_rows_and_changeover(self, today):
        table = pd.DataFrame([
            order_row("A1"),
            order_row("A5"),
            order_row("A6", outer="154", inner="130", delivery=today + timedelta(days=25)),
        ])

        flow = run_scheduling_flow(
            table, strategy="CAPACITY_FIRST", today=today
        )
        plan = flow.plan_table

        combined = flow.scheduling_result.get_order("A1")
        assert combined.combined_ids == ("A5",)
        assert combined.end_date == today + timedelta(days=3)
        assert status_of(plan, "A5") == "combined into A1"

        a1 = plan[plan["序号"] == "A1"].iloc[0]
        assert a1[(today + timedelta(days=4)).isoformat()] == DAY_CHANGEOVER
        a6 = plan[plan["序号"] == "A6"].iloc[0]
        assert a6[PLAN_COL_START] == (today + timedelta(days=5)).isoformat()

    def test_input_table_is_not_modified(self, order_table, today):
        before = order_table.copy()
        run_scheduling_flow(order_table, today=today)
        pd.testing.assert_frame_equal(order_table, before)

    def test_empty_schedule_has_no_day_columns(self, today):
        table = pd.DataFrame([order_row("A1", notes="已完成")])

        flow = run_scheduling_flow(table, strategy=SchedulingStrategy.BALANCED, today=today)

        assert flow.scheduling_result.is_empty
        assert not any(c.startswith("2025-") for c in flow.plan_table.columns)
