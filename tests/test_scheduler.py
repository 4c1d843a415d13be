"""Tests for the scheduling strategies and run metrics."""

from datetime import timedelta

import pytest

from pipe_scheduler.models import (
    Machine, OrderPriority, OrderStatus, ProductionOrder, SchedulingConstraints
)
from pipe_scheduler.scheduler import (
    SchedulingStrategy,
    balanced_weight,
    combine_orders_by_spec,
    generate_statistics,
    run_all_strategies,
    run_strategy,
    schedule,
)


@pytest.fixture
def constraints():
    return SchedulingConstraints()


@pytest.fixture
def run(constraints, machines, rules, today):
    def _run(orders, strategy, **overrides):
        return schedule(
            orders,
            strategy,
            overrides.get("constraints", constraints),
            overrides.get("machines", machines),
            rules,
            today,
        )
    return _run


def assert_no_overlaps(result):
    for orders in result.machine_schedule.values():
        ordered = sorted(orders, key=lambda o: o.start_date)
        for current, following in zip(ordered, ordered[1:]):
            assert following.start_date > current.end_date


class TestCapacityFirst:

    def test_same_spec_orders_are_combined(self, run, make_order):
        orders = [
            make_order("A1", quantity=10, unshipped_quantity=10, pipe_quantity=10),
            make_order("A2", quantity=20, unshipped_quantity=20, pipe_quantity=20),
        ]

        result = run(orders, SchedulingStrategy.CAPACITY_FIRST)

        assert len(result.orders) == 1
        combined = result.orders[0]
        assert combined.order_id == "A1"
        assert combined.quantity == 30
        assert combined.combined_ids == ("A2",)
        assert "A1" in combined.notes and "A2" in combined.notes

    def test_cursor_leaves_one_changeover_day(self, run, make_order, today):
        first = make_order("A1", delivery_date=today + timedelta(days=20))
        second = make_order(
            "B1", outer_diameter=154.0, inner_diameter=130.0,
            delivery_date=today + timedelta(days=25)
        )

        result = run([second, first], SchedulingStrategy.CAPACITY_FIRST)

        placed = {o.order_id: o for o in result.machine_schedule["1"]}
        assert placed["A1"].start_date == today
        assert placed["A1"].end_date == today + timedelta(days=1)
        assert placed["B1"].start_date == placed["A1"].end_date + timedelta(days=2)

    def test_urgent_before_low(self, run, make_order):
        low = make_order("L1", priority=OrderPriority.LOW)
        urgent = make_order("U1", outer_diameter=154.0, inner_diameter=130.0,
                            priority=OrderPriority.URGENT)

        result = run([low, urgent], SchedulingStrategy.CAPACITY_FIRST)

        assert [o.order_id for o in result.machine_schedule["1"]] == ["U1", "L1"]


class TestTimeFirst:

    def test_late_order_is_rejected_when_respecting_deadline(self, run, make_order, today):
        order = make_order(
            "A1", unshipped_quantity=100, pipe_quantity=100,
            delivery_date=today + timedelta(days=1)
        )

        result = run([order], SchedulingStrategy.TIME_FIRST)

        assert result.get_order("A1") is None
        assert any("A1" in conflict for conflict in result.conflicts)

    def test_late_order_is_placed_when_deadline_not_respected(self, run, make_order, today):
        order = make_order(
            "A1", unshipped_quantity=100, pipe_quantity=100,
            delivery_date=today + timedelta(days=1)
        )

        result = run(
            [order], SchedulingStrategy.TIME_FIRST,
            constraints=SchedulingConstraints(respect_deadline=False)
        )

        placed = result.get_order("A1")
        assert placed.end_date == today + timedelta(days=19)
        assert not placed.is_on_time()

    def test_produces_unshipped_quantity(self, run, make_order):
        order = make_order("A1", quantity=50, unshipped_quantity=10)
        result = run([order], SchedulingStrategy.TIME_FIRST)
        assert result.get_order("A1").quantity == 10

    def test_earliest_delivery_first(self, run, make_order, today):
        late = make_order("A1", delivery_date=today + timedelta(days=30))
        early = make_order("A2", delivery_date=today + timedelta(days=10))

        result = run([late, early], SchedulingStrategy.TIME_FIRST)

        assert [o.order_id for o in result.machine_schedule["1"]] == ["A2", "A1"]


class TestOrderFirst:

    def test_sequential_placement_on_one_machine(self, run, make_order, today):
        orders = [
            make_order("A1", delivery_date=today + timedelta(days=10)),
            make_order("A2", delivery_date=today + timedelta(days=20)),
            make_order("A3", delivery_date=today + timedelta(days=5)),
        ]

        result = run(orders, SchedulingStrategy.ORDER_FIRST)

        placed = result.machine_schedule["1"]
        assert [o.order_id for o in placed] == ["A3", "A1", "A2"]
        assert [o.start_date for o in placed] == [
            today, today + timedelta(days=2), today + timedelta(days=4)
        ]
        assert_no_overlaps(result)

    def test_urgent_orders_go_first_regardless_of_delivery(self, run, make_order, today):
        low = make_order("A1", priority=OrderPriority.LOW, delivery_date=today + timedelta(days=2))
        urgent = make_order("A2", priority=OrderPriority.URGENT,
                            delivery_date=today + timedelta(days=40))

        result = run([low, urgent], SchedulingStrategy.ORDER_FIRST)

        assert [o.order_id for o in result.machine_schedule["1"]] == ["A2", "A1"]

    def test_does_not_combine(self, run, make_order):
        result = run([make_order("A1"), make_order("A2")], SchedulingStrategy.ORDER_FIRST)
        assert len(result.orders) == 2
        assert all(o.combined_ids == () for o in result.orders)

    def test_interchangeable_machine_takes_overflow(self, run, make_order, today):
        orders = [
            make_order("A1", outer_diameter=250.0, inner_diameter=230.0),
            make_order("A2", outer_diameter=250.0, inner_diameter=230.0),
        ]

        result = run(orders, SchedulingStrategy.ORDER_FIRST)

        assert result.get_order("A1").machine_id == "4"
        assert result.get_order("A2").machine_id == "5"
        assert result.get_order("A2").start_date == today

    def test_conflict_when_rule_machines_missing_from_pool(self, run, make_order):
        pool = [Machine(id="3", name="机台3#", capacity=100)]

        result = run([make_order("A1")], SchedulingStrategy.ORDER_FIRST, machines=pool)

        assert result.orders == []
        assert result.conflicts == ["order A1 could not be placed"]

    def test_unavailable_machines_are_ignored(self, run, make_order, machines):
        pool = [
            Machine(id=m.id, name=m.name, capacity=m.capacity, is_available=m.id != "1")
            for m in machines
        ]

        result = run([make_order("A1")], SchedulingStrategy.ORDER_FIRST, machines=pool)

        assert result.orders == []
        assert result.conflicts == ["order A1 could not be placed"]
        assert "1" not in result.machine_schedule


class TestBalanced:

    def test_higher_weight_first(self, run, make_order):
        low = make_order("A1", priority=OrderPriority.LOW)
        urgent = make_order("A2", priority=OrderPriority.URGENT)

        result = run([low, urgent], SchedulingStrategy.BALANCED)

        assert [o.order_id for o in result.machine_schedule["1"]] == ["A2", "A1"]

    def test_produces_requested_quantity(self, run, make_order, today):
        order = make_order("A1", quantity=20, unshipped_quantity=10, pipe_quantity=0)

        placed = run([order], SchedulingStrategy.BALANCED).get_order("A1")

        assert placed.quantity == 20
        assert placed.end_date == today + timedelta(days=3)

    def test_weight_formula(self, make_order, today):
        order = make_order(priority=OrderPriority.URGENT, delivery_date=today + timedelta(days=2))
        # priority 4 x urgency 2 x share 1 x pipe 2 x arrival 1.5
        assert balanced_weight(order, order.quantity, today) == 24.0

    def test_pending_pipe_lowers_weight(self, make_order, today):
        arrived = make_order()
        pending = make_order(pipe_arrival_date=today + timedelta(days=5))
        assert balanced_weight(pending, 10, today) < balanced_weight(arrived, 10, today)


class TestCommonBehavior:

    @pytest.mark.parametrize("strategy", list(SchedulingStrategy))
    def test_unplaceable_order_is_a_conflict(self, run, make_order, strategy):
        order = make_order("X1", outer_diameter=550.0, inner_diameter=12.5)

        result = run([order], strategy)

        assert result.orders == []
        assert result.conflicts == ["order X1 could not be placed"]

    @pytest.mark.parametrize("strategy", list(SchedulingStrategy))
    def test_order_for_unavailable_machine_is_a_conflict(self, run, make_order, machines, strategy):
        pool = [
            Machine(id=m.id, name=m.name, capacity=m.capacity, is_available=m.id != "7")
            for m in machines
        ]
        order = make_order("BIG", outer_diameter=600.0, inner_diameter=625.0)

        result = run([order, make_order("A1")], strategy, machines=pool)

        assert [(o.order_id, o.machine_id) for o in result.orders] == [("A1", "1")]
        assert result.conflicts == ["order BIG could not be placed"]

    @pytest.mark.parametrize("strategy", list(SchedulingStrategy))
    def test_scheduled_orders_are_consistent(self, run, make_order, today, strategy):
        orders = [
            make_order("A1"),
            make_order("A2", outer_diameter=154.0, inner_diameter=130.0),
            make_order("A3", outer_diameter=250.0, inner_diameter=230.0),
            make_order("A4", delivery_date=today + timedelta(days=60)),
        ]

        result = run(orders, strategy)

        for order in result.orders:
            assert order.status == OrderStatus.IN_PRODUCTION
            assert order.machine_id
            assert today <= order.start_date <= order.end_date
        assert_no_overlaps(result)

    @pytest.mark.parametrize("strategy", list(SchedulingStrategy))
    def test_repeat_runs_are_identical(self, run, make_order, strategy):
        orders = [make_order("A1"), make_order("A2", outer_diameter=250.0, inner_diameter=230.0)]
        assert run(orders, strategy) == run(orders, strategy)

    def test_inputs_are_not_modified(self, run, make_order):
        order = make_order("A1")
        run([order], SchedulingStrategy.ORDER_FIRST)
        assert order.status == OrderStatus.PENDING
        assert order.machine_id == ""
        assert order.start_date is None

    def test_only_pending_orders_are_scheduled(self, run, make_order):
        done = make_order("A1", status=OrderStatus.COMPLETED)
        result = run([done, make_order("A2")], SchedulingStrategy.ORDER_FIRST)
        assert [o.order_id for o in result.orders] == ["A2"]
        assert result.conflicts == []

    def test_empty_input(self, run):
        result = run([], SchedulingStrategy.BALANCED)
        assert result.is_empty
        assert result.total_production_days == 0
        assert result.utilization_rate == 0.0
        assert result.on_time_delivery_rate == 0.0

    def test_metrics(self, run, make_order):
        result = run([make_order("A1")], SchedulingStrategy.ORDER_FIRST)

        assert result.total_production_days == 2
        # 2 days x 5 per day over 7 machines x 100
        assert result.utilization_rate == pytest.approx(10 / 700)
        assert result.on_time_delivery_rate == 1.0
        assert result.strategy == "ORDER_FIRST"


class TestDispatch:

    def test_unknown_strategy(self, machines, rules, today):
        with pytest.raises(ValueError, match="Unknown strategy"):
            run_strategy("FASTEST", [], machines, SchedulingConstraints(), rules, today)

    def test_run_all_strategies(self, make_order, machines, rules, today):
        results = run_all_strategies(
            [make_order("A1")], SchedulingConstraints(), machines, rules, today
        )
        assert list(results) == list(SchedulingStrategy)
        assert all(r.get_order("A1") is not None for r in results.values())


class TestCombineOrdersBySpec:

    def test_groups_by_diameters_and_priority(self, make_order):
        orders = [
            make_order("A", injection_completed=None),
            make_order("B", injection_completed=5, shipped_quantity=3),
            make_order("C", priority=OrderPriority.URGENT),
        ]

        combined = combine_orders_by_spec(orders)

        assert [o.order_id for o in combined] == ["A", "C"]
        merged = combined[0]
        assert merged.quantity == 20
        assert merged.unshipped_quantity == 20
        assert merged.pipe_quantity == 20
        assert merged.shipped_quantity == 3
        assert merged.injection_completed == 5
        assert merged.notes == "combined order: A + B"

    def test_single_orders_pass_through(self, make_order):
        order = make_order("A")
        assert combine_orders_by_spec([order]) == [order]


class TestStatistics:

    def test_counts_and_utilization(self, make_order, today):
        orders = [
            make_order("A1", machine_id="1", start_date=today,
                       end_date=today + timedelta(days=2), status=OrderStatus.IN_PRODUCTION,
                       priority=OrderPriority.URGENT),
            make_order("A2", machine_id="1", status=OrderStatus.COMPLETED),
            make_order("A3", machine_id="2", quantity=30),
        ]

        stats = generate_statistics(orders)

        assert stats.total_orders == 3
        assert stats.completed_orders == 1
        assert stats.pending_orders == 1
        assert stats.urgent_orders == 1
        assert stats.total_quantity == 50
        # A1 scheduled 3 days, A2 and A3 estimated 2 days each
        assert stats.average_production_days == pytest.approx(7 / 3)
        assert stats.machine_utilization == {"1": 5 / 30, "2": 2 / 30}
