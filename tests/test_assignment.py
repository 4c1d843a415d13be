"""Tests for the machine assignment engine."""

from pipe_scheduler.assignment import (
    assign_machine,
    assignment_cost,
    compatible_machine_ids,
    fallback_machine_for_outer_diameter,
    find_matching_rule,
)
from pipe_scheduler.models import MachineRule, OrderPriority, PipeSpecification, ProductionOrder


class TestAssignMachine:

    def test_outer_diameter_outside_every_rule_and_band(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=550.0, inner_diameter=12.5)
        assert assign_machine(order, rules) is None
        assert compatible_machine_ids(order, rules) == []

    def test_band_fallback_without_rule_for_band_machine(self):
        rules = [MachineRule("1", "M-X", (PipeSpecification(120.0, 137.0),))]
        order = ProductionOrder(order_id="X", outer_diameter=150.0, inner_diameter=100.0)

        assignment = assign_machine(order, rules)

        assert assignment.machine_id == "2"
        assert assignment.mold_id == ""
        assert assignment.changeover_hours == 4
        assert assignment.pipe_change_hours == 12
        assert assignment.total_setup_hours == 16

    def test_listed_outer_diameter_wins_over_band(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=150.0, inner_diameter=100.0)
        assignment = assign_machine(order, rules)
        assert assignment.machine_id == "2"
        assert assignment.mold_id == "M-022-H&G-2020"

    def test_band_fallback_uses_first_rule_of_band_machine(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=145.0)
        assignment = assign_machine(order, rules)
        assert assignment.machine_id == "2"
        assert assignment.mold_id == "M-008-H&G-2019"

    def test_inner_diameter_picks_between_outer_matches(self, rules):
        on_six = ProductionOrder(order_id="X", outer_diameter=200.0, inner_diameter=180.0)
        on_three = ProductionOrder(order_id="Y", outer_diameter=200.0, inner_diameter=182.0)

        assert assign_machine(on_six, rules).mold_id == "MC-017-H&G-2021"
        assert assign_machine(on_three, rules).mold_id == "M-018-H&G-2021"

    def test_unknown_inner_diameter_takes_first_outer_match(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=200.0, inner_diameter=999.0)
        assert find_matching_rule(order, rules).mold_id == "M-018-H&G-2021"

    def test_unconstrained_inner_in_rule_matches_any_inner(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=180.0, inner_diameter=55.0)
        assert find_matching_rule(order, rules).mold_id == "M-039-H&G-2025"


class TestFallbackBands:

    def test_band_lookup(self):
        assert fallback_machine_for_outer_diameter(0.0) == "2"
        assert fallback_machine_for_outer_diameter(150.0) == "2"
        assert fallback_machine_for_outer_diameter(200.0) == "3"
        assert fallback_machine_for_outer_diameter(260.0) == "4"
        assert fallback_machine_for_outer_diameter(414.0) == "4"
        assert fallback_machine_for_outer_diameter(350.0) == "5"
        assert fallback_machine_for_outer_diameter(280.0) == "6"
        assert fallback_machine_for_outer_diameter(510.0) == "6"
        assert fallback_machine_for_outer_diameter(600.0) == "7"

    def test_gaps_between_bands(self):
        assert fallback_machine_for_outer_diameter(155.0) is None
        assert fallback_machine_for_outer_diameter(275.0) is None
        assert fallback_machine_for_outer_diameter(550.0) is None


class TestCompatibleMachines:

    def test_interchangeable_machines_follow_assigned(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=250.0, inner_diameter=230.0)
        assert compatible_machine_ids(order, rules) == ["4", "5"]

    def test_single_machine_without_interchange(self, rules):
        order = ProductionOrder(order_id="X", outer_diameter=174.0, inner_diameter=160.0)
        assert compatible_machine_ids(order, rules) == ["1"]


class TestAssignmentCost:

    def test_cost_components(self, make_order):
        order = make_order(priority=OrderPriority.URGENT)
        # 16 setup hours x 10 + 2 production days x 5 - 50
        assert assignment_cost(order, 16) == 120.0

    def test_lower_priority_costs_more(self, make_order):
        urgent = assignment_cost(make_order(priority=OrderPriority.URGENT), 16)
        low = assignment_cost(make_order(priority=OrderPriority.LOW), 16)
        assert urgent < low

    def test_assignment_carries_cost(self, rules, make_order):
        order = make_order(priority=OrderPriority.MEDIUM)
        assignment = assign_machine(order, rules)
        assert assignment.cost == 16 * 10.0 + 2 * 5.0
