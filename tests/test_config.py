"""Tests for the built-in catalogue and YAML configuration."""

from pathlib import Path

import pytest

from pipe_scheduler.constants import (
    DEFAULT_RULE_TABLE,
    SchedulerConfig,
    create_default_machine_rules,
    create_machines_from_rules,
    default_scheduler_config,
    format_pipe_specs,
    load_scheduler_config,
    save_scheduler_config,
)
from pipe_scheduler.errors import ConfigurationError, FileLoadError
from pipe_scheduler.models import SchedulingConstraints


REPO_CONFIG = Path(__file__).parent.parent / "config" / "scheduler.yaml"


class TestDefaultCatalogue:

    def test_rule_table(self, rules):
        assert len(rules) == len(DEFAULT_RULE_TABLE) == 25
        assert all(rule.pipe_specs for rule in rules)
        assert {r.machine_id for r in rules} == {"1", "2", "3", "4", "5", "6", "7"}

    def test_machines_four_and_five_are_interchangeable(self, rules):
        for rule in rules:
            if rule.machine_id == "4":
                assert rule.interchangeable_with == ("5",)
            elif rule.machine_id == "5":
                assert rule.interchangeable_with == ("4",)
            else:
                assert rule.interchangeable_with == ()

    def test_machines_from_rules(self, rules):
        machines = create_machines_from_rules(rules, capacity=80)
        assert [m.id for m in machines] == ["1", "2", "3", "4", "5", "6", "7"]
        assert machines[0].name == "机台1#"
        assert all(m.capacity == 80 and m.is_available for m in machines)

    def test_default_config(self):
        config = default_scheduler_config()
        assert config.default_strategy == "ORDER_FIRST"
        assert config.constraints == SchedulingConstraints()
        assert config.get_machine("7").id == "7"
        assert config.get_machine("8") is None


class TestLoadSchedulerConfig:

    def test_repository_config_matches_catalogue(self):
        config = load_scheduler_config(REPO_CONFIG)

        assert config.rules == create_default_machine_rules()
        assert len(config.machines) == 7
        assert config.default_strategy == "ORDER_FIRST"

    def test_save_then_load(self, tmp_path):
        config = default_scheduler_config()
        path = tmp_path / "scheduler.yaml"

        save_scheduler_config(config, path)
        loaded = load_scheduler_config(path)

        assert loaded.rules == config.rules
        assert loaded.machines == config.machines
        assert loaded.constraints == config.constraints
        assert loaded.rule_specs == config.rule_specs

    def test_missing_sections_use_defaults(self, tmp_path):
        path = tmp_path / "scheduler.yaml"
        path.write_text(
            "constraints:\n  respect_deadline: false\n  buffer_days: '3'\n  colour: blue\n",
            encoding="utf-8",
        )

        config = load_scheduler_config(path)

        assert len(config.rules) == 25
        assert len(config.machines) == 7
        assert config.constraints.respect_deadline is False
        assert config.constraints.buffer_days == 3

    def test_machine_entries(self, tmp_path):
        path = tmp_path / "scheduler.yaml"
        path.write_text(
            "machines:\n"
            "  - {id: 1, capacity: 120, available: false, maintenance_date: '2025-04-01'}\n",
            encoding="utf-8",
        )

        [machine] = load_scheduler_config(path).machines

        assert machine.id == "1"
        assert machine.name == "机台1#"
        assert machine.capacity == 120
        assert not machine.is_available
        assert machine.maintenance_date.isoformat() == "2025-04-01"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileLoadError):
            load_scheduler_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "scheduler.yaml"
        path.write_text("machine_rules: [\n", encoding="utf-8")
        with pytest.raises(FileLoadError):
            load_scheduler_config(path)

    @pytest.mark.parametrize("content", [
        "- just\n- a list\n",
        "machine_rules: {}\n",
        "machine_rules:\n  - {machine: '1', specs: 'Ø 90'}\n",
        "machines: 3\n",
        "constraints:\n  buffer_days: soon\n",
        "machines:\n  - {id: '1', maintenance_date: 'next week'}\n",
    ])
    def test_invalid_sections(self, tmp_path, content):
        path = tmp_path / "scheduler.yaml"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_scheduler_config(path)

    def test_empty_constraints_section_uses_defaults(self, tmp_path):
        path = tmp_path / "scheduler.yaml"
        path.write_text("default_strategy: balanced\nconstraints:\n", encoding="utf-8")

        config = load_scheduler_config(path)

        assert config.constraints == SchedulingConstraints()
        assert config.default_strategy == "BALANCED"


class TestFormatPipeSpecs:

    def test_formats_pairs_and_bare_outers(self, rules):
        by_mold = {r.mold_id: r for r in rules}
        assert format_pipe_specs(by_mold["MC-003-GN-2012"]) == "130/154、204/226"
        assert format_pipe_specs(by_mold["M-008-H&G-2019"]) == "100、113、120/137"
        assert format_pipe_specs(by_mold["M-039-H&G-2025"]) == "180、200/217(大)"

    def test_saved_rule_without_spec_text_round_trips(self, rules, tmp_path):
        config = SchedulerConfig(rules=rules, machines=create_machines_from_rules(rules))
        path = tmp_path / "scheduler.yaml"

        save_scheduler_config(config, path)

        assert load_scheduler_config(path).rules == rules
