# Built-in machine/mold catalogue and scheduler configuration.
# Version: 1.0.0
# Default rule table, outer-diameter fallback bands, and YAML load/save.

import logging
from dataclasses import dataclass, field, fields
from datetime import date, datetime
from pathlib import Path

import yaml

from .errors import ConfigurationError, FileLoadError
from .models import Machine, MachineRule, SchedulingConstraints
from .spec_parser import parse_pipe_specs


logger = logging.getLogger(__name__)

# Default changeover durations (hours)
DEFAULT_CHANGEOVER_HOURS = 4
DEFAULT_PIPE_CHANGE_HOURS = 12

# Daily capacity for machines created from the rule table
DEFAULT_MACHINE_CAPACITY = 100

# Changeover between consecutive orders on one machine, in whole days
CHANGEOVER_DAYS = 1

# (machine_id, mold_id, spec text, description, interchangeable_with)
DEFAULT_RULE_TABLE: tuple[tuple[str, str, str, str, tuple[str, ...]], ...] = (
    ("1", "MC-003-GN-2012", "Ø 130/154-Ø 204/226", "机台1#规则", ()),
    ("1", "MC-007-H&G-2019", "Ø 102/Ø 122-Ø 195/Ø 215", "Ø 174外径和两个小锥", ()),
    ("1", "MC-030-H&G-2022", "Ø 102/Ø 122-Ø 195/Ø 215 (大)", "大规格", ()),
    ("1", "M-013-H&G-2020", "Ø 140、Ø 154、Ø 160/Ø 174", "机台1#规则", ()),

    ("2", "M-008-H&G-2019", "Ø 100、Ø 113、Ø 120/Ø 137", "Ø 150外径及以下", ()),
    ("2", "M-019-H&G-2020", "Ø 90", "Ø 150外径及以下", ()),
    ("2", "M-020-H&G-2020", "Ø 110", "Ø 150外径及以下", ()),
    ("2", "M-021-H&G-2020", "Ø 120", "Ø 150外径及以下", ()),
    ("2", "M-022-H&G-2020", "Ø 130/Ø 147、Ø 150", "Ø 150外径及以下", ()),

    ("3", "M-005-H&G-2018", "Ø 125、Ø 130、Ø 140/Ø 160", "Ø 160~Ø 218外径", ()),
    ("3", "M-039-H&G-2025", "Ø 180、Ø 200/Ø 217 (大)", "Ø 160~Ø 218外径", ()),
    ("3", "M-004-H&G-2018", "Ø 180、Ø 200/Ø 218", "Ø 160~Ø 218外径", ()),
    ("3", "M-018-H&G-2021", "Ø 182/Ø 200", "Ø 160~Ø 218外径", ()),

    ("4", "M-011-H&G-2019", "Ø 220、Ø 230/Ø 250", "Ø 250~Ø 272、Ø 414外径 机动5#", ("5",)),
    ("4", "M-010-H&G-2019", "Ø 240/Ø 260", "Ø 250~Ø 272、Ø 414外径 机动5#", ("5",)),
    ("4", "M-033-H&G-2022", "Ø 248/Ø 272", "Ø 250~Ø 272、Ø 414外径 机动5#", ("5",)),
    ("4", "M-015-H&G-2021", "Ø 400/Ø 414", "Ø 250~Ø 272、Ø 414外径 机动5#", ("5",)),

    ("5", "M-035-H&G-2022", "Ø 270/Ø 290", "Ø 290~Ø 400外径 机动4#", ("4",)),
    ("5", "M-032-H&G-2022", "Ø 300/Ø 320", "Ø 290~Ø 400外径 机动4#", ("4",)),
    ("5", "M-006-H&G-2018", "Ø 350、Ø 375/Ø 400", "Ø 290~Ø 400外径 机动4#", ("4",)),

    ("6", "MC-036-H&G-2024", "Ø 180/Ø 198-Ø 330/Ø 348", "Ø 280、Ø 510外径和两个大锥", ()),
    ("6", "MC-017-H&G-2021", "Ø 180/200-Ø 360/380", "Ø 280、Ø 510外径和两个大锥", ()),
    ("6", "M-014-H&G-2021", "Ø 280", "Ø 280、Ø 510外径和两个大锥", ()),
    ("6", "M-009-H&G-2019", "Ø 482/Ø 510", "Ø 280、Ø 510外径和两个大锥", ()),

    ("7", "M-037-H&G-2024", "Ø 600/Ø 625", "Ø 600外径", ()),
)

# Outer-diameter bands used when no rule lists the order's outer diameter.
# (low, high, machine_id); low == high is a single value. Kept separate from
# DEFAULT_RULE_TABLE, so a reconfigured rule table does not update it.
OUTER_DIAMETER_FALLBACK_BANDS: tuple[tuple[float, float, str], ...] = (
    (float("-inf"), 150.0, "2"),
    (160.0, 218.0, "3"),
    (250.0, 272.0, "4"),
    (414.0, 414.0, "4"),
    (290.0, 400.0, "5"),
    (280.0, 280.0, "6"),
    (510.0, 510.0, "6"),
    (600.0, 600.0, "7"),
)


def create_default_machine_rules() -> list[MachineRule]:
    """Build the built-in machine/mold catalogue.

    Returns:
        List of MachineRule, one per mold record.
    """
    return [
        MachineRule(
            machine_id=machine_id,
            mold_id=mold_id,
            pipe_specs=tuple(parse_pipe_specs(spec_text)),
            description=description,
            changeover_hours=DEFAULT_CHANGEOVER_HOURS,
            pipe_change_hours=DEFAULT_PIPE_CHANGE_HOURS,
            interchangeable_with=interchangeable,
        )
        for machine_id, mold_id, spec_text, description, interchangeable in DEFAULT_RULE_TABLE
    ]


def create_machines_from_rules(
    rules: list[MachineRule],
    capacity: int = DEFAULT_MACHINE_CAPACITY
) -> list[Machine]:
    """Create one machine per distinct machine id in the rule table.

    Args:
        rules: Machine rules.
        capacity: Daily capacity for every created machine.

    Returns:
        Machines in first-seen order.
    """
    machines: dict[str, Machine] = {}
    for rule in rules:
        if rule.machine_id not in machines:
            machines[rule.machine_id] = Machine(
                id=rule.machine_id,
                name=f"机台{rule.machine_id}#",
                capacity=capacity,
            )
    return list(machines.values())


@dataclass
class SchedulerConfig:
    """Everything the engine reads from configuration.

    Attributes:
        rules: Machine/mold rule table.
        machines: Machines available to the scheduler.
        constraints: Default scheduling constraints.
        default_strategy: Strategy name used when a caller does not pick one.
        rule_specs: Original spec text per mold id, kept for round-tripping.
    """
    rules: list[MachineRule]
    machines: list[Machine]
    constraints: SchedulingConstraints = field(default_factory=SchedulingConstraints)
    default_strategy: str = "ORDER_FIRST"
    rule_specs: dict[str, str] = field(default_factory=dict)

    def get_machine(self, machine_id: str) -> Machine | None:
        for machine in self.machines:
            if machine.id == machine_id:
                return machine
        return None


def default_scheduler_config() -> SchedulerConfig:
    """Configuration built from the built-in catalogue."""
    rules = create_default_machine_rules()
    return SchedulerConfig(
        rules=rules,
        machines=create_machines_from_rules(rules),
        rule_specs={row[1]: row[2] for row in DEFAULT_RULE_TABLE},
    )


def load_scheduler_config(yaml_path: str | Path) -> SchedulerConfig:
    """Load scheduler configuration from a YAML file.

    Sections that are missing fall back to the built-in defaults.

    Args:
        yaml_path: Path to the YAML config file.

    Returns:
        SchedulerConfig with rules, machines and constraints.

    Raises:
        FileLoadError: If the file cannot be read.
        ConfigurationError: If a section is malformed.
    """
    yaml_path = Path(yaml_path)

    try:
        with open(yaml_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise FileLoadError(str(yaml_path), e)

    if not isinstance(data, dict):
        raise ConfigurationError(str(yaml_path), "top level must be a mapping")

    defaults = default_scheduler_config()

    if "machine_rules" in data:
        rules, rule_specs = _parse_rules(data["machine_rules"])
    else:
        rules, rule_specs = defaults.rules, defaults.rule_specs

    if "machines" in data:
        machines = _parse_machines(data["machines"])
    else:
        machines = create_machines_from_rules(rules)

    constraints = _parse_constraints(data.get("constraints") or {})

    default_strategy = str(data.get("default_strategy", defaults.default_strategy)).upper()

    logger.info(
        "Loaded scheduler config from %s: %d rules, %d machines",
        yaml_path, len(rules), len(machines)
    )

    return SchedulerConfig(
        rules=rules,
        machines=machines,
        constraints=constraints,
        default_strategy=default_strategy,
        rule_specs=rule_specs,
    )


def _parse_rules(entries) -> tuple[list[MachineRule], dict[str, str]]:
    """Parse the machine_rules section."""
    if not isinstance(entries, list):
        raise ConfigurationError("machine_rules", "must be a list")

    rules = []
    rule_specs = {}
    for idx, entry in enumerate(entries):
        try:
            machine_id = str(entry["machine"]).strip()
            mold_id = str(entry["mold"]).strip()
            spec_text = str(entry["specs"])
        except (KeyError, TypeError) as e:
            raise ConfigurationError("machine_rules", f"entry {idx + 1} is missing {e}")

        pipe_specs = tuple(parse_pipe_specs(spec_text))
        if not pipe_specs:
            logger.warning("Rule %s/%s has no parseable specs: %r", machine_id, mold_id, spec_text)

        try:
            changeover = int(entry.get("changeover_hours", DEFAULT_CHANGEOVER_HOURS))
            pipe_change = int(entry.get("pipe_change_hours", DEFAULT_PIPE_CHANGE_HOURS))
        except (TypeError, ValueError):
            raise ConfigurationError("machine_rules", f"entry {idx + 1} has non-numeric hours")

        rules.append(MachineRule(
            machine_id=machine_id,
            mold_id=mold_id,
            pipe_specs=pipe_specs,
            description=str(entry.get("description", "")),
            changeover_hours=changeover,
            pipe_change_hours=pipe_change,
            interchangeable_with=tuple(str(m) for m in entry.get("interchangeable_with", []) or []),
        ))
        rule_specs[mold_id] = spec_text

    return rules, rule_specs


def _parse_machines(entries) -> list[Machine]:
    """Parse the machines section."""
    if not isinstance(entries, list):
        raise ConfigurationError("machines", "must be a list")

    machines = []
    for idx, entry in enumerate(entries):
        try:
            machine_id = str(entry["id"]).strip()
            capacity = int(entry.get("capacity", DEFAULT_MACHINE_CAPACITY))
            efficiency = float(entry.get("efficiency", 1.0))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError("machines", f"entry {idx + 1} is invalid: {e}")

        maintenance = entry.get("maintenance_date")
        if isinstance(maintenance, str):
            try:
                maintenance = datetime.strptime(maintenance, "%Y-%m-%d").date()
            except ValueError:
                raise ConfigurationError(
                    "machines", f"entry {idx + 1} has a bad maintenance_date: {maintenance!r}"
                )
        elif maintenance is not None and not isinstance(maintenance, date):
            raise ConfigurationError("machines", f"entry {idx + 1} has a bad maintenance_date")

        machines.append(Machine(
            id=machine_id,
            name=str(entry.get("name", f"机台{machine_id}#")),
            capacity=capacity,
            efficiency=efficiency,
            is_available=bool(entry.get("available", True)),
            maintenance_date=maintenance,
        ))
    return machines


def _parse_constraints(section) -> SchedulingConstraints:
    """Parse the constraints section, ignoring unknown keys."""
    if not isinstance(section, dict):
        raise ConfigurationError("constraints", "must be a mapping")

    known = {f.name: f.type for f in fields(SchedulingConstraints)}
    values = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown constraint %r", key)
            continue
        if isinstance(value, bool) or known[key] in (bool, "bool"):
            values[key] = bool(value)
        else:
            try:
                values[key] = int(value)
            except (TypeError, ValueError):
                raise ConfigurationError("constraints", f"{key} must be a number")
    return SchedulingConstraints(**values)


def save_scheduler_config(config: SchedulerConfig, yaml_path: str | Path) -> None:
    """Save scheduler configuration to a YAML file.

    Args:
        config: SchedulerConfig to save.
        yaml_path: Destination path.
    """
    data = {
        "default_strategy": config.default_strategy,
        "constraints": {
            f.name: getattr(config.constraints, f.name)
            for f in fields(SchedulingConstraints)
        },
        "machines": [],
        "machine_rules": [],
    }

    for m in config.machines:
        data["machines"].append({
            "id": m.id,
            "name": m.name,
            "capacity": m.capacity,
            "efficiency": m.efficiency,
            "available": m.is_available,
            "maintenance_date": m.maintenance_date.isoformat() if m.maintenance_date else None,
        })

    for r in config.rules:
        data["machine_rules"].append({
            "machine": r.machine_id,
            "mold": r.mold_id,
            "specs": config.rule_specs.get(r.mold_id) or format_pipe_specs(r),
            "description": r.description,
            "changeover_hours": r.changeover_hours,
            "pipe_change_hours": r.pipe_change_hours,
            "interchangeable_with": list(r.interchangeable_with),
        })

    yaml_path = Path(yaml_path)
    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)


def format_pipe_specs(rule: MachineRule) -> str:
    """Render a rule's specs back to list-form text ("130/154、204/226")."""
    parts = []
    for spec in rule.pipe_specs:
        outer = _format_number(spec.outer_diameter)
        if spec.inner_diameter:
            parts.append(f"{_format_number(spec.inner_diameter)}/{outer}")
        else:
            parts.append(outer)
    text = "、".join(parts)
    if rule.pipe_specs and rule.pipe_specs[0].is_large:
        text += "(大)"
    if rule.pipe_specs and rule.pipe_specs[0].cone_type:
        text += rule.pipe_specs[0].cone_type
    return text


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)
