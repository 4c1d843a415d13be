# Pipe specification parsing and matching.
# Version: 1.0.0
# Turns mold diameter text ("Ø 130/154-Ø 204/226") into PipeSpecification lists.

import re

from .models import CONE_LARGE, CONE_SMALL, PipeSpecification


DIAMETER_MARKER = "Ø"
RANGE_SEPARATOR = "-"
LIST_SEPARATORS = ("、", "，")
INNER_OUTER_SEPARATOR = "/"
OVERSIZE_MARKERS = ("(大)", "（大）")

# Absolute tolerance for tolerant_match, in mm
MATCH_TOLERANCE = 10.0

# Outer-diameter tolerance for outer_only_match, in mm
OUTER_ONLY_TOLERANCE = 20.0

# (max outer diameter, tolerance) bands for scaled_tolerant_match
SCALED_TOLERANCE_BANDS: tuple[tuple[float, float], ...] = (
    (150.0, 5.0),
    (300.0, 10.0),
    (500.0, 15.0),
)
SCALED_TOLERANCE_MAX = 20.0

# Customer model codes look like FH-550/12.5-4295 (outer/inner)
CUSTOMER_MODEL_PATTERN = re.compile(
    r"[A-Za-z]+-(\d+(?:\.\d+)?)/(\d+(?:\.\d+)?)-(\w+)"
)

# Outer diameter above which a customer-model spec is considered oversize
LARGE_OUTER_DIAMETER = 400.0


def parse_pipe_specs(spec_string: str) -> list[PipeSpecification]:
    """Parse a mold specification string into pipe specifications.

    Supported forms:
        "Ø 130/154-Ø 204/226"       range, both endpoints returned
        "Ø 102、Ø 113、Ø 120/Ø 137"  list of items
        "Ø 90"                      single outer diameter
        "Ø 180、Ø 200/Ø 217 (大)"    oversize marker

    Items that fail to parse are dropped; a string with no parseable
    item yields an empty list.

    Args:
        spec_string: Raw specification text.

    Returns:
        Parsed specifications in left-to-right order.
    """
    if spec_string is None or not str(spec_string).strip():
        return []

    clean = re.sub(r"\s+", "", str(spec_string).replace(DIAMETER_MARKER, ""))

    is_large = any(marker in clean for marker in OVERSIZE_MARKERS)
    if CONE_SMALL in clean:
        cone_type = CONE_SMALL
    elif CONE_LARGE in clean:
        cone_type = CONE_LARGE
    else:
        cone_type = ""

    for marker in OVERSIZE_MARKERS + (CONE_SMALL, CONE_LARGE):
        clean = clean.replace(marker, "")

    if RANGE_SEPARATOR in clean:
        parts = clean.split(RANGE_SEPARATOR)
        if len(parts) != 2:
            return []
        start = parse_single_spec(parts[0])
        end = parse_single_spec(parts[1])
        if start is None or end is None:
            return []
        items = [start, end]
    elif any(sep in clean for sep in LIST_SEPARATORS):
        for sep in LIST_SEPARATORS[1:]:
            clean = clean.replace(sep, LIST_SEPARATORS[0])
        items = [parse_single_spec(part) for part in clean.split(LIST_SEPARATORS[0])]
    else:
        items = [parse_single_spec(clean)]

    specs = []
    for item in items:
        if item is None:
            continue
        inner, outer = item
        specs.append(PipeSpecification(
            inner_diameter=inner,
            outer_diameter=outer,
            is_large=is_large,
            cone_type=cone_type,
        ))
    return specs


def parse_single_spec(spec: str) -> tuple[float, float] | None:
    """Parse one item: "inner/outer" or a bare outer diameter.

    Returns:
        (inner, outer) with inner = 0 for a bare number, or None.
    """
    if INNER_OUTER_SEPARATOR in spec:
        parts = spec.split(INNER_OUTER_SEPARATOR)
        if len(parts) != 2:
            return None
        inner = _to_float(parts[0])
        outer = _to_float(parts[1])
        if inner is None or outer is None:
            return None
        return inner, outer

    outer = _to_float(spec)
    if outer is None:
        return None
    return 0.0, outer


def _to_float(text: str) -> float | None:
    try:
        return float(text)
    except (TypeError, ValueError):
        return None


def exact_match(order_spec: PipeSpecification, rule_spec: PipeSpecification) -> bool:
    """Both diameters equal."""
    return (
        order_spec.inner_diameter == rule_spec.inner_diameter
        and order_spec.outer_diameter == rule_spec.outer_diameter
    )


def tolerant_match(order_spec: PipeSpecification, rule_spec: PipeSpecification) -> bool:
    """Both diameters within MATCH_TOLERANCE."""
    if exact_match(order_spec, rule_spec):
        return True
    inner_diff = abs(order_spec.inner_diameter - rule_spec.inner_diameter)
    outer_diff = abs(order_spec.outer_diameter - rule_spec.outer_diameter)
    return inner_diff <= MATCH_TOLERANCE and outer_diff <= MATCH_TOLERANCE


def scaled_tolerance(outer_diameter: float) -> float:
    """Matching tolerance for a given outer diameter; larger pipes match looser."""
    for max_outer, tolerance in SCALED_TOLERANCE_BANDS:
        if outer_diameter <= max_outer:
            return tolerance
    return SCALED_TOLERANCE_MAX


def scaled_tolerant_match(order_spec: PipeSpecification, rule_spec: PipeSpecification) -> bool:
    """Both diameters within a tolerance scaled by the order's outer diameter."""
    if exact_match(order_spec, rule_spec):
        return True
    tolerance = scaled_tolerance(order_spec.outer_diameter)
    inner_diff = abs(order_spec.inner_diameter - rule_spec.inner_diameter)
    outer_diff = abs(order_spec.outer_diameter - rule_spec.outer_diameter)
    return inner_diff <= tolerance and outer_diff <= tolerance


def outer_only_match(order_spec: PipeSpecification, rule_spec: PipeSpecification) -> bool:
    """Outer diameter within OUTER_ONLY_TOLERANCE; inner diameter ignored."""
    return abs(order_spec.outer_diameter - rule_spec.outer_diameter) <= OUTER_ONLY_TOLERANCE


def parse_from_customer_model(customer_model: str) -> PipeSpecification | None:
    """Extract diameters from a customer model code.

    Example:
        "FH-550/12.5-4295" -> outer 550, inner 12.5

    Args:
        customer_model: Customer model text.

    Returns:
        PipeSpecification, or None when the code does not match.
    """
    if not customer_model or not str(customer_model).strip():
        return None

    match = CUSTOMER_MODEL_PATTERN.search(str(customer_model))
    if match is None:
        return None

    outer = float(match.group(1))
    inner = float(match.group(2))
    return PipeSpecification(
        inner_diameter=inner,
        outer_diameter=outer,
        is_large=outer > LARGE_OUTER_DIAMETER,
    )
