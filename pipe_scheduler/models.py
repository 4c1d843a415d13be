# Domain value types for the pipe production scheduler.
# Version: 1.0.0
# Orders, machines, mold rules, pipe specifications, constraints and results.

from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from math import ceil


class OrderPriority(Enum):
    """Scheduling priority, most urgent first."""
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        """Sort key: 0 for URGENT through 3 for LOW."""
        return _PRIORITY_RANK[self]

    @property
    def weight(self) -> float:
        """Weight used by the balanced strategy (URGENT=4 ... LOW=1)."""
        return float(4 - _PRIORITY_RANK[self])


_PRIORITY_RANK: dict[OrderPriority, int] = {
    OrderPriority.URGENT: 0,
    OrderPriority.HIGH: 1,
    OrderPriority.MEDIUM: 2,
    OrderPriority.LOW: 3,
}


class OrderStatus(Enum):
    """Order lifecycle: PENDING -> IN_PRODUCTION -> COMPLETED, or CANCELLED."""
    PENDING = "PENDING"
    IN_PRODUCTION = "IN_PRODUCTION"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class ProductionOrder:
    """One production request for a pipe geometry and quantity.

    Orders are never mutated in place. Each pipeline stage (filter,
    prioritize, schedule) produces a new value via ``with_changes`` and
    keeps ``order_id`` as the join key back to the source row.

    Attributes:
        order_id: External order number (unique).
        company_model: Company model code, the business key for merging.
        customer_model: Customer model code (e.g. "FH-550/12.5-4295").
        customer_name: Customer name.
        delivery_date: Planned shipping date.
        delivery_period: Contractual delivery period.
        planned_quantity: Planned shipping quantity.
        quantity: Requested quantity (pieces).
        segments: Segments per piece; quantity x segments = production units.
        inner_diameter: Inner diameter, 0 means unconstrained.
        outer_diameter: Outer diameter, must be > 0 to schedule.
        daily_production: Units produced per day.
        production_days: Stated production days (used when rate is unknown).
        remaining_days: Stated remaining days.
        shipped_quantity: Quantity already shipped.
        unshipped_quantity: Quantity still to ship.
        machine_id: Assigned machine (set by the scheduler).
        pipe_status: Free-text pipe status.
        pipe_quantity: Raw pipe stock on hand.
        pipe_arrival_date: Expected pipe arrival date.
        injection_completed: Pre-processing (injection) completed count.
        notes: Free-text notes.
        priority: Scheduling priority.
        status: Lifecycle status.
        start_date: Scheduled start date.
        end_date: Scheduled end date.
        combined_ids: Ids of orders merged into this one for a shared run.
        row_number: Row in the source table, for messages.
    """
    order_id: str
    outer_diameter: float
    inner_diameter: float = 0.0
    company_model: str = ""
    customer_model: str = ""
    customer_name: str = ""
    delivery_date: date | None = None
    delivery_period: date | None = None
    planned_quantity: int = 0
    quantity: int = 0
    segments: int = 1
    daily_production: int = 0
    production_days: float = 0.0
    remaining_days: float = 0.0
    shipped_quantity: int = 0
    unshipped_quantity: int = 0
    machine_id: str = ""
    pipe_status: str = ""
    pipe_quantity: int = 0
    pipe_arrival_date: date | None = None
    injection_completed: int | None = None
    notes: str = ""
    priority: OrderPriority = OrderPriority.MEDIUM
    status: OrderStatus = OrderStatus.PENDING
    start_date: date | None = None
    end_date: date | None = None
    combined_ids: tuple[str, ...] = ()
    row_number: int = 0

    def with_changes(self, **changes) -> "ProductionOrder":
        """Return a copy of this order with the given fields replaced."""
        return replace(self, **changes)

    def total_units(self, quantity: int | None = None) -> int:
        """Production units for a quantity (defaults to the requested quantity)."""
        if quantity is None:
            quantity = self.quantity
        return quantity * self.segments

    def production_days_for(self, quantity: int) -> int:
        """Whole production days needed to make ``quantity`` pieces.

        Uses the daily production rate when it is known, otherwise the
        stated production days. Never returns less than one day so that
        a scheduled order always has start <= end.
        """
        if self.daily_production > 0:
            days = ceil(self.total_units(quantity) / self.daily_production)
        else:
            days = ceil(self.production_days)
        return max(1, days)

    def estimated_production_days(self) -> int:
        """Production days for the full unshipped quantity."""
        return self.production_days_for(self.unshipped_quantity)

    def has_enough_pipe(self) -> bool:
        """True when pipe stock covers the unshipped quantity."""
        return self.pipe_quantity >= self.unshipped_quantity

    def is_pipe_arrived(self, today: date) -> bool:
        """True when no arrival is pending (no date, or the date has passed)."""
        return self.pipe_arrival_date is None or self.pipe_arrival_date < today

    def is_due_within(self, today: date, days: int) -> bool:
        """True when the delivery date falls within ``days`` days of today."""
        if self.delivery_date is None:
            return False
        return self.delivery_date <= today + timedelta(days=days)

    def is_on_time(self) -> bool:
        """Scheduled end does not exceed delivery (no delivery date counts as on time)."""
        if self.delivery_date is None:
            return True
        return self.end_date is not None and self.end_date <= self.delivery_date

    def is_completed(self) -> bool:
        """Everything planned has shipped."""
        return self.planned_quantity > 0 and self.planned_quantity == self.shipped_quantity


@dataclass(frozen=True)
class Machine:
    """A physical production machine.

    Attributes:
        id: Machine identifier ("1" .. "7" in the default catalogue).
        name: Display name.
        capacity: Daily capacity in production units.
        efficiency: Efficiency multiplier.
        is_available: Whether the machine can take work.
        maintenance_date: Next planned maintenance.
    """
    id: str
    name: str
    capacity: int
    efficiency: float = 1.0
    is_available: bool = True
    maintenance_date: date | None = None


# Cone markers recognised in mold specification text
CONE_SMALL = "小锥"
CONE_LARGE = "大锥"


@dataclass(frozen=True)
class PipeSpecification:
    """A resolved inner/outer diameter pair.

    Attributes:
        inner_diameter: Inner diameter, 0 when unconstrained.
        outer_diameter: Outer diameter.
        is_large: Oversize marker was present.
        cone_type: "", CONE_SMALL or CONE_LARGE.
    """
    inner_diameter: float
    outer_diameter: float
    is_large: bool = False
    cone_type: str = ""

    @property
    def has_cones(self) -> bool:
        return self.cone_type != ""


@dataclass(frozen=True)
class MachineRule:
    """Static compatibility and changeover record for one mold on one machine.

    Attributes:
        machine_id: Machine the mold runs on.
        mold_id: Mold identifier.
        pipe_specs: Diameter specifications the mold accepts.
        description: Free-text description.
        changeover_hours: Mold changeover time in hours.
        pipe_change_hours: Pipe/connector changeover time in hours.
        interchangeable_with: Machines that can stand in for this one.
    """
    machine_id: str
    mold_id: str
    pipe_specs: tuple[PipeSpecification, ...]
    description: str = ""
    changeover_hours: int = 4
    pipe_change_hours: int = 12
    interchangeable_with: tuple[str, ...] = ()

    @property
    def outer_diameters(self) -> tuple[float, ...]:
        return tuple(spec.outer_diameter for spec in self.pipe_specs)

    @property
    def inner_diameters(self) -> tuple[float, ...]:
        return tuple(spec.inner_diameter for spec in self.pipe_specs)


@dataclass(frozen=True)
class SchedulingConstraints:
    """Per-run configuration bundle. Never mutated.

    Attributes:
        work_days_per_month: Working days per month.
        shift_hours: Hours per shift.
        buffer_days: Buffer days before delivery.
        respect_deadline: Reject placements that finish after delivery (time-first).
        consider_capacity: Take machine capacity into account.
        avoid_overtime: Avoid overtime production.
        balance_load: Balance load across machines.
    """
    work_days_per_month: int = 22
    shift_hours: int = 8
    buffer_days: int = 2
    respect_deadline: bool = True
    consider_capacity: bool = True
    avoid_overtime: bool = False
    balance_load: bool = True


@dataclass(frozen=True)
class MachineAssignment:
    """The assignment engine's decision for one order.

    Attributes:
        machine_id: Chosen machine.
        mold_id: Chosen mold.
        changeover_hours: Mold changeover hours.
        pipe_change_hours: Pipe changeover hours.
        total_setup_hours: Sum of both changeovers.
        cost: Scalar used for reporting and tie-breaking only.
    """
    machine_id: str
    mold_id: str
    changeover_hours: int
    pipe_change_hours: int
    total_setup_hours: int
    cost: float


@dataclass
class SchedulingResult:
    """Output of one scheduling run.

    Attributes:
        orders: Scheduled orders with machine and dates filled in.
        machine_schedule: Machine id to its orders in placement order.
        total_production_days: Sum of scheduled production days.
        utilization_rate: Scheduled output over total machine capacity.
        on_time_delivery_rate: Share of scheduled orders finishing by delivery.
        conflicts: Human-readable descriptions of orders that were not placed.
        strategy: Name of the strategy that produced the result.
    """
    orders: list[ProductionOrder] = field(default_factory=list)
    machine_schedule: dict[str, list[ProductionOrder]] = field(default_factory=dict)
    total_production_days: int = 0
    utilization_rate: float = 0.0
    on_time_delivery_rate: float = 0.0
    conflicts: list[str] = field(default_factory=list)
    strategy: str = ""

    def get_order(self, order_id: str) -> ProductionOrder | None:
        """Find a scheduled order by id.

        Args:
            order_id: Order identifier to find.

        Returns:
            The scheduled order, or None if it was not placed.
        """
        for order in self.orders:
            if order.order_id == order_id:
                return order
        return None

    @property
    def is_empty(self) -> bool:
        return not self.orders


@dataclass(frozen=True)
class SchedulingStatistics:
    """Summary counts over a set of orders."""
    total_orders: int
    completed_orders: int
    pending_orders: int
    urgent_orders: int
    total_quantity: int
    average_production_days: float
    machine_utilization: dict[str, float]
