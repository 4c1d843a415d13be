# Scheduling result reporting.
# Version: 1.0.0
# Plain-data export, text summaries and consistency checks for SchedulingResult.

from .models import ProductionOrder, SchedulingResult, SchedulingStatistics


def export_result_to_dict(result: SchedulingResult) -> dict:
    """Export a result to a dictionary for JSON serialization.

    Args:
        result: SchedulingResult to export.

    Returns:
        Dictionary with every scheduled order and the run metrics.
    """
    return {
        "strategy": result.strategy,
        "total_production_days": result.total_production_days,
        "utilization_rate": result.utilization_rate,
        "on_time_delivery_rate": result.on_time_delivery_rate,
        "conflicts": list(result.conflicts),
        "orders": [export_order(o) for o in result.orders],
        "machine_schedule": {
            machine_id: [o.order_id for o in orders]
            for machine_id, orders in result.machine_schedule.items()
        },
    }


def export_order(order: ProductionOrder) -> dict:
    """Export an order to dictionary format."""
    return {
        "order_id": order.order_id,
        "company_model": order.company_model,
        "customer_name": order.customer_name,
        "inner_diameter": order.inner_diameter,
        "outer_diameter": order.outer_diameter,
        "quantity": order.quantity,
        "segments": order.segments,
        "total_units": order.total_units(),
        "daily_production": order.daily_production,
        "machine_id": order.machine_id,
        "start_date": order.start_date.isoformat() if order.start_date else None,
        "end_date": order.end_date.isoformat() if order.end_date else None,
        "delivery_date": order.delivery_date.isoformat() if order.delivery_date else None,
        "priority": order.priority.value,
        "status": order.status.value,
        "combined_ids": list(order.combined_ids),
        "notes": order.notes,
    }


def export_statistics(stats: SchedulingStatistics) -> dict:
    return {
        "total_orders": stats.total_orders,
        "completed_orders": stats.completed_orders,
        "pending_orders": stats.pending_orders,
        "urgent_orders": stats.urgent_orders,
        "total_quantity": stats.total_quantity,
        "average_production_days": stats.average_production_days,
        "machine_utilization": dict(stats.machine_utilization),
    }


def generate_schedule_summary(result: SchedulingResult) -> str:
    """Generate a text summary of a scheduling result.

    Args:
        result: SchedulingResult to summarize.

    Returns:
        Multi-line string with schedule summary.
    """
    lines = []
    lines.append(f"=== Schedule Summary ({result.strategy or 'unknown strategy'}) ===")
    lines.append(f"Orders scheduled: {len(result.orders)}")
    lines.append(f"Total production days: {result.total_production_days}")
    lines.append(f"Utilization: {result.utilization_rate * 100:.1f}%")
    lines.append(f"On-time delivery: {result.on_time_delivery_rate * 100:.1f}%")
    lines.append("")

    for machine_id, orders in result.machine_schedule.items():
        lines.append(f"--- Machine {machine_id} ({len(orders)} orders) ---")
        for order in orders:
            lines.append(_format_order_line(order))

    if result.conflicts:
        lines.append("")
        lines.append(f"Conflicts ({len(result.conflicts)}):")
        for conflict in result.conflicts:
            lines.append(f"  {conflict}")

    return "\n".join(lines)


def _format_order_line(order: ProductionOrder) -> str:
    start = order.start_date.isoformat() if order.start_date else "-"
    end = order.end_date.isoformat() if order.end_date else "-"
    line = (
        f"  {order.order_id:<12} {start} -> {end}  "
        f"{order.quantity} pcs  {order.priority.value}"
    )
    if order.combined_ids:
        line += f"  (+{', '.join(order.combined_ids)})"
    return line


def validate_schedule(result: SchedulingResult) -> list[str]:
    """Check a result for internal consistency.

    Args:
        result: SchedulingResult to check.

    Returns:
        List of violations (empty if the schedule is consistent).
    """
    violations = []

    for order in result.orders:
        if order.start_date is None or order.end_date is None:
            violations.append(f"{order.order_id}: missing start or end date")
        elif order.start_date > order.end_date:
            violations.append(f"{order.order_id}: starts after it ends")

    for machine_id, orders in result.machine_schedule.items():
        dated = [o for o in orders if o.start_date and o.end_date]
        dated.sort(key=lambda o: o.start_date)
        for current, following in zip(dated, dated[1:]):
            if following.start_date <= current.end_date:
                violations.append(
                    f"machine {machine_id}: {current.order_id} overlaps {following.order_id}"
                )
        for order in orders:
            if order.machine_id != machine_id:
                violations.append(
                    f"{order.order_id}: listed on machine {machine_id} "
                    f"but assigned to {order.machine_id}"
                )

    scheduled_ids = sorted(o.order_id for o in result.orders)
    listed_ids = sorted(o.order_id for orders in result.machine_schedule.values() for o in orders)
    if listed_ids != scheduled_ids:
        violations.append("machine schedule does not match scheduled orders")

    return violations
