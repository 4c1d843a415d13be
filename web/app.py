"""
Pipe Production Scheduler - FastAPI Web Backend
"""

import logging
import os
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from pipe_scheduler import __version__
from pipe_scheduler.assignment import assign_machine
from pipe_scheduler.constants import (
    SchedulerConfig,
    default_scheduler_config,
    load_scheduler_config,
    save_scheduler_config,
)
from pipe_scheduler.errors import SchedulingError
from pipe_scheduler.flow import SchedulingFlowResult, run_scheduling_flow
from pipe_scheduler.models import MachineRule, ProductionOrder, SchedulingConstraints
from pipe_scheduler.order_filter import adjust_priority, filter_orders
from pipe_scheduler.order_loader import convert_to_orders
from pipe_scheduler.plan_export import build_plan_workbook
from pipe_scheduler.reporting import (
    export_result_to_dict,
    export_statistics,
    generate_schedule_summary,
    validate_schedule,
)
from pipe_scheduler.scheduler import SchedulingStrategy, generate_statistics, run_all_strategies
from pipe_scheduler.spec_parser import parse_from_customer_model, parse_pipe_specs
from pipe_scheduler.strategy_evaluation import (
    evaluate_result,
    generate_evaluation_report,
    rank_strategies,
)
from pipe_scheduler.table_merger import merge_shipping_plan


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Pipe Production Scheduler",
    description="Order-to-machine scheduling for pipe production",
    version=__version__
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global data holders
config: SchedulerConfig = None


def get_base_path():
    return Path(__file__).parent.parent


def get_config_path():
    override = os.environ.get("PIPE_SCHEDULER_CONFIG")
    if override:
        return Path(override)
    return get_base_path() / "config" / "scheduler.yaml"


def get_scheduler_config() -> SchedulerConfig:
    """Current configuration, loading it on first use."""
    global config
    if config is None:
        config_path = get_config_path()
        if config_path.exists():
            config = load_scheduler_config(config_path)
        else:
            logger.warning("Config %s not found, using built-in catalogue", config_path)
            config = default_scheduler_config()
    return config


class ConstraintsUpdate(BaseModel):
    work_days_per_month: int = 22
    shift_hours: int = 8
    buffer_days: int = 2
    respect_deadline: bool = True
    consider_capacity: bool = True
    avoid_overtime: bool = False
    balance_load: bool = True


class ScheduleRequest(BaseModel):
    orders: list[dict[str, Any]]
    shipping_plan: Optional[list[dict[str, Any]]] = None
    strategy: Optional[str] = None
    schedule_date: Optional[str] = None
    constraints: Optional[ConstraintsUpdate] = None


class RuleUpdate(BaseModel):
    machine: str
    mold: str
    specs: str
    description: str = ""
    changeover_hours: int = 4
    pipe_change_hours: int = 12
    interchangeable_with: list[str] = []


class AssignRequest(BaseModel):
    outer_diameter: float = 0.0
    inner_diameter: float = 0.0
    customer_model: Optional[str] = None


@app.on_event("startup")
async def load_data():
    """Load scheduler configuration on startup."""
    cfg = get_scheduler_config()
    logger.info("Loaded %d machine rules for %d machines", len(cfg.rules), len(cfg.machines))


@app.get("/")
async def root():
    """Serve the main HTML page."""
    html_path = Path(__file__).parent / "static" / "index.html"
    if html_path.exists():
        return HTMLResponse(content=html_path.read_text(encoding="utf-8"), status_code=200)
    return HTMLResponse(content="<h1>Pipe Production Scheduler</h1>")


@app.get("/api/config")
async def get_config():
    """Get available configuration options."""
    cfg = get_scheduler_config()
    return {
        "version": __version__,
        "default_strategy": cfg.default_strategy,
        "strategies": [
            {"id": SchedulingStrategy.CAPACITY_FIRST.value, "name": "Capacity First"},
            {"id": SchedulingStrategy.TIME_FIRST.value, "name": "Time First"},
            {"id": SchedulingStrategy.ORDER_FIRST.value, "name": "Order First"},
            {"id": SchedulingStrategy.BALANCED.value, "name": "Balanced"},
        ],
        "machines": [
            {
                "id": m.id,
                "name": m.name,
                "capacity": m.capacity,
                "available": m.is_available,
            }
            for m in cfg.machines
        ],
        "constraints": ConstraintsUpdate(**vars(cfg.constraints)).model_dump(),
    }


# ============ RULE ENDPOINTS ============

@app.get("/api/rules")
async def get_rules():
    """Get the machine/mold rule table."""
    cfg = get_scheduler_config()
    return {
        "rules": [
            {
                "machine": r.machine_id,
                "mold": r.mold_id,
                "specs": cfg.rule_specs.get(r.mold_id, ""),
                "description": r.description,
                "changeover_hours": r.changeover_hours,
                "pipe_change_hours": r.pipe_change_hours,
                "interchangeable_with": list(r.interchangeable_with),
                "outer_diameters": list(r.outer_diameters),
            }
            for r in cfg.rules
        ]
    }


@app.post("/api/rules")
async def update_rules(rules: list[RuleUpdate]):
    """Replace the rule table and save it to the config file."""
    global config

    cfg = get_scheduler_config()
    new_rules = []
    rule_specs = {}

    for r in rules:
        pipe_specs = tuple(parse_pipe_specs(r.specs))
        if not pipe_specs:
            raise HTTPException(
                status_code=400, detail=f"Mold {r.mold}: no diameters in '{r.specs}'"
            )
        new_rules.append(MachineRule(
            machine_id=r.machine,
            mold_id=r.mold,
            pipe_specs=pipe_specs,
            description=r.description,
            changeover_hours=r.changeover_hours,
            pipe_change_hours=r.pipe_change_hours,
            interchangeable_with=tuple(r.interchangeable_with),
        ))
        rule_specs[r.mold] = r.specs

    new_config = SchedulerConfig(
        rules=new_rules,
        machines=cfg.machines,
        constraints=cfg.constraints,
        default_strategy=cfg.default_strategy,
        rule_specs=rule_specs,
    )

    save_scheduler_config(new_config, get_config_path())
    config = new_config

    return {"success": True, "message": f"Updated {len(new_rules)} rules"}


@app.post("/api/assign")
async def assign(request: AssignRequest):
    """Look up the machine and mold for a diameter pair or customer model."""
    cfg = get_scheduler_config()

    outer, inner = request.outer_diameter, request.inner_diameter
    if outer <= 0 and request.customer_model:
        spec = parse_from_customer_model(request.customer_model)
        if spec is None:
            raise HTTPException(
                status_code=400,
                detail=f"Cannot read diameters from '{request.customer_model}'"
            )
        outer, inner = spec.outer_diameter, spec.inner_diameter

    if outer <= 0:
        raise HTTPException(status_code=400, detail="Outer diameter must be positive")

    order = ProductionOrder(order_id="lookup", outer_diameter=outer, inner_diameter=inner)
    assignment = assign_machine(order, cfg.rules)
    if assignment is None:
        return {"assigned": False, "outer_diameter": outer, "inner_diameter": inner}

    return {
        "assigned": True,
        "outer_diameter": outer,
        "inner_diameter": inner,
        "machine_id": assignment.machine_id,
        "mold_id": assignment.mold_id,
        "total_setup_hours": assignment.total_setup_hours,
    }


# ============ SCHEDULING ENDPOINTS ============

def _rows_to_table(rows: list[dict[str, Any]]) -> pd.DataFrame:
    """JSON rows to a string table shaped like a loaded spreadsheet."""
    cleaned = [
        {str(k): "" if v is None else str(v) for k, v in row.items()}
        for row in rows
    ]
    return pd.DataFrame(cleaned).fillna("")


def _parse_request_date(value: Optional[str]) -> date:
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid date format")


def _parse_strategy(value: Optional[str], default: str) -> SchedulingStrategy:
    try:
        return SchedulingStrategy((value or default).upper())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown strategy: {value}")


def _request_constraints(request: ScheduleRequest, cfg: SchedulerConfig) -> SchedulingConstraints:
    if request.constraints is None:
        return cfg.constraints
    return SchedulingConstraints(**request.constraints.model_dump())


def _run_flow(request: ScheduleRequest) -> SchedulingFlowResult:
    cfg = get_scheduler_config()

    if not request.orders:
        raise HTTPException(status_code=400, detail="No orders submitted")

    schedule_date = _parse_request_date(request.schedule_date)
    strategy = _parse_strategy(request.strategy, cfg.default_strategy)
    shipping_plan = _rows_to_table(request.shipping_plan) if request.shipping_plan else None

    try:
        return run_scheduling_flow(
            _rows_to_table(request.orders),
            shipping_plan=shipping_plan,
            rules=cfg.rules,
            machines=cfg.machines,
            strategy=strategy,
            constraints=_request_constraints(request, cfg),
            today=schedule_date,
        )
    except SchedulingError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/api/schedule")
async def run_schedule(request: ScheduleRequest):
    """Run one scheduling strategy over the submitted order rows."""
    flow = _run_flow(request)
    result = flow.scheduling_result
    return {
        "success": True,
        "result": export_result_to_dict(result),
        "excluded": flow.filter_result.reasons,
        "statistics": export_statistics(generate_statistics(result.orders)),
        "violations": validate_schedule(result),
        "summary": generate_schedule_summary(result),
        "plan": flow.plan_table.to_dict(orient="records"),
    }


def _prepare_orders(
    request: ScheduleRequest,
    schedule_date: date
) -> list[ProductionOrder]:
    """Merge, decode, filter and prioritize the submitted rows."""
    table = _rows_to_table(request.orders)
    shipping_plan = None
    if request.shipping_plan:
        shipping_plan = _rows_to_table(request.shipping_plan)
        table = merge_shipping_plan(table, shipping_plan)

    orders = convert_to_orders(table, schedule_date)
    filter_result = filter_orders(orders)
    return adjust_priority(filter_result.schedulable, table, shipping_plan)


@app.post("/api/download/plan")
async def download_plan(request: ScheduleRequest):
    """Run one strategy and return the plan table as an Excel workbook."""
    flow = _run_flow(request)

    buffer = BytesIO()
    build_plan_workbook(flow.plan_table).save(buffer)
    filename = f"plan_{flow.scheduling_result.strategy.lower()}.xlsx"

    return Response(
        content=buffer.getvalue(),
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@app.post("/api/compare")
async def compare(request: ScheduleRequest):
    """Run every strategy on the same orders and rank the results."""
    cfg = get_scheduler_config()

    if not request.orders:
        raise HTTPException(status_code=400, detail="No orders submitted")

    schedule_date = _parse_request_date(request.schedule_date)

    try:
        orders = _prepare_orders(request, schedule_date)
        results = run_all_strategies(
            orders, _request_constraints(request, cfg), cfg.machines, cfg.rules, schedule_date
        )
    except SchedulingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    evaluations = [evaluate_result(result) for result in results.values()]
    ranked = rank_strategies(evaluations)

    return {
        "success": True,
        "best_strategy": ranked[0].strategy.value,
        "ranking": [ev.strategy.value for ev in ranked],
        "results": {
            strategy.value: export_result_to_dict(result)
            for strategy, result in results.items()
        },
        "report": generate_evaluation_report(evaluations),
    }


# Mount static files
static_path = Path(__file__).parent / "static"
if static_path.exists():
    app.mount("/static", StaticFiles(directory=str(static_path)), name="static")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
