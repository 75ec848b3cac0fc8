from __future__ import annotations
import threading
from typing import Callable, Optional
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel
from .context import ProvisionContext
from .errors import ConflictError, PlanLoadError, UnknownPlanError
from .orchestrator import Collaborators, Orchestrator
from .plan_loader import list_plans
from .planner import Plan
from .settings import Settings
from . import __version__

class RunResult(BaseModel):
    ok: bool
    exit_code: int
    report: dict

def create_app(settings: Settings, context: Optional[ProvisionContext] = None,
               collaborators: Optional[Callable[[], Collaborators]] = None) -> FastAPI:
    app = FastAPI(title="ProxMux Provisioner API", version=__version__)
    ctx = context or ProvisionContext.from_host(settings)
    make_collab = collaborators or (lambda: Collaborators.for_host(settings))
    # at most one run per process
    app.state.run_lock = threading.Lock()

    def _orchestrator() -> Orchestrator:
        # fresh per request: one orchestrator owns exactly one run
        return Orchestrator(settings, ctx, make_collab())

    def _load(orch: Orchestrator, name: str) -> Plan:
        try:
            return orch.load(name)
        except UnknownPlanError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except PlanLoadError as e:
            raise HTTPException(status_code=422, detail=str(e))
        except ConflictError as e:
            raise HTTPException(status_code=409, detail={"conflicts": e.conflicts})

    @app.get("/health")
    def health():
        return {"ok": True, "version": __version__}

    @app.get("/plans")
    def plans():
        return {"ok": True, "plans": list_plans(settings.plans_dir)}

    @app.get("/plans/{name}")
    def preview(name: str):
        # always a dry run; no side effects
        orch = _orchestrator()
        return orch.dry_run(_load(orch, name))

    @app.post("/plans/{name}/run", response_model=RunResult)
    def run(name: str, confirm: bool = Query(default=False, description="Must be true to pass the confirmation gate")):
        if not app.state.run_lock.acquire(blocking=False):
            raise HTTPException(status_code=409, detail="a run is already in progress")
        try:
            orch = _orchestrator()
            plan = _load(orch, name)
            report = orch.run(plan, assume_yes=confirm)
        finally:
            app.state.run_lock.release()
        return RunResult(ok=report.exit_code == 0, exit_code=report.exit_code, report=report.to_dict())

    return app
