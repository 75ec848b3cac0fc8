from __future__ import annotations
import json
import re
from pathlib import Path
from typing import Any, Dict, List
from pydantic import ValidationError as ModelValidationError
from .errors import PlanLoadError, UnknownPlanError
from .models import PlanFile
from .logging_setup import get_logger

log = get_logger("proxmux.plans")

_PLAN_NAME = re.compile(r"^[A-Za-z0-9_-]+$")

def list_plans(plans_dir: Path) -> List[str]:
    if not plans_dir.is_dir():
        return []
    return sorted(p.stem for p in plans_dir.glob("*.json") if p.is_file())

def plan_path(plans_dir: Path, name: str) -> Path:
    # plan names come from the command line; keep them inside plans_dir
    if not _PLAN_NAME.match(name):
        raise UnknownPlanError(name, list_plans(plans_dir))
    path = plans_dir / f"{name}.json"
    if not path.is_file():
        raise UnknownPlanError(name, list_plans(plans_dir))
    return path

def load_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PlanLoadError(f"Cannot read plan {path}: {e}")
    if not isinstance(data, dict):
        raise PlanLoadError(f"Plan root must be an object: {path}")
    return data

def load_plan_file(plans_dir: Path, name: str) -> PlanFile:
    path = plan_path(plans_dir, name)
    log.info("Loading plan: %s", path)
    try:
        plan = PlanFile.model_validate(load_json(path))
    except ModelValidationError as e:
        problems = ["%s: %s" % (".".join(str(p) for p in err["loc"]), err["msg"]) for err in e.errors()]
        raise PlanLoadError(f"Invalid plan {name!r}: " + "; ".join(problems))
    log.info("Plan %s declares %d action(s)", name, len(plan.actions))
    return plan
