from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from .backup import Backup
from .planner import Action

NO_ROLLBACK_NOTICE = (
    "Completed actions are never rolled back automatically; "
    "restore overwritten files from the listed backups if needed."
)

class Status(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"

class RunState(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"

@dataclass
class ExecutionResult:
    action: Action
    status: Status
    detail: str = ""
    backup: Optional[Backup] = None
    partial: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.name,
            "kind": self.action.kind.value,
            "target": self.action.target,
            "status": self.status.value,
            "detail": self.detail,
            "backup": self.backup.to_dict() if self.backup else None,
            "partial": self.partial,
        }

@dataclass
class Report:
    plan: str
    state: RunState = RunState.AWAITING_CONFIRMATION
    results: List[ExecutionResult] = field(default_factory=list)
    abort_reason: Optional[str] = None
    not_run: List[str] = field(default_factory=list)

    def record(self, result: ExecutionResult) -> None:
        self.results.append(result)

    def count(self, status: Status) -> int:
        return sum(1 for r in self.results if r.status is status)

    @property
    def failed(self) -> List[ExecutionResult]:
        return [r for r in self.results if r.status is Status.FAILED]

    @property
    def backups(self) -> List[Backup]:
        return [r.backup for r in self.results if r.backup is not None]

    @property
    def exit_code(self) -> int:
        if self.state is RunState.ABORTED:
            return 2
        return 1 if self.failed else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan": self.plan,
            "state": self.state.value,
            "abort_reason": self.abort_reason,
            "counts": {s.value: self.count(s) for s in Status},
            "results": [r.to_dict() for r in self.results],
            "not_run": list(self.not_run),
            "backups": [b.to_dict() for b in self.backups],
            "notice": NO_ROLLBACK_NOTICE,
        }

_MARK = {Status.SUCCESS: "ok", Status.SKIPPED: "skip", Status.FAILED: "FAIL"}

def render_text(report: Report) -> str:
    lines = [f"Plan {report.plan}: {report.state.value}"]
    if report.abort_reason:
        lines.append(f"  reason: {report.abort_reason}")
    for r in report.results:
        line = f"  [{_MARK[r.status]:>4}] {r.action.name}: {r.action.describe()}"
        if r.detail:
            line += f" - {r.detail}"
        lines.append(line)
    for name in report.not_run:
        lines.append(f"  [ -- ] {name}: not run")
    lines.append(
        "Summary: %d succeeded, %d skipped, %d failed"
        % (report.count(Status.SUCCESS), report.count(Status.SKIPPED), report.count(Status.FAILED))
    )
    if report.backups:
        lines.append("Backups:")
        lines.extend(f"  {b.original_path} -> {b.backup_path}" for b in report.backups)
    if report.results:
        lines.append(NO_ROLLBACK_NOTICE)
    return "\n".join(lines)
