from __future__ import annotations
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple
from .backup import BackupManager
from .context import ProvisionContext
from .errors import ValidationError
from .executor import ActionExecutor
from .models import ActionKind
from .network import NetworkProbe, PingProbe
from .package_manager import PackageManager, known_managers, package_manager_for
from .plan_loader import list_plans, load_plan_file, plan_path
from .planner import Action, Plan, build_from_file
from .privileged import FilesystemPrivilegedInstaller, PrivilegedInstaller, SyntaxChecker, VisudoChecker
from .process_runner import ProcessRunner
from .report import Report, RunState, Status
from .settings import Settings
from .validator import ValidationResult, Validator
from .logging_setup import get_logger

log = get_logger("proxmux.orch")

Confirm = Callable[[str], bool]

@dataclass
class Collaborators:
    packages: Dict[str, PackageManager]
    checkers: Dict[str, SyntaxChecker]
    privileged: PrivilegedInstaller
    network: NetworkProbe
    backups: BackupManager = field(default_factory=BackupManager)

    @classmethod
    def for_host(cls, settings: Settings) -> "Collaborators":
        runner = ProcessRunner(timeout=settings.command_timeout)
        return cls(
            packages={name: package_manager_for(name, runner) for name in known_managers()},
            checkers={"sudoers": VisudoChecker(runner)},
            privileged=FilesystemPrivilegedInstaller(),
            network=PingProbe(runner),
        )

def plan_summary(plan: Plan) -> str:
    lines = [f"Plan {plan.name}: {plan.description}".rstrip(": ")]
    lines.append(
        "  %d package(s), %d file(s), %d privileged rule(s)"
        % (plan.count(ActionKind.PACKAGE_INSTALL), plan.count(ActionKind.FILE_COPY),
           plan.count(ActionKind.PRIVILEGED_RULE_INSTALL))
    )
    for a in plan.actions:
        optional = "" if a.fatal else " [optional]"
        lines.append(f"  - {a.name}: {a.describe()}{optional}")
    return "\n".join(lines)

class Orchestrator:
    def __init__(self, settings: Settings, context: ProvisionContext,
                 collaborators: Optional[Collaborators] = None, *, confirm: Optional[Confirm] = None):
        self.settings = settings
        self.context = context
        self.collab = collaborators or Collaborators.for_host(settings)
        self.validator = Validator(self.collab.checkers)
        # without a prompt the gate only opens through assume_yes
        self.confirm: Confirm = confirm or (lambda _summary: False)
        self.state = RunState.AWAITING_CONFIRMATION
        self._stop = threading.Event()

    # ------------------------------------------------------------------ #
    def available_plans(self) -> List[str]:
        return list_plans(self.settings.plans_dir)

    def load(self, name: str) -> Plan:
        plan_file = load_plan_file(self.settings.plans_dir, name)
        base_dir = plan_path(self.settings.plans_dir, name).parent
        return build_from_file(name, plan_file, context=self.context, base_dir=base_dir)

    def _package_manager(self, plan: Plan) -> Optional[PackageManager]:
        return self.collab.packages.get(plan.package_manager or "")

    def check_guards(self, plan: Plan) -> None:
        if plan.platform and plan.platform != self.context.platform:
            raise ValidationError(f"plan targets {plan.platform}, host is {self.context.platform}")
        if plan.require_root is True and not self.context.is_root:
            raise ValidationError("plan must run as root (try sudo)")
        if plan.require_root is False and self.context.is_root:
            raise ValidationError("plan must not run as root; run it as the regular user")
        if plan.count(ActionKind.PACKAGE_INSTALL) and self._package_manager(plan) is None:
            raise ValidationError(f"no package manager {plan.package_manager!r} available")

    def preflight(self, plan: Plan) -> List[Tuple[Action, ValidationResult]]:
        """Validate every action; raises on guard failures, returns per-action outcomes."""
        self.check_guards(plan)
        return [(a, self.validator.validate(a)) for a in plan.actions]

    def dry_run(self, plan: Plan) -> dict:
        out = plan.to_dict()
        try:
            checks = self.preflight(plan)
        except ValidationError as e:
            out.update(ok=False, errors=[e.reason])
            return out
        for entry, (_action, res) in zip(out["actions"], checks):
            entry["valid"] = res.ok
            entry["reason"] = res.reason or None
        out["ok"] = all(res.ok for _a, res in checks)
        out["errors"] = [f"{a.name}: {res.reason}" for a, res in checks if not res.ok]
        return out

    def request_stop(self) -> None:
        log.warning("Stop requested; finishing the current action first")
        self._stop.set()

    # ------------------------------------------------------------------ #
    def _abort(self, report: Report, reason: str, remaining: List[Action]) -> Report:
        self.state = report.state = RunState.ABORTED
        report.abort_reason = reason
        report.not_run = [a.name for a in remaining]
        log.error("Run of %s aborted: %s", report.plan, reason)
        return report

    def run(self, plan: Plan, *, assume_yes: Optional[bool] = None) -> Report:
        report = Report(plan=plan.name)
        self._stop.clear()
        self.state = report.state = RunState.AWAITING_CONFIRMATION
        pending = list(plan.actions)

        try:
            checks = self.preflight(plan)
        except ValidationError as e:
            return self._abort(report, f"validation failed: {e.reason}", pending)
        rejected = [f"{a.name}: {res.reason}" for a, res in checks if not res.ok]
        if rejected:
            return self._abort(report, "validation failed: " + "; ".join(rejected), pending)

        yes = self.settings.assume_yes if assume_yes is None else assume_yes
        if not yes and not self.confirm(plan_summary(plan)):
            return self._abort(report, "confirmation declined", pending)

        self.state = report.state = RunState.RUNNING
        log.info("Running plan %s (%d actions)", plan.name, len(plan))
        executor = ActionExecutor(
            self.validator, self.collab.backups, self._package_manager(plan),
            self.collab.privileged, self.collab.network, probe_host=self.settings.probe_host,
        )

        for i, action in enumerate(pending):
            if self._stop.is_set():
                return self._abort(report, "interrupted", pending[i:])
            result = executor.execute(action)
            report.record(result)
            if result.status is Status.FAILED and action.fatal:
                return self._abort(report, f"{action.name} failed: {result.detail}", pending[i + 1:])

        self.state = report.state = RunState.COMPLETED
        log.info("Plan %s completed: %d ok, %d skipped, %d failed", plan.name,
                 report.count(Status.SUCCESS), report.count(Status.SKIPPED), report.count(Status.FAILED))
        return report
