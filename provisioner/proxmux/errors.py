from __future__ import annotations
from typing import Iterable, List


class ProvisionError(Exception):
    """Base class for every error the provisioner reports to the operator."""


class PlanLoadError(ProvisionError):
    """Plan file is missing, unreadable or malformed."""


class UnknownPlanError(PlanLoadError):
    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = sorted(available)
        hint = f" (available: {', '.join(self.available)})" if self.available else ""
        super().__init__(f"Unknown plan {name!r}{hint}")


class ConflictError(ProvisionError):
    """Raised at plan-build time; no action has run."""

    def __init__(self, conflicts: List[str]):
        self.conflicts = list(conflicts)
        super().__init__("Plan conflicts: " + "; ".join(self.conflicts))


class ValidationError(ProvisionError):
    """Action rejected before any side effect."""

    def __init__(self, reason: str, *, action: str | None = None):
        self.reason = reason
        self.action = action
        super().__init__(f"{action}: {reason}" if action else reason)


class CheckerUnavailableError(ValidationError):
    """The external syntax checker for a privileged rule cannot be run."""


class ExecutionError(ProvisionError):
    """Side effect partially or fully applied, then failed."""

    def __init__(self, reason: str, *, partial: bool = False):
        self.reason = reason
        self.partial = partial
        super().__init__(reason)


class ProvisionTimeoutError(ExecutionError):
    def __init__(self, cmd: List[str], timeout: float):
        self.cmd = list(cmd)
        self.timeout = timeout
        super().__init__(f"{cmd[0]} timed out after {timeout:g}s")
