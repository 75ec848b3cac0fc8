from __future__ import annotations
import hashlib
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from .errors import CheckerUnavailableError, ValidationError
from .models import ActionKind
from .planner import Action
from .privileged import SyntaxChecker
from .logging_setup import get_logger

log = get_logger("proxmux.validator")

# a leading "-" would reach apt-get/brew as an option
PACKAGE_NAME = re.compile(r"[A-Za-z0-9_][A-Za-z0-9_-]*")

@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    reason: str = ""

    @classmethod
    def passed(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: str) -> "ValidationResult":
        return cls(ok=False, reason=reason)

def sha256_of(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()

def _nearest_existing(path: Path) -> Path:
    p = path
    while not p.exists() and p != p.parent:
        p = p.parent
    return p

class Validator:
    """
    Checks one action against its constraints without touching anything.

    ``validate`` reports problems as a result; ``ensure_valid`` raises
    ``ValidationError``. A missing checker tool is always a rejection: there is
    no fallback rule set.
    """

    def __init__(self, checkers: Optional[Mapping[str, SyntaxChecker]] = None):
        self.checkers = dict(checkers or {})

    def validate(self, action: Action) -> ValidationResult:
        if action.kind is ActionKind.PACKAGE_INSTALL:
            return self._validate_package(action)
        if action.kind is ActionKind.FILE_COPY:
            return self._validate_copy(action)
        return self._validate_rule(action)

    def ensure_valid(self, action: Action) -> None:
        res = self.validate(action)
        if not res.ok:
            raise ValidationError(res.reason, action=action.name)

    # ------------------------------------------------------------------ #
    def _validate_package(self, action: Action) -> ValidationResult:
        if not action.package or not PACKAGE_NAME.fullmatch(action.package):
            return ValidationResult.rejected(
                f"package name {action.package!r} may only contain letters, digits, '-' and '_'"
                " and must not start with '-'")
        if action.verify_command and not PACKAGE_NAME.fullmatch(action.verify_command):
            return ValidationResult.rejected(f"verify_command {action.verify_command!r} must be a bare command name")
        return ValidationResult.passed()

    def _validate_source(self, action: Action) -> Optional[str]:
        src = action.source
        if src is None or not src.exists():
            return f"source {src} does not exist"
        if not src.is_file():
            return f"source {src} is not a regular file"
        if not os.access(src, os.R_OK):
            return f"source {src} is not readable"
        if action.sha256:
            try:
                actual = sha256_of(src)
            except OSError as e:
                return f"cannot hash {src}: {e.strerror or e}"
            if actual != action.sha256:
                return f"checksum mismatch for {src}: expected {action.sha256}, got {actual}"
        return None

    def _validate_copy(self, action: Action) -> ValidationResult:
        problem = self._validate_source(action)
        if problem:
            return ValidationResult.rejected(problem)

        dest = action.destination
        if dest.exists() and dest.is_dir():
            return ValidationResult.rejected(f"destination {dest} is a directory")
        anchor = _nearest_existing(dest.parent)
        if not anchor.is_dir():
            return ValidationResult.rejected(f"{anchor} is not a directory; cannot create {dest.parent}")
        # backups land beside the destination, so its directory must be writable too
        if not os.access(anchor, os.W_OK | os.X_OK):
            if anchor == dest.parent:
                return ValidationResult.rejected(f"destination directory {anchor} is not writable")
            return ValidationResult.rejected(f"cannot create {dest.parent}: {anchor} is not writable")
        return ValidationResult.passed()

    def _validate_rule(self, action: Action) -> ValidationResult:
        problem = self._validate_source(action)
        if problem:
            return ValidationResult.rejected(problem)

        checker = self.checkers.get(action.validation_rule or "")
        if checker is None:
            return ValidationResult.rejected(f"no syntax checker registered for {action.validation_rule!r}")

        try:
            content = action.source.read_bytes()
        except OSError as e:
            return ValidationResult.rejected(f"cannot read {action.source}: {e.strerror or e}")
        try:
            accepted = checker.check(content)
        except CheckerUnavailableError as e:
            return ValidationResult.rejected(e.reason)
        if not accepted:
            log.warning("Rejected %s: %s failed %s syntax check", action.name, action.source, action.validation_rule)
            return ValidationResult.rejected(f"{action.source} failed {action.validation_rule} syntax check")
        return ValidationResult.passed()
