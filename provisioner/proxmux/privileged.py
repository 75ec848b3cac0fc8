"""
Privileged rule handling
------------------------
Syntax checkers for access-control rules (sudoers today) and the installer
capability that writes accepted rules into their privileged location.

The core never writes a privileged file itself: the host grants that through a
``PrivilegedInstaller``. Tests pass a fake that records calls instead of
touching real system policy.
"""

from __future__ import annotations
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from .errors import CheckerUnavailableError, ExecutionError
from .process_runner import ProcessRunner
from .logging_setup import get_logger

log = get_logger("proxmux.privileged")

RULE_MODE = 0o440


class SyntaxChecker(ABC):
    @abstractmethod
    def check(self, content: bytes) -> bool:
        """Return True when ``content`` is a valid rule set.

        Raises ``CheckerUnavailableError`` if the checking tool cannot run.
        """


class VisudoChecker(SyntaxChecker):
    """Validates sudoers fragments with ``visudo -c -f``."""

    def __init__(self, runner: ProcessRunner, binary: str = "visudo"):
        self.runner = runner
        self.binary = binary

    def _resolve(self) -> str:
        path = shutil.which(self.binary)
        if path is None:
            raise CheckerUnavailableError(f"{self.binary} not found; refusing to install unchecked rules")
        return path

    def check(self, content: bytes) -> bool:
        visudo = self._resolve()
        fd, tmp = tempfile.mkstemp(prefix="proxmux-sudoers-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.chmod(tmp, RULE_MODE)
            try:
                res = self.runner.run([visudo, "-c", "-f", tmp])
            except ExecutionError as e:
                raise CheckerUnavailableError(f"{self.binary} could not run: {e.reason}")
        finally:
            os.unlink(tmp)
        if not res.ok:
            log.debug("visudo rejected rule: %s", (res.stderr or res.stdout).strip())
        return res.ok


class PrivilegedInstaller(ABC):
    """Capability to place a rule file where the host enforces it."""

    @abstractmethod
    def install(self, content: bytes, destination: Path, mode: int = RULE_MODE) -> None: ...

    def is_current(self, content: bytes, destination: Path, mode: int = RULE_MODE) -> bool:
        return False


class FilesystemPrivilegedInstaller(PrivilegedInstaller):
    """Writes the rule atomically: temp file with final mode, then rename."""

    def install(self, content: bytes, destination: Path, mode: int = RULE_MODE) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.chmod(tmp, mode)
            os.replace(tmp, destination)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise ExecutionError(f"cannot write {destination}: {e.strerror or e}")
        log.info("Installed privileged rule %s (mode %o)", destination, mode)

    def is_current(self, content: bytes, destination: Path, mode: int = RULE_MODE) -> bool:
        try:
            st = destination.stat()
            return (st.st_mode & 0o7777) == mode and destination.read_bytes() == content
        except OSError:
            return False
