from __future__ import annotations
import os
import shutil
from typing import Optional
from .backup import BackupManager, replace_with_copy
from .errors import ExecutionError, ValidationError
from .models import ActionKind
from .network import NetworkProbe
from .package_manager import PackageManager
from .planner import Action
from .privileged import PrivilegedInstaller
from .report import ExecutionResult, Status
from .validator import Validator
from .logging_setup import get_logger

log = get_logger("proxmux.executor")

class ActionExecutor:
    """
    Applies one action at a time and turns every outcome into an ExecutionResult.

    One executor serves one run: the network probe and the package index
    refresh happen at most once per instance.
    """

    def __init__(
        self,
        validator: Validator,
        backups: BackupManager,
        packages: Optional[PackageManager],
        privileged: PrivilegedInstaller,
        network: NetworkProbe,
        *,
        probe_host: str = "8.8.8.8",
    ):
        self.validator = validator
        self.backups = backups
        self.packages = packages
        self.privileged = privileged
        self.network = network
        self.probe_host = probe_host
        self._network_ok: Optional[bool] = None
        self._index_refreshed = False

    def execute(self, action: Action) -> ExecutionResult:
        log.info("Executing %s: %s", action.name, action.describe())
        try:
            if action.kind is ActionKind.PACKAGE_INSTALL:
                res = self._install_package(action)
            elif action.kind is ActionKind.FILE_COPY:
                res = self._copy_file(action)
            else:
                res = self._install_rule(action)
        except ExecutionError as e:
            log.debug("%s failed", action.name, exc_info=True)
            res = ExecutionResult(action, Status.FAILED, e.reason, partial=e.partial)
        except ValidationError as e:
            res = ExecutionResult(action, Status.FAILED, f"rejected: {e.reason}")

        log_fn = log.warning if res.status is Status.FAILED else log.info
        log_fn("%s -> %s%s", action.name, res.status.value, f" ({res.detail})" if res.detail else "")
        return res

    # ------------------------------------------------------------------ #
    def _network_reachable(self) -> bool:
        if self._network_ok is None:
            self._network_ok = self.network.probe(self.probe_host)
        return self._network_ok

    def _install_package(self, action: Action) -> ExecutionResult:
        if self.packages is None:
            raise ExecutionError("no package manager configured for this plan")
        self.validator.ensure_valid(action)

        if self.packages.is_installed(action.package):
            return ExecutionResult(action, Status.SKIPPED, "already installed")

        if not self._network_reachable():
            raise ExecutionError(f"network unreachable (probe {self.probe_host})")

        if not self._index_refreshed:
            rc = self.packages.refresh()
            if rc != 0:
                # a stale index still installs most packages; keep going
                log.warning("%s index refresh exited with %s", self.packages.name, rc)
            self._index_refreshed = True

        rc = self.packages.install(action.package)
        if rc != 0:
            raise ExecutionError(f"{self.packages.name} install {action.package} exited with status {rc}")
        if action.verify_command and shutil.which(action.verify_command) is None:
            raise ExecutionError(f"{action.package} installed but command {action.verify_command!r} not found")
        return ExecutionResult(action, Status.SUCCESS, "installed")

    def _copy_file(self, action: Action) -> ExecutionResult:
        src, dest = action.source, action.destination
        if not os.access(src, os.R_OK):
            raise ExecutionError(f"source {src} is not readable")

        try:
            backup = self.backups.backup(dest)
        except OSError as e:
            raise ExecutionError(f"backup of {dest} failed: {e.strerror or e}")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            # a read-only destination from an earlier run is replaced, not reopened
            replace_with_copy(src, dest)
        except OSError as e:
            raise ExecutionError(f"copy to {dest} failed: {e.strerror or e}")

        try:
            os.chmod(dest, action.permissions)
        except OSError as e:
            return ExecutionResult(
                action, Status.FAILED,
                f"partial: copied but chmod {action.permissions:04o} failed: {e.strerror or e}",
                backup=backup, partial=True,
            )

        detail = f"backup {backup.backup_path.name}" if backup else "created"
        return ExecutionResult(action, Status.SUCCESS, detail, backup=backup)

    def _install_rule(self, action: Action) -> ExecutionResult:
        # re-check right before writing; the source may have changed since pre-flight
        self.validator.ensure_valid(action)
        try:
            content = action.source.read_bytes()
        except OSError as e:
            raise ExecutionError(f"cannot read {action.source}: {e.strerror or e}")

        if self.privileged.is_current(content, action.destination, action.permissions):
            return ExecutionResult(action, Status.SKIPPED, "rule already in place")

        self.privileged.install(content, action.destination, action.permissions)
        return ExecutionResult(action, Status.SUCCESS, f"installed with mode {action.permissions:04o}")
