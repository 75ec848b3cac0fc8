from __future__ import annotations
import subprocess
from dataclasses import dataclass
from typing import List, Optional
from .errors import ExecutionError, ProvisionTimeoutError
from .logging_setup import get_logger

log = get_logger("proxmux.proc")

@dataclass
class CommandResult:
    cmd: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

class ProcessRunner:
    """Runs external tools synchronously; no child outlives its timeout."""

    def __init__(self, timeout: float = 10.0, *, kill_grace: float = 2.0):
        self.timeout = timeout
        self.kill_grace = kill_grace

    def run(self, cmd: List[str], *, timeout: Optional[float] = None, env: Optional[dict] = None) -> CommandResult:
        limit = self.timeout if timeout is None else timeout
        log.debug("Running (timeout=%ss): %s", limit, " ".join(cmd))
        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True,
                                    stdin=subprocess.DEVNULL, env=env)
        except FileNotFoundError:
            raise ExecutionError(f"{cmd[0]} not found")
        except PermissionError:
            raise ExecutionError(f"{cmd[0]} is not executable")

        try:
            stdout, stderr = proc.communicate(timeout=limit)
        except subprocess.TimeoutExpired:
            self._terminate(proc, cmd)
            raise ProvisionTimeoutError(cmd, limit)

        if stdout:
            log.debug("%s stdout: %s", cmd[0], stdout[-4000:])
        if stderr:
            log.debug("%s stderr: %s", cmd[0], stderr[-4000:])
        return CommandResult(cmd=list(cmd), returncode=proc.returncode, stdout=stdout, stderr=stderr)

    def _terminate(self, proc: subprocess.Popen, cmd: List[str]) -> None:
        log.warning("Stopping %s (pid=%s) after timeout", cmd[0], proc.pid)
        proc.terminate()
        try:
            proc.communicate(timeout=self.kill_grace)
        except subprocess.TimeoutExpired:
            log.warning("Killing %s (pid=%s)", cmd[0], proc.pid)
            proc.kill()
            proc.communicate()
