from __future__ import annotations
from abc import ABC, abstractmethod
from .errors import ExecutionError
from .process_runner import ProcessRunner
from .logging_setup import get_logger

log = get_logger("proxmux.network")

class NetworkProbe(ABC):
    @abstractmethod
    def probe(self, host: str) -> bool: ...

class PingProbe(NetworkProbe):
    def __init__(self, runner: ProcessRunner):
        self.runner = runner

    def probe(self, host: str) -> bool:
        try:
            ok = self.runner.run(["ping", "-c", "1", host]).ok
        except ExecutionError as e:
            log.warning("Network probe to %s failed: %s", host, e.reason)
            return False
        if not ok:
            log.warning("Network probe to %s got no reply", host)
        return ok
