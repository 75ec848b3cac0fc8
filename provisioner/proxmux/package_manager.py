from __future__ import annotations
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Type
from .process_runner import ProcessRunner
from .logging_setup import get_logger

log = get_logger("proxmux.packages")


class PackageManager(ABC):
    """Narrow interface to the host package manager.

    ``install`` and ``refresh`` return the tool's exit status; only zero is
    success. Timeouts surface as ``ProvisionTimeoutError`` from the runner.
    """

    name = "abstract"

    @abstractmethod
    def is_installed(self, package: str) -> bool: ...

    @abstractmethod
    def install(self, package: str) -> int: ...

    @abstractmethod
    def refresh(self) -> int: ...


class AptPackageManager(PackageManager):
    name = "apt"

    def __init__(self, runner: ProcessRunner):
        self.runner = runner
        self._env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")

    def is_installed(self, package: str) -> bool:
        res = self.runner.run(["dpkg-query", "-W", "-f=${Status}", package])
        return res.ok and "install ok installed" in res.stdout

    def install(self, package: str) -> int:
        log.info("apt-get install %s", package)
        return self.runner.run(["apt-get", "install", "-y", package], env=self._env).returncode

    def refresh(self) -> int:
        log.info("Updating apt package lists")
        return self.runner.run(["apt-get", "update"], env=self._env).returncode


class BrewPackageManager(PackageManager):
    name = "brew"

    def __init__(self, runner: ProcessRunner):
        self.runner = runner
        self._env = dict(os.environ, HOMEBREW_NO_AUTO_UPDATE="1")

    def is_installed(self, package: str) -> bool:
        return self.runner.run(["brew", "list", "--formula", package], env=self._env).ok

    def install(self, package: str) -> int:
        log.info("brew install %s", package)
        return self.runner.run(["brew", "install", package], env=self._env).returncode

    def refresh(self) -> int:
        log.info("Updating Homebrew")
        return self.runner.run(["brew", "update"], env=self._env).returncode


_MANAGERS: Dict[str, Type[PackageManager]] = {
    AptPackageManager.name: AptPackageManager,
    BrewPackageManager.name: BrewPackageManager,
}

DEFAULT_FOR_PLATFORM = {"linux": "apt", "macos": "brew"}


def package_manager_for(name: str, runner: ProcessRunner) -> PackageManager:
    try:
        cls = _MANAGERS[name]
    except KeyError:
        raise ValueError(f"Unsupported package manager {name!r} (known: {sorted(_MANAGERS)})")
    return cls(runner)


def known_managers() -> List[str]:
    return sorted(_MANAGERS)
