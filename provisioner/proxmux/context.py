from __future__ import annotations
import getpass
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from .settings import Settings

@dataclass(frozen=True)
class ProvisionContext:
    """
    Host facts the provisioner depends on.

    Built once at the entry point and handed to the orchestrator, so nothing
    below the CLI/API looks at the current user, directory or platform on
    its own. Tests construct it directly.
    """
    user: str
    home: Path
    euid: int
    platform: str  # "linux" | "macos"

    @property
    def is_root(self) -> bool:
        return self.euid == 0

    def expand(self, raw: str) -> Path:
        """Resolve a leading "~" against this context's home, not the process'."""
        if raw == "~":
            return self.home
        if raw.startswith("~/"):
            return self.home / raw[2:]
        return Path(raw)

    @classmethod
    def from_host(cls, settings: Settings) -> "ProvisionContext":
        home = settings.home or Path.home()
        return cls(
            user=getpass.getuser(),
            home=home,
            euid=os.geteuid(),
            platform=host_platform(),
        )

def host_platform() -> str:
    return "macos" if sys.platform == "darwin" else "linux"
