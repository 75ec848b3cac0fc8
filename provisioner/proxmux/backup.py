from __future__ import annotations
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
from .logging_setup import get_logger

log = get_logger("proxmux.backup")

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

def replace_with_copy(src: Path, target: Path, *, preserve: bool = False) -> None:
    """Copy ``src`` to a temp file beside ``target``, then rename it over ``target``.

    An existing read-only ``target`` is replaced, never opened for writing.
    With ``preserve`` the mode and timestamps of ``src`` are kept (``copy2``).
    """
    fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    os.close(fd)
    try:
        (shutil.copy2 if preserve else shutil.copyfile)(src, tmp)
        os.replace(tmp, target)
    except OSError:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise

@dataclass(frozen=True)
class Backup:
    original_path: Path
    backup_path: Path
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            "original_path": str(self.original_path),
            "backup_path": str(self.backup_path),
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
        }

class BackupManager:
    """
    Snapshots a file before it is overwritten.

    Backups sit next to the original as ``<name>.backup.<YYYYmmdd_HHMMSS>``.
    They are never rotated or removed; two backups in the same second share
    a name and the later one wins.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or datetime.now

    def backup_path_for(self, path: Path, ts: datetime) -> Path:
        return path.with_name(f"{path.name}.backup.{ts.strftime(TIMESTAMP_FORMAT)}")

    def backup(self, path: Path) -> Optional[Backup]:
        if not path.exists():
            return None
        ts = self.clock().replace(microsecond=0)
        target = self.backup_path_for(path, ts)
        replace_with_copy(path, target, preserve=True)
        log.info("Backed up %s to %s", path, target)
        return Backup(original_path=path, backup_path=target, timestamp=ts)
