"""Shared fixtures for the provisioner tests."""

import json
from pathlib import Path

import pytest

from proxmux.backup import BackupManager
from proxmux.context import ProvisionContext
from proxmux.orchestrator import Collaborators
from proxmux.settings import Settings
from tests.fakes import FakeChecker, FakeInstaller, FakePackageManager, FakeProbe


@pytest.fixture
def home(tmp_path):
    h = tmp_path / "home" / "u"
    h.mkdir(parents=True)
    return h


@pytest.fixture
def context(home):
    return ProvisionContext(user="u", home=home, euid=1000, platform="linux")


@pytest.fixture
def plans_dir(tmp_path):
    d = tmp_path / "plans"
    d.mkdir()
    return d


@pytest.fixture
def settings(plans_dir):
    return Settings(plans_dir=plans_dir, command_timeout=5.0)


@pytest.fixture
def packages():
    return FakePackageManager()


@pytest.fixture
def checker():
    return FakeChecker()


@pytest.fixture
def installer():
    return FakeInstaller()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def collab(packages, checker, installer, probe):
    return Collaborators(
        packages={"apt": packages},
        checkers={"sudoers": checker},
        privileged=installer,
        network=probe,
        backups=BackupManager(),
    )


@pytest.fixture
def write_plan(plans_dir):
    """Write ``<plans_dir>/<name>.json`` and return its path."""

    def _write(name: str, data: dict) -> Path:
        path = plans_dir / f"{name}.json"
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def templates(plans_dir):
    """Source files referenced by plans, relative to the plans directory."""
    d = plans_dir / "templates"
    d.mkdir()
    (d / "profile").write_text("export EDITOR=nano\n", encoding="utf-8")
    (d / "zshrc").write_text("setopt HIST_IGNORE_DUPS\n", encoding="utf-8")
    (d / "sudoers-ipmi").write_text("root ALL=(ALL) NOPASSWD: /usr/bin/ipmitool sdr list\n", encoding="utf-8")
    (d / "sudoers-bad").write_text("root ALL=(ALL INVALID\n", encoding="utf-8")
    return d
