"""
Tests for the apt/brew adapters and the network probe against a mocked runner.
"""

from unittest.mock import Mock

import pytest

from proxmux.errors import ExecutionError
from proxmux.network import PingProbe
from proxmux.package_manager import (
    AptPackageManager,
    BrewPackageManager,
    known_managers,
    package_manager_for,
)
from proxmux.process_runner import CommandResult


def runner_returning(returncode=0, stdout=""):
    runner = Mock()
    runner.run.return_value = CommandResult(cmd=[], returncode=returncode, stdout=stdout)
    return runner


class TestApt:

    def test_installed(self):
        runner = runner_returning(stdout="install ok installed")
        assert AptPackageManager(runner).is_installed("zsh")
        assert runner.run.call_args.args[0] == ["dpkg-query", "-W", "-f=${Status}", "zsh"]

    def test_removed_but_configured_is_not_installed(self):
        runner = runner_returning(stdout="deinstall ok config-files")
        assert not AptPackageManager(runner).is_installed("zsh")

    def test_unknown_package(self):
        assert not AptPackageManager(runner_returning(returncode=1)).is_installed("nope")

    def test_install_is_non_interactive(self):
        runner = runner_returning(returncode=100)
        assert AptPackageManager(runner).install("ipmitool") == 100

        call = runner.run.call_args
        assert call.args[0] == ["apt-get", "install", "-y", "ipmitool"]
        assert call.kwargs["env"]["DEBIAN_FRONTEND"] == "noninteractive"

    def test_refresh(self):
        runner = runner_returning()
        assert AptPackageManager(runner).refresh() == 0
        assert runner.run.call_args.args[0] == ["apt-get", "update"]


class TestBrew:

    def test_installed(self):
        runner = runner_returning()
        assert BrewPackageManager(runner).is_installed("tmux")
        assert runner.run.call_args.args[0] == ["brew", "list", "--formula", "tmux"]

    def test_install(self):
        runner = runner_returning()
        assert BrewPackageManager(runner).install("tmux") == 0
        assert runner.run.call_args.args[0] == ["brew", "install", "tmux"]
        assert runner.run.call_args.kwargs["env"]["HOMEBREW_NO_AUTO_UPDATE"] == "1"


def test_registry():
    assert known_managers() == ["apt", "brew"]
    assert isinstance(package_manager_for("brew", Mock()), BrewPackageManager)
    with pytest.raises(ValueError):
        package_manager_for("pacman", Mock())


class TestPingProbe:

    def test_reachable(self):
        runner = runner_returning()
        assert PingProbe(runner).probe("8.8.8.8")
        assert runner.run.call_args.args[0] == ["ping", "-c", "1", "8.8.8.8"]

    def test_no_reply(self):
        assert not PingProbe(runner_returning(returncode=2)).probe("8.8.8.8")

    def test_ping_missing(self):
        runner = Mock()
        runner.run.side_effect = ExecutionError("ping not found")
        assert not PingProbe(runner).probe("8.8.8.8")
