"""
Tests for the Validator: pure pre-execution checks per action kind.
"""

import hashlib

import pytest

from proxmux.errors import ValidationError
from proxmux.models import ActionKind
from proxmux.planner import Action
from proxmux.validator import Validator
from tests.fakes import FakeChecker


def copy_action(src, dest, **kw):
    return Action(name="copy", kind=ActionKind.FILE_COPY, source=src, destination=dest, permissions=0o644, **kw)


def rule_action(src, dest, rule="sudoers"):
    return Action(name="rule", kind=ActionKind.PRIVILEGED_RULE_INSTALL, source=src, destination=dest,
                  permissions=0o440, validation_rule=rule)


def package_action(name):
    return Action(name=name, kind=ActionKind.PACKAGE_INSTALL, package=name)


class TestFileCopy:

    def test_valid_copy(self, templates, home):
        res = Validator().validate(copy_action(templates / "profile", home / ".profile"))
        assert res.ok

    def test_missing_source(self, tmp_path, home):
        res = Validator().validate(copy_action(tmp_path / "nope", home / ".profile"))
        assert not res.ok
        assert "does not exist" in res.reason

    def test_source_is_directory(self, tmp_path, home):
        res = Validator().validate(copy_action(tmp_path, home / ".profile"))
        assert not res.ok
        assert "regular file" in res.reason

    def test_missing_parent_is_creatable(self, templates, home):
        res = Validator().validate(copy_action(templates / "profile", home / "bin" / "deep" / "tool.sh"))
        assert res.ok

    def test_parent_blocked_by_file(self, templates, home):
        (home / "bin").write_text("not a directory")
        res = Validator().validate(copy_action(templates / "profile", home / "bin" / "tool.sh"))
        assert not res.ok
        assert "not a directory" in res.reason

    def test_destination_is_directory(self, templates, home):
        (home / ".config").mkdir()
        res = Validator().validate(copy_action(templates / "profile", home / ".config"))
        assert not res.ok

    def test_checksum_match(self, templates, home):
        digest = hashlib.sha256((templates / "profile").read_bytes()).hexdigest()
        res = Validator().validate(copy_action(templates / "profile", home / ".profile", sha256=digest))
        assert res.ok

    def test_checksum_mismatch(self, templates, home):
        res = Validator().validate(copy_action(templates / "profile", home / ".profile", sha256="0" * 64))
        assert not res.ok
        assert "checksum mismatch" in res.reason


class TestPackageInstall:

    @pytest.mark.parametrize("name", ["curl", "lm-sensors", "zsh_autosuggestions", "python3"])
    def test_allowed_names(self, name):
        assert Validator().validate(package_action(name)).ok

    @pytest.mark.parametrize("name", ["curl; rm -rf /", "$(reboot)", "pkg name", "../etc", "", "g++",
                                      "curl\n", "-y", "--allow-downgrades"])
    def test_injection_rejected(self, name):
        res = Validator().validate(package_action(name))
        assert not res.ok

    def test_leading_dash_is_named_in_reason(self):
        assert "must not start with '-'" in Validator().validate(package_action("-y")).reason

    def test_verify_command_must_be_bare_name(self):
        action = Action(name="zsh", kind=ActionKind.PACKAGE_INSTALL, package="zsh", verify_command="/bin/zsh -c id")
        res = Validator().validate(action)
        assert not res.ok
        assert "verify_command" in res.reason

    def test_ensure_valid_raises(self):
        with pytest.raises(ValidationError) as exc:
            Validator().ensure_valid(package_action("a;b"))
        assert exc.value.action == "a;b"


class TestPrivilegedRule:

    def test_valid_rule(self, templates):
        checker = FakeChecker()
        res = Validator({"sudoers": checker}).validate(rule_action(templates / "sudoers-ipmi", "/etc/sudoers.d/x"))

        assert res.ok
        assert checker.calls == [(templates / "sudoers-ipmi").read_bytes()]

    def test_syntax_error_rejected(self, templates):
        res = Validator({"sudoers": FakeChecker()}).validate(rule_action(templates / "sudoers-bad", "/etc/sudoers.d/x"))
        assert not res.ok
        assert "syntax check" in res.reason

    def test_checker_unavailable_is_rejection(self, templates):
        v = Validator({"sudoers": FakeChecker(available=False)})
        res = v.validate(rule_action(templates / "sudoers-ipmi", "/etc/sudoers.d/x"))
        assert not res.ok
        assert "visudo not found" in res.reason

    def test_unknown_rule_type(self, templates):
        v = Validator({"sudoers": FakeChecker()})
        res = v.validate(rule_action(templates / "sudoers-ipmi", "/etc/polkit-1/rules.d/x", rule="polkit"))
        assert not res.ok
        assert "polkit" in res.reason

    def test_missing_source_never_reaches_checker(self, tmp_path):
        checker = FakeChecker()
        res = Validator({"sudoers": checker}).validate(rule_action(tmp_path / "nope", "/etc/sudoers.d/x"))
        assert not res.ok
        assert checker.calls == []
