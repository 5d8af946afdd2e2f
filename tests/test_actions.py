"""
Tests for the concrete actions — shell commands and file edits.

Shell actions run real /bin/sh commands; file actions work in tmp_path.
"""

import stat

import pytest

from hostprov.adapters.base import Action, Step
from hostprov.adapters.mock import MockAction
from hostprov.adapters.shell.command import ShellCommandAction
from hostprov.adapters.shell.filesystem import FileBlockAction, LineReplaceAction
from hostprov.core.engine.registry import StepRegistry
from hostprov.core.engine.runner import Runner
from hostprov.core.errors import ExecutionError, StepTimeoutError
from hostprov.core.models.host import Host


def _mode(path) -> int:
    return stat.S_IMODE(path.stat().st_mode)


# ── Base contract ────────────────────────────────────────────────────


class TestActionBase:
    def test_abstract(self):
        with pytest.raises(TypeError):
            Action("x")

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            MockAction("")

    def test_wiring_is_read_only(self):
        step = MockAction("a", depends_on=["b"], prompt="Go?", best_effort=True)
        assert step.depends_on == ("b",)
        assert step.prompt == "Go?"
        assert step.best_effort is True
        with pytest.raises(AttributeError):
            step.name = "other"

    def test_step_from_callables(self, host):
        calls = []
        step = Step("adhoc", apply=lambda h: calls.append(h) or "done")
        assert step.precondition(host) is False
        assert step.apply(host) == "done"
        assert calls == [host]

    def test_mock_converges(self, host):
        step = MockAction("a")
        assert not step.precondition(host)
        step.apply(host)
        assert step.precondition(host)
        step.reset()
        assert not step.precondition(host)
        assert step.call_count == 0


# ── Shell command ────────────────────────────────────────────────────


class TestShellCommand:
    def test_success_returns_last_line(self, host):
        action = ShellCommandAction("echo", "echo one; echo two")
        assert action.apply(host) == "two"

    def test_no_check_never_satisfied(self, host):
        assert ShellCommandAction("x", "true").precondition(host) is False

    def test_check_exit_code(self, host):
        assert ShellCommandAction("x", "true", check="true").precondition(host) is True
        assert ShellCommandAction("x", "true", check="false").precondition(host) is False

    def test_check_uses_marker_file(self, host, tmp_path):
        marker = tmp_path / "done"
        action = ShellCommandAction("touch", f"touch {marker}", check=f"test -f {marker}")
        assert not action.precondition(host)
        action.apply(host)
        assert action.precondition(host)

    def test_non_zero_exit(self, host):
        action = ShellCommandAction("fail", "echo nope >&2; exit 4")
        with pytest.raises(ExecutionError) as exc:
            action.apply(host)
        assert exc.value.exit_code == 4
        assert "nope" in str(exc.value)

    def test_environment_overrides(self):
        host = Host(env={"FROM_HOST": "h"})
        action = ShellCommandAction("env", 'echo "$FROM_HOST$FROM_STEP"', env={"FROM_STEP": "s"})
        assert action.apply(host) == "hs"

    def test_timeout(self):
        action = ShellCommandAction("slow", "sleep 5", timeout=0.2)
        with pytest.raises(StepTimeoutError) as exc:
            action.apply(Host())
        assert exc.value.timeout == 0.2
        assert isinstance(exc.value, TimeoutError)

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            ShellCommandAction("x", "")


# ── File block ───────────────────────────────────────────────────────


BLOCK = "Host *\n  KexAlgorithms +diffie-hellman-group14-sha1\n"


class TestFileBlock:
    def test_creates_directory_and_file(self, host, tmp_path):
        path = tmp_path / ".ssh" / "config"
        action = FileBlockAction("ssh", path, BLOCK, marker="diffie-hellman-group14-sha1")

        assert not action.precondition(host)
        action.apply(host)

        assert path.read_text() == BLOCK
        assert _mode(path) == 0o600
        assert _mode(path.parent) == 0o700
        assert action.precondition(host)

    def test_appends_to_existing(self, host, tmp_path):
        path = tmp_path / "config"
        path.write_text("Host github.com\n  User git\n")
        FileBlockAction("ssh", path, BLOCK).apply(host)

        text = path.read_text()
        assert text.startswith("Host github.com")
        assert text.endswith(BLOCK)

    def test_marker_defaults_to_first_line(self, tmp_path):
        action = FileBlockAction("ssh", tmp_path / "c", "\n\nfirst line\nsecond\n")
        assert action.marker == "first line"

    def test_present_block_satisfies(self, host, tmp_path):
        path = tmp_path / "config"
        path.write_text(BLOCK)
        assert FileBlockAction("ssh", path, BLOCK).precondition(host)

    def test_empty_block_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            FileBlockAction("ssh", tmp_path / "c", "  \n")

    def test_unknown_owner_leaves_no_file(self, host, tmp_path):
        path = tmp_path / "config"
        action = FileBlockAction("ssh", path, BLOCK, owner="hostprov-no-such-user")
        with pytest.raises(LookupError):
            action.apply(host)

        assert not path.exists()
        assert list(tmp_path.iterdir()) == []
        assert not action.precondition(host)

    def test_unknown_owner_keeps_existing_content(self, host, tmp_path):
        path = tmp_path / "config"
        path.write_text("Host github.com\n")
        action = FileBlockAction("ssh", path, BLOCK, owner="hostprov-no-such-user")
        with pytest.raises(LookupError):
            action.apply(host)

        assert path.read_text() == "Host github.com\n"
        assert [p.name for p in tmp_path.iterdir()] == ["config"]
        assert not action.precondition(host)

    def test_unknown_owner_removes_created_directory(self, host, tmp_path):
        path = tmp_path / ".ssh" / "config"
        with pytest.raises(LookupError):
            FileBlockAction("ssh", path, BLOCK, owner="hostprov-no-such-user").apply(host)
        assert not path.parent.exists()


# ── Line replace ─────────────────────────────────────────────────────


SSHD = "Port 22\nPasswordAuthentication yes\nUsePAM yes\n"


class TestLineReplace:
    def _action(self, path, **kwargs) -> LineReplaceAction:
        return LineReplaceAction(
            "no-passwords",
            path,
            r"^PasswordAuthentication yes",
            "PasswordAuthentication no",
            **kwargs,
        )

    def test_rewrites_matching_line(self, host, tmp_path):
        path = tmp_path / "sshd_config"
        path.write_text(SSHD)
        action = self._action(path)

        assert not action.precondition(host)
        action.apply(host)
        assert path.read_text() == "Port 22\nPasswordAuthentication no\nUsePAM yes\n"
        assert action.precondition(host)

    def test_missing_file_satisfied(self, host, tmp_path):
        assert self._action(tmp_path / "absent").precondition(host)

    def test_anchor_ignores_commented_line(self, host, tmp_path):
        path = tmp_path / "sshd_config"
        path.write_text("#PasswordAuthentication yes\n")
        assert self._action(path).precondition(host)

    def test_follow_up_runs(self, host, tmp_path):
        path = tmp_path / "sshd_config"
        path.write_text(SSHD)
        marker = tmp_path / "reloaded"
        self._action(path, then=f"touch {marker}").apply(host)
        assert marker.exists()

    def test_follow_up_failure(self, host, tmp_path):
        path = tmp_path / "sshd_config"
        path.write_text(SSHD)
        with pytest.raises(ExecutionError) as exc:
            self._action(path, then="exit 5").apply(host)
        assert exc.value.exit_code == 5

    def test_follow_up_failure_restores_file(self, host, tmp_path):
        path = tmp_path / "sshd_config"
        path.write_text(SSHD)
        action = self._action(path, then="exit 5")
        with pytest.raises(ExecutionError):
            action.apply(host)

        assert path.read_text() == SSHD
        assert not action.precondition(host)

    def test_failed_follow_up_retried_next_run(self, host, tmp_path):
        path = tmp_path / "sshd_config"
        path.write_text(SSHD)
        flag = tmp_path / "seen"
        action = self._action(path, then=f"test -f {flag} || {{ touch {flag}; exit 1; }}")
        registry = StepRegistry([action])

        first = Runner(geteuid=lambda: 0).run(registry, host)
        second = Runner(geteuid=lambda: 0).run(registry, host)

        assert first.get("no-passwords").failed
        assert second.get("no-passwords").succeeded
        assert "PasswordAuthentication no" in path.read_text()
