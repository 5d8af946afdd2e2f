"""
Tests for the CLI — exit codes, JSON output, prompts, ledger and
credential commands.

Runs real /bin/sh steps from small registry files; the root check is
disabled through the registry or ``--no-root-check``.
"""

import json
import os
import stat

from click.testing import CliRunner

from hostprov.main import cli


def _registry(tmp_path, steps: str, require_root: bool = False):
    path = tmp_path / "registry.yml"
    path.write_text(
        f"name: test\nrequire_root: {'true' if require_root else 'false'}\nsteps:\n{steps}"
    )
    return path


def _run(tmp_path, *args, input=None):
    runner = CliRunner()
    audit = tmp_path / "audit.ndjson"
    return runner.invoke(cli, ["run", "--audit-path", str(audit), *args], input=input)


OK_STEPS = """\
  - {name: first, type: shell, command: "true"}
  - {name: second, type: shell, command: "echo done", depends_on: [first]}
"""


# ── Version / help ───────────────────────────────────────────────────


class TestBasics:
    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "hostprov" in result.output

    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "plan", "history", "credential"):
            assert command in result.output

    def test_run_help_lists_options(self):
        result = CliRunner().invoke(cli, ["run", "--help"])
        assert "--yes-to-all" in result.output
        assert "--timeout" in result.output
        assert "--registry" in result.output


# ── Exit codes ───────────────────────────────────────────────────────


class TestRunExitCodes:
    def test_all_succeed(self, tmp_path):
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, OK_STEPS)))
        assert result.exit_code == 0, result.output
        assert "2 succeeded, 0 failed" in result.output

    def test_failure_without_dependents(self, tmp_path):
        steps = """\
  - {name: broken, type: shell, command: "exit 3"}
  - {name: fine, type: shell, command: "true"}
"""
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)))
        assert result.exit_code == 1
        assert "1 succeeded, 1 failed" in result.output

    def test_failure_with_blocked_dependents(self, tmp_path):
        steps = """\
  - {name: A, type: shell, command: "exit 1"}
  - {name: B, type: shell, command: "true", depends_on: [A]}
  - {name: C, type: shell, command: "true"}
"""
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)))
        assert result.exit_code == 2
        assert "blocked-by-dependency" in result.output
        assert "(1 blocked)" in result.output

    def test_cycle_aborts(self, tmp_path):
        marker = tmp_path / "ran"
        steps = f"""\
  - {{name: first, type: shell, command: "touch {marker}"}}
  - {{name: x, type: shell, command: "true", depends_on: [y]}}
  - {{name: y, type: shell, command: "true", depends_on: [x]}}
"""
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)))
        assert result.exit_code == 3
        assert "cycle" in result.output
        assert not marker.exists()

    def test_missing_registry_aborts(self, tmp_path):
        result = _run(tmp_path, "--registry", str(tmp_path / "absent.yml"))
        assert result.exit_code == 3

    def test_non_root_aborts(self, tmp_path, monkeypatch):
        monkeypatch.setattr(os, "geteuid", lambda: 1000)
        path = _registry(tmp_path, OK_STEPS, require_root=True)
        result = _run(tmp_path, "--registry", str(path))
        assert result.exit_code == 3
        assert "root" in result.output

    def test_no_root_check_flag(self, tmp_path, monkeypatch):
        monkeypatch.setattr(os, "geteuid", lambda: 1000)
        path = _registry(tmp_path, OK_STEPS, require_root=True)
        result = _run(tmp_path, "--registry", str(path), "--no-root-check")
        assert result.exit_code == 0, result.output

    def test_timeout_flag(self, tmp_path):
        steps = '  - {name: slow, type: shell, command: "sleep 5"}\n'
        result = _run(
            tmp_path, "--registry", str(_registry(tmp_path, steps)), "--timeout", "0.3", "--json"
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["report"]["results"][0]["error"].startswith("StepTimeoutError")

    def test_invalid_timeout(self, tmp_path):
        result = _run(tmp_path, "--timeout", "0", "--mock")
        assert result.exit_code != 0
        assert "Invalid value" in result.output

    def test_credential_prompt_aborted(self, tmp_path):
        steps = '  - {name: fetch, type: remote-script, url: "https://example.com/install.sh"}\n'
        token = tmp_path / "token"
        result = _run(
            tmp_path,
            "--registry", str(_registry(tmp_path, steps)),
            "--credential-path", str(token),
            input="",
        )
        assert result.exit_code == 3
        assert not token.exists()
        assert not (tmp_path / "audit.ndjson").exists()


# ── Idempotence and modes ────────────────────────────────────────────


class TestRunModes:
    def test_second_run_applies_nothing(self, tmp_path):
        marker = tmp_path / "marker"
        steps = f'  - {{name: mark, type: shell, command: "touch {marker}", check: "test -f {marker}"}}\n'
        path = _registry(tmp_path, steps)

        first = _run(tmp_path, "--registry", str(path), "--json")
        second = _run(tmp_path, "--registry", str(path), "--json")

        assert json.loads(first.stdout)["report"]["succeeded"] == 1
        results = json.loads(second.stdout)["report"]["results"]
        assert results[0]["reason"] == "precondition-satisfied"

    def test_dry_run_applies_nothing(self, tmp_path):
        marker = tmp_path / "marker"
        steps = f'  - {{name: mark, type: shell, command: "touch {marker}"}}\n'
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)), "--dry-run")
        assert result.exit_code == 0
        assert "dry-run" in result.output
        assert not marker.exists()

    def test_mock_builtin(self, tmp_path):
        result = _run(tmp_path, "--mock", "--yes-to-all", "--no-root-check", "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["registry"] == "builtin"
        assert data["report"]["failed"] == 0
        assert data["report"]["total"] == data["report"]["succeeded"]

    def test_prompt_declined(self, tmp_path):
        steps = '  - {name: nms, type: shell, command: "true", prompt: "Install NMS agent?"}\n'
        result = _run(
            tmp_path, "--registry", str(_registry(tmp_path, steps)), "--mock", input="n\n"
        )
        assert result.exit_code == 0
        assert "Install NMS agent?" in result.output
        assert "declined" in result.output

    def test_prompt_accepted(self, tmp_path):
        steps = '  - {name: nms, type: shell, command: "true", prompt: "Install NMS agent?"}\n'
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)), input="y\n")
        assert result.exit_code == 0
        assert "1 succeeded" in result.output

    def test_yes_to_all_skips_prompts(self, tmp_path):
        steps = '  - {name: nms, type: shell, command: "true", prompt: "Install NMS agent?"}\n'
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)), "--yes-to-all")
        assert result.exit_code == 0
        assert "Install NMS agent?" not in result.output

    def test_prompt_aborted_is_interrupt(self, tmp_path):
        steps = '  - {name: nms, type: shell, command: "true", prompt: "Install NMS agent?"}\n'
        result = _run(tmp_path, "--registry", str(_registry(tmp_path, steps)), input="")
        assert result.exit_code == 130


# ── Ledger ───────────────────────────────────────────────────────────


class TestHistory:
    def test_runs_recorded(self, tmp_path):
        path = str(_registry(tmp_path, OK_STEPS))
        _run(tmp_path, "--registry", path)
        _run(tmp_path, "--registry", path)

        result = CliRunner().invoke(
            cli, ["history", "--audit-path", str(tmp_path / "audit.ndjson"), "--json"]
        )
        assert result.exit_code == 0
        entries = json.loads(result.stdout)
        assert len(entries) == 2
        assert entries[0]["registry"] == path
        assert entries[0]["status"] == "ok"

    def test_empty_history(self, tmp_path):
        result = CliRunner().invoke(cli, ["history", "--audit-path", str(tmp_path / "none")])
        assert result.exit_code == 0
        assert "No runs recorded" in result.output

    def test_aborted_run_not_recorded(self, tmp_path):
        _run(tmp_path, "--registry", str(tmp_path / "absent.yml"))
        assert not (tmp_path / "audit.ndjson").exists()

    def test_count_must_be_positive(self, tmp_path):
        for count in ("0", "-1"):
            result = CliRunner().invoke(
                cli, ["history", "-n", count, "--audit-path", str(tmp_path / "audit.ndjson")]
            )
            assert result.exit_code == 2
            assert "Invalid value" in result.output


# ── Plan ─────────────────────────────────────────────────────────────


class TestPlanCommand:
    def test_builtin_plan(self):
        result = CliRunner().invoke(cli, ["plan", "--json"])
        assert result.exit_code == 0
        names = [s["name"] for s in json.loads(result.stdout)["steps"]]
        assert names[0] == "apt-update"
        assert "nms-agent" in names

    def test_text_plan(self, tmp_path):
        result = CliRunner().invoke(cli, ["plan", "--registry", str(_registry(tmp_path, OK_STEPS))])
        assert result.exit_code == 0
        assert "1. first (shell)" in result.output
        assert "2. second (shell)" in result.output


# ── Credential ───────────────────────────────────────────────────────


class TestCredentialCommands:
    def test_status_missing(self, tmp_path):
        result = CliRunner().invoke(
            cli, ["credential", "status", "--credential-path", str(tmp_path / "token")]
        )
        assert result.exit_code == 1
        assert "No credential" in result.output

    def test_set_then_status(self, tmp_path):
        path = tmp_path / "token"
        set_result = CliRunner().invoke(
            cli, ["credential", "set", "--credential-path", str(path)], input="new-token\n"
        )
        assert set_result.exit_code == 0, set_result.output
        assert "new-token" not in set_result.output
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

        status = CliRunner().invoke(
            cli, ["credential", "status", "--credential-path", str(path), "--json"]
        )
        data = json.loads(status.stdout)
        assert data["exists"] is True
        assert data["mode"] == "0o600"
        assert data["world_accessible"] is False
