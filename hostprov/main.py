"""
hostprov — CLI entrypoint.

Usage:
    python -m hostprov.main --help
    hostprov run --yes-to-all
    hostprov run --registry bootstrap.yml --timeout 300
    hostprov plan
"""

from __future__ import annotations

import json
import os
import socket
import sys
from pathlib import Path

import click

from hostprov import __version__
from hostprov.core.errors import StorageError
from hostprov.core.models.result import RunResult
from hostprov.core.observability.logging_config import setup_logging

_MARKERS = {
    "succeeded": ("✓", "green"),
    "failed": ("✗", "red"),
    "skipped": ("⊘", "yellow"),
}

_REGISTRY_OPTION = click.option(
    "--registry",
    "-r",
    "registry_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="HOSTPROV_REGISTRY",
    help="Registry YAML file (default: built-in bootstrap).",
)


@click.group()
@click.version_option(version=__version__, prog_name="hostprov")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, debug: bool) -> None:
    """hostprov — idempotent bootstrap for freshly imaged Linux hosts."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("HOSTPROV_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("HOSTPROV_LOG_FILE"),
        log_file_level=os.environ.get("HOSTPROV_LOG_FILE_LEVEL"),
    )


def _confirm(prompt: str) -> bool:
    try:
        return click.confirm(prompt, default=True, err=True)
    except click.Abort:
        raise KeyboardInterrupt from None


def _prompt_secret(prompt: str) -> str:
    try:
        return click.prompt(prompt, hide_input=True, err=True)
    except click.Abort:
        raise StorageError("No credential entered") from None


def _echo_result(result: RunResult, verbose: bool = False) -> None:
    marker, color = _MARKERS[result.outcome]
    click.secho(f"   {marker} {result.step_name}", fg=color, nl=False)
    if result.skipped:
        click.echo(f" ({result.reason})")
    else:
        click.echo(f" ({result.duration_ms}ms)" if result.duration_ms else "")

    if result.error:
        for line in result.error.split("\n")[:5]:
            click.echo(f"     │ {line}")
    elif verbose and result.output:
        click.echo(f"     │ {result.output}")


@cli.command()
@_REGISTRY_OPTION
@click.option("--yes-to-all", "-y", is_flag=True, help="Answer yes to every step prompt.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds before a child process is killed.",
)
@click.option("--dry-run", is_flag=True, help="Check preconditions but apply nothing.")
@click.option("--mock", is_flag=True, help="Use mock actions (no real execution).")
@click.option("--no-root-check", is_flag=True, help="Skip the must-be-root pre-flight check.")
@click.option(
    "--credential-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="HOSTPROV_CREDENTIAL_PATH",
    help="Credential file (default: from registry).",
)
@click.option(
    "--audit-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="HOSTPROV_AUDIT_PATH",
    help="Run ledger file (default: from registry).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    registry_path: Path | None,
    yes_to_all: bool,
    timeout: float | None,
    dry_run: bool,
    mock: bool,
    no_root_check: bool,
    credential_path: Path | None,
    audit_path: Path | None,
    as_json: bool,
) -> None:
    """Apply the provisioning steps to this host.

    Exit codes: 0 all good, 1 steps failed, 2 steps failed and their
    dependents were skipped, 3 aborted before any step ran, 130 interrupted.

    Examples:

        hostprov run --yes-to-all

        hostprov run --registry bootstrap.yml --timeout 300

        hostprov run --dry-run --no-root-check
    """
    from hostprov.core.use_cases.run import run_provisioning

    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    if not as_json and not quiet:
        mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
        click.secho(f"\n⚡ {mode_label}provisioning {socket.gethostname()}", fg="cyan", bold=True)
        click.echo()

    result = run_provisioning(
        registry_path,
        yes_to_all=yes_to_all,
        timeout=timeout,
        dry_run=dry_run,
        mock_mode=mock,
        require_root=False if no_root_check else None,
        credential_path=credential_path,
        audit_path=audit_path,
        confirm=_confirm,
        prompt_secret=_prompt_secret,
        on_result=None if as_json else lambda r: _echo_result(r, verbose),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    report = result.report
    assert report is not None

    # Summary
    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
        report.status, "white"
    )
    click.secho(
        f"   Result: {report.succeeded} succeeded, {report.failed} failed, "
        f"{report.skipped} skipped ({report.blocked} blocked)",
        fg=status_color,
        bold=True,
    )
    if report.cancelled:
        click.secho("   Interrupted — remaining steps were not attempted.", fg="yellow")
    click.echo()

    sys.exit(report.exit_code)


@cli.command()
@_REGISTRY_OPTION
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def plan(registry_path: Path | None, as_json: bool) -> None:
    """Show the steps a run would attempt, in order."""
    from hostprov.core.use_cases.plan import plan_provisioning

    result = plan_provisioning(registry_path)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    assert result.config is not None
    click.secho(f"\n📋 {result.config.name} ({result.registry_source})", fg="cyan", bold=True)
    for idx, step in enumerate(result.steps, start=1):
        flags = []
        if step.prompt:
            flags.append("prompt")
        if step.best_effort:
            flags.append("best-effort")
        flag_label = f" [{', '.join(flags)}]" if flags else ""
        deps = f"  ← {', '.join(step.depends_on)}" if step.depends_on else ""
        click.echo(f"   {idx:>2}. {step.name} ({step.kind}){flag_label}{deps}")
    click.echo()


@cli.command()
@click.option(
    "-n", "count", type=click.IntRange(min=1), default=10, show_default=True,
    help="Number of runs to show.",
)
@click.option(
    "--audit-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    envvar="HOSTPROV_AUDIT_PATH",
    help="Run ledger file.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def history(count: int, audit_path: Path | None, as_json: bool) -> None:
    """Show recent provisioning runs from the ledger."""
    from hostprov.core.persistence.audit import DEFAULT_AUDIT_PATH, AuditWriter

    entries = AuditWriter(audit_path or DEFAULT_AUDIT_PATH).read_recent(count)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.echo("No runs recorded.")
        return

    for entry in entries:
        status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
            entry.status, "white"
        )
        click.echo(f"   {entry.timestamp}  {entry.run_id}  ", nl=False)
        click.secho(entry.status, fg=status_color, nl=False)
        click.echo(
            f"  ({entry.steps_succeeded} ok, {entry.steps_failed} failed, "
            f"{entry.steps_skipped} skipped)"
        )
        for result in entry.results:
            if result.failed:
                click.echo(f"     ✗ {result.step_name}: {result.error}")


# ── Register sub-command groups from hostprov/ui/cli/ ─────────────

from hostprov.ui.cli.credential import credential

cli.add_command(credential)


if __name__ == "__main__":
    cli()
