"""
Run use case — provision this host from a registry.

This is the top-level orchestrator: it loads the registry, builds the
actions, runs them, and appends the outcome to the ledger. The full
vertical slice from "hostprov run" to an audited result.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from hostprov.adapters.mock import MockAction
from hostprov.core.config.loader import build_registry, load_config
from hostprov.core.engine.registry import StepRegistry
from hostprov.core.engine.runner import Runner
from hostprov.core.errors import ProvisionError
from hostprov.core.models.host import Host
from hostprov.core.models.provision import ProvisionConfig
from hostprov.core.models.result import EXIT_ABORTED, RunReport, RunResult
from hostprov.core.persistence.audit import AuditEntry, AuditWriter
from hostprov.core.persistence.credential_store import CredentialStore

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run, or why it never started."""

    report: RunReport | None = None
    config: ProvisionConfig | None = None
    registry_source: str = ""
    error: str | None = None
    error_type: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error or self.report is None:
            return EXIT_ABORTED
        return self.report.exit_code

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
            return result

        result["registry"] = self.registry_source
        result["name"] = self.config.name if self.config else ""
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def mock_registry(config: ProvisionConfig) -> StepRegistry:
    """Same names, dependencies and prompts, but no side effects."""
    return StepRegistry([
        MockAction(
            spec.name,
            depends_on=spec.depends_on,
            prompt=spec.prompt,
            best_effort=spec.best_effort,
            description=spec.description,
        )
        for spec in config.steps
    ])


def run_provisioning(
    registry_path: Path | None = None,
    *,
    yes_to_all: bool = False,
    timeout: float | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    require_root: bool | None = None,
    credential_path: Path | None = None,
    audit_path: Path | None = None,
    confirm: Callable[[str], bool] | None = None,
    prompt_secret: Callable[[str], str] | None = None,
    on_result: Callable[[RunResult], None] | None = None,
    registry: StepRegistry | None = None,
    runner: Runner | None = None,
) -> ProvisionResult:
    """Apply a registry to this host.

    Args:
        registry_path: YAML registry file; None = built-in registry.
        yes_to_all: Answer yes to every step prompt.
        timeout: Per-child-process timeout override (seconds).
        dry_run: Evaluate preconditions only.
        mock_mode: Replace every action with a MockAction.
        require_root: Override the registry's ``require_root``.
        credential_path / audit_path: Override the registry's paths.
        confirm: Y/n collaborator for gated steps.
        prompt_secret: Input collaborator for a missing credential.
        on_result: Called as each step result is recorded.
        registry: Pre-built registry (skips building from config).
        runner: Pre-configured runner.

    Returns:
        ProvisionResult. Fatal errors are captured in ``error``.
    """
    result = ProvisionResult(registry_source=str(registry_path) if registry_path else "builtin")

    try:
        config = load_config(registry_path)
        result.config = config

        if registry is None:
            registry = mock_registry(config) if mock_mode else build_registry(config)

        if runner is None:
            store = CredentialStore(credential_path or config.credential_path, prompt=prompt_secret)
            runner = Runner(
                credentials=store,
                require_root=config.require_root if require_root is None else require_root,
                on_result=on_result,
            )

        host = Host(
            yes_to_all=yes_to_all,
            dry_run=dry_run,
            timeout=timeout or config.timeout,
        )
        if confirm is not None:
            host.confirm = confirm

        report = runner.run(registry, host)

    except ProvisionError as e:
        logger.error("Run aborted: %s", e)
        result.error = str(e)
        result.error_type = type(e).__name__
        return result

    result.report = report

    writer = AuditWriter(audit_path or config.audit_path)
    writer.write(AuditEntry.from_report(
        report,
        hostname=socket.gethostname(),
        registry=result.registry_source,
        context={"dry_run": dry_run, "mock": mock_mode, "yes_to_all": yes_to_all},
    ))

    return result
