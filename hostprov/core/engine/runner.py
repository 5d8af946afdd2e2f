"""
Runner — applies a step registry to a host.

Flow:
    preflight (principal) → resolve order → load credential once
        → for each step: blocked? satisfied? declined? apply → record

A failed step never aborts the run. Steps that depend on it are skipped
as ``blocked-by-dependency`` and never attempted; independent steps
carry on. Build-time problems (duplicate names, cycles, unknown
dependencies) and pre-flight problems (privilege, credential storage)
raise before the first step runs.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from hostprov.adapters.base import Action
from hostprov.core.engine.registry import StepRegistry
from hostprov.core.errors import CancelledError, PrincipalError, describe
from hostprov.core.models.host import Host
from hostprov.core.models.result import (
    BEST_EFFORT,
    BLOCKED,
    DECLINED,
    DRY_RUN,
    SATISFIED,
    RunReport,
    RunResult,
)
from hostprov.core.persistence.credential_store import CredentialStore

logger = logging.getLogger(__name__)


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


class Runner:
    """Sequential, dependency-aware step executor.

    Args:
        credentials: Store the credential is loaded from, once per run,
            when any step needs it.
        require_root: Refuse to run unless the effective uid is 0.
        on_result: Called with each RunResult as soon as it is recorded.
        geteuid: Effective-uid probe, swappable for tests.
    """

    def __init__(
        self,
        credentials: CredentialStore | None = None,
        require_root: bool = True,
        on_result: Callable[[RunResult], None] | None = None,
        geteuid: Callable[[], int] | None = None,
    ):
        self._credentials = credentials
        self._require_root = require_root
        self._on_result = on_result
        self._geteuid = geteuid

    def check_principal(self) -> None:
        """Raise PrincipalError unless running with the required privilege."""
        euid = self._geteuid() if self._geteuid is not None else os.geteuid()
        if self._require_root and euid != 0:
            raise PrincipalError("This tool must be run as root. Try again with sudo.")

    def run(self, registry: StepRegistry, host: Host) -> RunReport:
        """Apply every step in dependency order.

        Raises:
            PrincipalError, RegistryError, StorageError: before any step runs.
        """
        self.check_principal()
        order = registry.resolve_order()

        if host.credential is None and self._credentials is not None:
            if any(step.requires_credential for step in order):
                host.credential = self._credentials.get()

        report = RunReport(run_id=generate_run_id())
        logger.info("Run %s: %d step(s)", report.run_id, len(order))

        # Steps whose effect is not in place: failed, blocked or declined
        unavailable: set[str] = set()

        for step in order:
            try:
                result = self._run_step(step, host, unavailable)
            except KeyboardInterrupt:
                result = RunResult.failure(
                    step.name, describe(CancelledError("interrupted by operator"))
                )
                report.cancelled = True

            self._record(report, result)
            if result.failed or result.blocked or result.reason == DECLINED:
                unavailable.add(step.name)
            if report.cancelled:
                logger.warning("Run %s cancelled during '%s'", report.run_id, step.name)
                break

        report.ended_at = datetime.now(UTC).isoformat()
        logger.info(
            "Run %s → %s (%d ok, %d failed, %d skipped)",
            report.run_id, report.status, report.succeeded, report.failed, report.skipped,
        )
        return report

    def _record(self, report: RunReport, result: RunResult) -> None:
        report.add(result)
        status_marker = "✓" if result.succeeded else "✗" if result.failed else "⊘"
        logger.info("%s %s → %s %s", status_marker, result.step_name, result.outcome, result.reason)
        if self._on_result is not None:
            self._on_result(result)

    def _run_step(self, step: Action, host: Host, unavailable: set[str]) -> RunResult:
        blockers = [dep for dep in step.depends_on if dep in unavailable]
        if blockers:
            return RunResult.skip(
                step.name, BLOCKED, output=f"waiting on {', '.join(blockers)}", blocked_by=blockers
            )

        start = time.monotonic()
        try:
            if step.precondition(host):
                return RunResult.skip(step.name, SATISFIED)

            if host.dry_run:
                return RunResult.skip(step.name, DRY_RUN, output="would apply")

            if step.prompt and not host.approves(step.prompt):
                return RunResult.skip(step.name, DECLINED)

            output = step.apply(host)
        except Exception as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            if step.best_effort:
                logger.warning("[%s] failed, tolerated as best-effort: %s", step.name, e)
                return RunResult.skip(
                    step.name, BEST_EFFORT, error=describe(e), duration_ms=elapsed_ms
                )
            logger.error("[%s] failed: %s", step.name, e)
            return RunResult.failure(step.name, describe(e), duration_ms=elapsed_ms)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        return RunResult.success(step.name, output=output or "", duration_ms=elapsed_ms)
