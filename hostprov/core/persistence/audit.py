"""
Run ledger — append-only history of provisioning runs.

Every run appends one entry to an NDJSON (newline-delimited JSON) file:
the per-step results plus the verdict. This is the host's provisioning
history, useful for answering "what ran here, and when did it fail?".

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from hostprov.core.models.result import RunReport, RunResult

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_PATH = Path("/var/lib/hostprov/audit.ndjson")


class AuditEntry(BaseModel):
    """A single ledger entry — one provisioning run."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    hostname: str = ""
    registry: str = ""             # registry file, or "builtin"

    # Results
    status: str = ""               # ok, partial, failed
    cancelled: bool = False
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_failed: int = 0
    steps_skipped: int = 0
    results: list[RunResult] = Field(default_factory=list)

    # Extensible context
    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_report(cls, report: RunReport, **kwargs: Any) -> AuditEntry:
        return cls(
            run_id=report.run_id,
            status=report.status,
            cancelled=report.cancelled,
            steps_total=report.total,
            steps_succeeded=report.succeeded,
            steps_failed=report.failed,
            steps_skipped=report.skipped,
            results=list(report.results),
            **kwargs,
        )


class AuditWriter:
    """Append-only ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path = DEFAULT_AUDIT_PATH):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry to the ledger.

        A ledger failure is logged, never raised: losing history must
        not turn a successful run into a failed one.
        """
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s", entry.run_id)
        except OSError as e:
            logger.error("Failed to write ledger entry to %s: %s", self._path, e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read ledger %s: %s", self._path, e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        if n <= 0:
            return []
        return self.read_all()[-n:]

    def entry_count(self) -> int:
        """Count entries without parsing them."""
        if not self._path.is_file():
            return 0
        try:
            with self._path.open("r", encoding="utf-8") as f:
                return sum(1 for line in f if line.strip())
        except OSError:
            return 0
