"""
RunResult and RunReport — the record of what a run did.

A RunResult is produced exactly once per step per run and never changes
afterwards. The RunReport collects them in execution order and derives
the overall verdict and CLI exit code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Skip reasons
SATISFIED = "precondition-satisfied"
DECLINED = "declined"
BLOCKED = "blocked-by-dependency"
DRY_RUN = "dry-run"
BEST_EFFORT = "best-effort"

# CLI exit codes
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_PARTIAL = 2
EXIT_ABORTED = 3
EXIT_INTERRUPTED = 130


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


Outcome = Literal["skipped", "succeeded", "failed"]


class RunResult(BaseModel):
    """Outcome of a single step within a single run."""

    model_config = ConfigDict(frozen=True)

    step_name: str
    outcome: Outcome
    reason: str = ""                # why a step was skipped
    error: str | None = None        # "ErrorType: message"
    output: str = ""
    blocked_by: list[str] = Field(default_factory=list)  # unavailable dependencies
    duration_ms: int = 0
    timestamp: str = Field(default_factory=_now_iso)

    @property
    def succeeded(self) -> bool:
        return self.outcome == "succeeded"

    @property
    def failed(self) -> bool:
        return self.outcome == "failed"

    @property
    def skipped(self) -> bool:
        return self.outcome == "skipped"

    @property
    def blocked(self) -> bool:
        return self.skipped and self.reason == BLOCKED

    @classmethod
    def success(cls, step_name: str, output: str = "", **kwargs: Any) -> RunResult:
        """Create a success result."""
        return cls(step_name=step_name, outcome="succeeded", output=output, **kwargs)

    @classmethod
    def failure(cls, step_name: str, error: str, **kwargs: Any) -> RunResult:
        """Create a failure result."""
        return cls(step_name=step_name, outcome="failed", error=error, **kwargs)

    @classmethod
    def skip(cls, step_name: str, reason: str, **kwargs: Any) -> RunResult:
        """Create a skip result."""
        return cls(step_name=step_name, outcome="skipped", reason=reason, **kwargs)


@dataclass
class RunReport:
    """All results of one run, in execution order."""

    run_id: str = ""
    results: list[RunResult] = field(default_factory=list)
    cancelled: bool = False
    started_at: str = field(default_factory=_now_iso)
    ended_at: str = ""

    def add(self, result: RunResult) -> None:
        self.results.append(result)

    def get(self, step_name: str) -> RunResult | None:
        for result in self.results:
            if result.step_name == step_name:
                return result
        return None

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def blocked(self) -> int:
        return sum(1 for r in self.results if r.blocked)

    @property
    def blocked_by_failure(self) -> int:
        """Blocked steps whose chain of blockers leads back to a failed step."""
        rooted: set[str] = set()
        count = 0
        for r in self.results:
            if r.failed:
                rooted.add(r.step_name)
            elif r.blocked and rooted.intersection(r.blocked_by):
                rooted.add(r.step_name)
                count += 1
        return count

    @property
    def ok(self) -> bool:
        """Overall success: no step failed."""
        return self.failed == 0

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0 or self.skipped > 0:
            return "partial"
        return "failed"

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return EXIT_INTERRUPTED
        if self.ok:
            return EXIT_OK
        if self.blocked_by_failure > 0:
            return EXIT_PARTIAL
        return EXIT_FAILED

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "status": self.status,
            "cancelled": self.cancelled,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "blocked": self.blocked,
            "results": [r.model_dump(mode="json") for r in self.results],
        }
