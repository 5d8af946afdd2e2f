"""
Mock action — test double for any provisioning step.

Simulates a host whose state converges: once ``apply`` succeeds the
precondition reports the effect as present, so a second run skips it.
Configurable to fail with any exception.
"""

from __future__ import annotations

from collections.abc import Iterable

from hostprov.adapters.base import Action
from hostprov.core.models.host import Host


class MockAction(Action):
    """Universal mock action for testing and ``--mock`` runs."""

    def __init__(
        self,
        name: str,
        *,
        depends_on: Iterable[str] = (),
        satisfied: bool = False,
        fail_with: BaseException | None = None,
        output: str = "[mock] applied",
        **kwargs,
    ):
        super().__init__(name, depends_on=depends_on, **kwargs)
        self.satisfied = satisfied
        self._fail_with = fail_with
        self._output = output
        self._call_log: list[Host] = []

    @property
    def call_log(self) -> list[Host]:
        """Every host this mock has been applied to."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def set_failure(self, error: BaseException | None) -> None:
        """Make subsequent applies raise ``error``; None lets them succeed again."""
        self._fail_with = error

    def precondition(self, host: Host) -> bool:
        return self.satisfied

    def apply(self, host: Host) -> str | None:
        self._call_log.append(host)
        if self._fail_with is not None:
            raise self._fail_with
        self.satisfied = True
        return self._output

    def reset(self) -> None:
        """Clear call log, failure and converged state."""
        self._call_log.clear()
        self._fail_with = None
        self.satisfied = False
