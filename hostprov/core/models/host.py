"""
Host context — everything a step sees while it runs.

Preconditions and apply functions receive the Host instead of reaching
for globals. The runner fills in ``credential`` once, before the first
step, so actions that authenticate get it passed explicitly.
"""

from __future__ import annotations

import os
from collections.abc import Callable
from dataclasses import dataclass, field

from hostprov.core.models.credential import Credential

DEFAULT_TIMEOUT = 600.0


def _deny(prompt: str) -> bool:
    return False


@dataclass
class Host:
    """The machine being provisioned, as seen by one run."""

    credential: Credential | None = None
    yes_to_all: bool = False
    dry_run: bool = False
    timeout: float = DEFAULT_TIMEOUT
    env: dict[str, str] = field(default_factory=dict)

    # Y/n collaborator; non-interactive callers get "no"
    confirm: Callable[[str], bool] = _deny

    def environment(self) -> dict[str, str]:
        """Process environment plus per-run overrides, for child processes."""
        merged = os.environ.copy()
        merged.update(self.env)
        return merged

    def approves(self, prompt: str) -> bool:
        """Whether a gated step may proceed."""
        if self.yes_to_all:
            return True
        return bool(self.confirm(prompt))
