"""
Action base — the contract between the runner and host side effects.

The runner never knows what an action does. It only asks two things:
"is your effect already present on this host?" (``precondition``) and
"make it so" (``apply``). Everything environment-specific lives behind
this interface.

To create a new action:
    1. Subclass Action
    2. Implement precondition and apply
    3. Register an instance in a StepRegistry
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

from hostprov.core.models.host import Host


class Action(ABC):
    """A named, idempotent unit of host configuration.

    Identity and wiring (name, dependencies, prompt) are fixed at
    construction and exposed read-only.
    """

    # Whether the runner must load the credential before this runs
    requires_credential: bool = False

    def __init__(
        self,
        name: str,
        *,
        depends_on: Iterable[str] = (),
        prompt: str | None = None,
        best_effort: bool = False,
        description: str = "",
    ):
        if not name:
            raise ValueError("Action name must be non-empty")
        self._name = name
        self._depends_on = tuple(depends_on)
        self._prompt = prompt or None
        self._best_effort = best_effort
        self._description = description

    @property
    def name(self) -> str:
        return self._name

    @property
    def depends_on(self) -> tuple[str, ...]:
        """Names of steps that must run before this one."""
        return self._depends_on

    @property
    def prompt(self) -> str | None:
        """Y/n question gating this step, or None if always attempted."""
        return self._prompt

    @property
    def best_effort(self) -> bool:
        """Failures are tolerated: recorded as skipped, dependents proceed."""
        return self._best_effort

    @property
    def description(self) -> str:
        return self._description

    @abstractmethod
    def precondition(self, host: Host) -> bool:
        """Return True if the effect is already present on the host.

        Should be fast and free of side effects.
        """

    @abstractmethod
    def apply(self, host: Host) -> str | None:
        """Perform the side effect. Raise on failure.

        Returns an optional one-line summary for the run log.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class Step(Action):
    """An action assembled from plain callables.

    Handy for ad-hoc steps and tests::

        Step("mkdir-data", apply=lambda h: data.mkdir(),
             precondition=lambda h: data.is_dir())

    Without a precondition the step is never considered satisfied.
    """

    def __init__(
        self,
        name: str,
        apply: Callable[[Host], str | None],
        precondition: Callable[[Host], bool] | None = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        self._apply = apply
        self._precondition = precondition

    def precondition(self, host: Host) -> bool:
        if self._precondition is None:
            return False
        return bool(self._precondition(host))

    def apply(self, host: Host) -> str | None:
        return self._apply(host)
