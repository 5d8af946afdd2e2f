"""
Error taxonomy — what can go wrong, and how far it propagates.

Two families:

    Fatal (abort before any step runs):
        PrincipalError, StorageError, ConfigError, RegistryError and its
        subclasses. These indicate an environment or configuration defect.

    Per-step (StepError):
        AuthError, NetworkError, IntegrityError, WorkspaceError,
        ExecutionError, StepTimeoutError, CancelledError. The runner
        records them as a failed RunResult and keeps going for unaffected
        steps.
"""

from __future__ import annotations


class ProvisionError(Exception):
    """Base class for all hostprov errors."""


# ── Fatal ───────────────────────────────────────────────────────


class PrincipalError(ProvisionError):
    """The process lacks the privilege the run requires."""


class StorageError(ProvisionError):
    """The credential file cannot be read, written or secured."""


class ConfigError(ProvisionError):
    """Raised when a registry file is missing or invalid."""


class RegistryError(ProvisionError):
    """Registry construction failed."""


class DuplicateNameError(RegistryError):
    """Two steps were registered under the same name."""

    def __init__(self, name: str):
        super().__init__(f"Duplicate step name: '{name}'")
        self.name = name


class UnknownDependencyError(RegistryError):
    """A step depends on a name nothing registered."""

    def __init__(self, step: str, dependency: str):
        super().__init__(f"Step '{step}' depends on unknown step '{dependency}'")
        self.step = step
        self.dependency = dependency


class CyclicDependencyError(RegistryError):
    """The dependency graph contains a cycle."""

    def __init__(self, stuck: list[str]):
        super().__init__(f"Dependency cycle between steps: {', '.join(stuck)}")
        self.stuck = stuck


# ── Per-step ────────────────────────────────────────────────────


class StepError(ProvisionError):
    """A failure confined to a single step."""


class AuthError(StepError):
    """No usable credential for an authenticated request."""


class NetworkError(StepError):
    """Transport failure or non-2xx response."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class IntegrityError(StepError):
    """Downloaded payload is empty or fails checksum verification."""


class WorkspaceError(StepError):
    """The local copy of a download cannot be written."""


class ExecutionError(StepError):
    """A child process exited non-zero."""

    def __init__(self, message: str, exit_code: int):
        super().__init__(message)
        self.exit_code = exit_code


class StepTimeoutError(StepError, TimeoutError):
    """A child process outlived its timeout and was killed."""

    def __init__(self, message: str, timeout: float):
        super().__init__(message)
        self.timeout = timeout


class CancelledError(StepError):
    """The operator interrupted the step."""


def describe(exc: BaseException) -> str:
    """Render an exception as ``"Type: message"`` for run results."""
    message = str(exc)
    name = type(exc).__name__
    return f"{name}: {message}" if message else name
