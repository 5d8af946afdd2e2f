"""
Shell command action — run a command, optionally guarded by a check.

The check command is the idempotence probe: exit 0 means the effect is
already present (e.g. ``command -v jq``). Without a check the command
runs on every invocation, so it must be safe to repeat.
"""

from __future__ import annotations

import logging
import subprocess
import time

from hostprov.adapters.base import Action
from hostprov.core.errors import ExecutionError, StepTimeoutError
from hostprov.core.models.host import Host

logger = logging.getLogger(__name__)

# Tail of captured output kept in errors and results
_OUTPUT_TAIL = 2000


class ShellCommandAction(Action):
    """Execute a shell command and capture its output.

    Args:
        command: Command line, run through ``sh -c``.
        check: Optional probe command; exit 0 means already satisfied.
        env: Extra environment variables for both commands.
        timeout: Override for the host-wide timeout (seconds).
    """

    def __init__(
        self,
        name: str,
        command: str,
        *,
        check: str | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        if not command:
            raise ValueError(f"Step '{name}': missing required param 'command'")
        self.command = command
        self.check = check
        self.env = dict(env or {})
        self.timeout = timeout

    def _env(self, host: Host) -> dict[str, str]:
        env = host.environment()
        env.update(self.env)
        return env

    def precondition(self, host: Host) -> bool:
        if not self.check:
            return False
        try:
            result = subprocess.run(
                self.check,
                shell=True,
                capture_output=True,
                text=True,
                env=self._env(host),
                timeout=self.timeout or host.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("[%s] check timed out: %s", self.name, self.check)
            return False
        logger.debug("[%s] check '%s' → exit %d", self.name, self.check, result.returncode)
        return result.returncode == 0

    def apply(self, host: Host) -> str | None:
        timeout = self.timeout or host.timeout
        logger.debug("[%s] executing: %s", self.name, self.command)
        start = time.monotonic()

        try:
            result = subprocess.run(
                self.command,
                shell=True,
                capture_output=True,
                text=True,
                env=self._env(host),
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise StepTimeoutError(
                f"Command timed out after {timeout}s: {self.command}", timeout
            ) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = (result.stdout or "").strip()[-_OUTPUT_TAIL:]
        stderr = (result.stderr or "").strip()[-_OUTPUT_TAIL:]

        if result.returncode != 0:
            detail = stderr or stdout
            message = f"Command exited with code {result.returncode}: {self.command}"
            if detail:
                message = f"{message}\n{detail}"
            raise ExecutionError(message, result.returncode)

        logger.info("[%s] command succeeded (%dms)", self.name, elapsed_ms)
        return stdout.splitlines()[-1] if stdout else ""
