"""
Remote script action — authenticated download, verify, execute, clean up.

Replaces the unsafe ``curl | bash`` pattern with a small state machine:

    idle → authenticating → downloading → verifying → executing → cleaned
                 └──────────────┴─────────────┴────────────┴──→ failed

The script is written to a temporary file that is removed on every exit
path (success, failure, timeout, operator interrupt). The script itself
is an opaque external program: the action's job ends at "ran with exit
code N".
"""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
import tempfile
import urllib.error
import urllib.request
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from hostprov import __version__
from hostprov.adapters.base import Action
from hostprov.core.errors import (
    AuthError,
    ExecutionError,
    IntegrityError,
    NetworkError,
    StepTimeoutError,
    WorkspaceError,
)
from hostprov.core.models.host import Host

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192
_TERMINATE_GRACE = 5.0

# Exit status convention for "found but cannot execute"
_EXIT_NOT_EXECUTABLE = 126


class ScriptState(str, Enum):
    """Lifecycle of one remote script execution."""

    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    EXECUTING = "executing"
    CLEANED = "cleaned"
    FAILED = "failed"


@dataclass
class RemoteScript:
    """One fetched script. The token is borrowed from the host's credential."""

    url: str
    auth_token: str = field(default="", repr=False)
    local_temp_path: Path | None = None
    sha256: str = ""
    size_bytes: int = 0


def _terminate(proc: subprocess.Popen) -> None:
    """Stop a child process, escalating to SIGKILL if it lingers."""
    if proc.poll() is not None:
        return
    proc.terminate()
    try:
        proc.wait(timeout=_TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.wait()


def _normalize_checksum(value: str | None) -> str | None:
    if not value:
        return None
    return value.removeprefix("sha256:").strip().lower()


class RemoteScriptAction(Action):
    """Download an installer script with a bearer token and run it.

    Action params:
        url: HTTPS location of the script.
        sha256: Optional expected checksum (``sha256:`` prefix allowed).
        creates: Optional path whose existence means "already installed".
        args: Extra arguments for the script.
        interpreter: Run the script through this program instead of
            executing it directly (for scripts without a shebang).
        temp_dir: Directory for the temporary script file.
        opener: ``urlopen``-compatible callable, swappable for tests.
    """

    requires_credential = True

    def __init__(
        self,
        name: str,
        url: str,
        *,
        sha256: str | None = None,
        creates: str | Path | None = None,
        args: Iterable[str] = (),
        interpreter: str | None = None,
        temp_dir: str | Path | None = None,
        download_timeout: float = 60.0,
        opener: Callable[..., Any] = urllib.request.urlopen,
        **kwargs,
    ):
        super().__init__(name, **kwargs)
        if not url:
            raise ValueError(f"Step '{name}': missing required param 'url'")
        self.url = url
        self.sha256 = _normalize_checksum(sha256)
        self.creates = Path(creates) if creates else None
        self.args = tuple(args)
        self.interpreter = interpreter
        self.temp_dir = str(temp_dir) if temp_dir else None
        self.download_timeout = download_timeout
        self._opener = opener

        self.state = ScriptState.IDLE
        self.history: list[ScriptState] = [ScriptState.IDLE]
        self.last_script: RemoteScript | None = None

    # ── State machine ───────────────────────────────────────────

    def _enter(self, state: ScriptState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("[%s] → %s", self.name, state.value)

    def precondition(self, host: Host) -> bool:
        return self.creates is not None and self.creates.exists()

    def apply(self, host: Host) -> str | None:
        self.state = ScriptState.IDLE
        self.history = [ScriptState.IDLE]
        script = RemoteScript(url=self.url)
        self.last_script = script

        try:
            self._enter(ScriptState.AUTHENTICATING)
            script.auth_token = self._authenticate(host)

            self._enter(ScriptState.DOWNLOADING)
            fd, tmp = tempfile.mkstemp(prefix="hostprov_script_", suffix=".sh", dir=self.temp_dir)
            script.local_temp_path = Path(tmp)
            with os.fdopen(fd, "wb") as f:
                self._download(script, f)

            self._enter(ScriptState.VERIFYING)
            self._verify(script)

            self._enter(ScriptState.EXECUTING)
            os.chmod(script.local_temp_path, 0o700)
            self._execute(script, host)
        except BaseException:
            self._enter(ScriptState.FAILED)
            raise
        finally:
            if script.local_temp_path is not None:
                script.local_temp_path.unlink(missing_ok=True)

        self._enter(ScriptState.CLEANED)
        return f"Executed {self.url} ({script.size_bytes} bytes, sha256={script.sha256[:12]})"

    # ── Transitions ─────────────────────────────────────────────

    def _authenticate(self, host: Host) -> str:
        credential = host.credential
        if credential is None or credential.empty:
            raise AuthError(f"No credential available to fetch {self.url}")
        return credential.reveal()

    def _download(self, script: RemoteScript, sink) -> None:
        headers = {
            "Authorization": f"Bearer {script.auth_token}",
            "User-Agent": f"hostprov/{__version__}",
        }
        req = urllib.request.Request(self.url, headers=headers)
        logger.info("[%s] downloading %s", self.name, self.url)

        digest = hashlib.sha256()
        size = 0
        try:
            with self._opener(req, timeout=self.download_timeout) as resp:
                status = resp.getcode()
                if status is not None and not 200 <= status < 300:
                    raise NetworkError(f"HTTP {status} fetching {self.url}", status=status)
                while True:
                    chunk = resp.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    self._store(sink, chunk)
                    digest.update(chunk)
                    size += len(chunk)
        except urllib.error.HTTPError as e:
            raise NetworkError(f"HTTP {e.code} fetching {self.url}", status=e.code) from e
        except urllib.error.URLError as e:
            raise NetworkError(f"Cannot reach {self.url}: {e.reason}") from e
        except (OSError, TimeoutError) as e:
            raise NetworkError(f"Download of {self.url} failed: {e}") from e

        script.sha256 = digest.hexdigest()
        script.size_bytes = size

    def _store(self, sink, chunk: bytes) -> None:
        try:
            sink.write(chunk)
            sink.flush()
        except OSError as e:
            raise WorkspaceError(f"Cannot write download of {self.url}: {e}") from e

    def _verify(self, script: RemoteScript) -> None:
        if script.size_bytes == 0:
            raise IntegrityError(f"Empty payload from {self.url}")

        if self.sha256 is None:
            logger.warning(
                "[%s] no sha256 pinned for %s — executing unverified (sha256=%s)",
                self.name, self.url, script.sha256,
            )
            return

        if script.sha256 != self.sha256:
            raise IntegrityError(
                f"SHA256 mismatch for {self.url}: "
                f"expected {self.sha256}, got {script.sha256}"
            )

    def _execute(self, script: RemoteScript, host: Host) -> None:
        path = str(script.local_temp_path)
        cmd = [self.interpreter, path] if self.interpreter else [path]
        cmd.extend(self.args)

        logger.info("[%s] executing downloaded script", self.name)
        try:
            proc = subprocess.Popen(cmd, env=host.environment())
        except OSError as e:
            raise ExecutionError(f"Cannot execute script from {self.url}: {e}", _EXIT_NOT_EXECUTABLE) from e

        try:
            code = proc.wait(timeout=host.timeout)
        except subprocess.TimeoutExpired as e:
            _terminate(proc)
            raise StepTimeoutError(
                f"Script from {self.url} timed out after {host.timeout}s", host.timeout
            ) from e
        except BaseException:
            _terminate(proc)
            raise

        if code != 0:
            raise ExecutionError(f"Script from {self.url} exited with code {code}", code)
