"""
Credential store — one secret token in a protected file.

The first ``get()`` on a fresh host prompts for the token and persists
it; every later call is read-only. The loaded value is cached for the
lifetime of the store, guarded by a lock so concurrent callers never
prompt twice.

Writes are atomic (temp file in the same directory, chmod/chown, then
rename), so the secret is never visible with loose permissions and a
crash mid-write leaves the old file intact.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from pydantic import SecretStr

from hostprov.core.errors import StorageError
from hostprov.core.models.credential import DEFAULT_PERMISSIONS, Credential

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_PATH = Path("/etc/iso-github-token")
PROMPT_TEXT = "Enter GitHub token"


class CredentialStore:
    """Persist and retrieve a single bearer token.

    Args:
        path: Location of the credential file.
        prompt: Input collaborator, called with a prompt string when the
            file does not exist. Should not echo the input.
        owner_uid / owner_gid: Ownership to enforce on write. Default:
            root:root when running as root, otherwise left as created.
    """

    def __init__(
        self,
        path: Path = DEFAULT_CREDENTIAL_PATH,
        prompt: Callable[[str], str] | None = None,
        owner_uid: int | None = None,
        owner_gid: int | None = None,
        permissions: int = DEFAULT_PERMISSIONS,
    ):
        self._path = Path(path)
        self._prompt = prompt
        self._owner_uid = owner_uid
        self._owner_gid = owner_gid
        self._permissions = permissions
        self._cached: Credential | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def get(self) -> Credential:
        """Return the credential, prompting and persisting on first use.

        Raises:
            StorageError: The file cannot be read or written, ownership
                cannot be set, or no usable value was supplied.
        """
        if self._cached is not None:
            return self._cached

        with self._lock:
            if self._cached is None:
                self._cached = self._load_or_create()
            return self._cached

    def rotate(self, value: str) -> Credential:
        """Replace the stored credential wholesale."""
        with self._lock:
            self._cached = self._persist(value)
            logger.info("Credential rotated at %s", self._path)
            return self._cached

    def clear_cache(self) -> None:
        """Forget the in-memory value; the next get() re-reads the file."""
        with self._lock:
            self._cached = None

    # ── Internals ───────────────────────────────────────────────

    def _load_or_create(self) -> Credential:
        if self.exists():
            return self._read()

        if self._prompt is None:
            raise StorageError(
                f"No credential at {self._path} and no way to prompt for one"
            )

        logger.info("No credential at %s — prompting", self._path)
        value = self._prompt(PROMPT_TEXT)
        return self._persist(value)

    def _read(self) -> Credential:
        try:
            raw = self._path.read_text(encoding="utf-8")
            mode = stat.S_IMODE(self._path.stat().st_mode)
        except OSError as e:
            raise StorageError(f"Cannot read credential at {self._path}: {e}") from e

        if mode & stat.S_IRWXO:
            logger.warning(
                "Credential file %s is accessible to other users (mode %o)", self._path, mode
            )

        logger.debug("Loaded credential from %s", self._path)
        return Credential(
            value=SecretStr(raw.strip()),
            storage_path=self._path,
            permissions=mode,
        )

    def _ownership(self) -> tuple[int, int] | None:
        if self._owner_uid is not None or self._owner_gid is not None:
            uid = self._owner_uid if self._owner_uid is not None else -1
            gid = self._owner_gid if self._owner_gid is not None else -1
            return uid, gid
        if os.geteuid() == 0:
            return 0, 0
        return None

    def _persist(self, value: str) -> Credential:
        value = (value or "").strip()
        if not value:
            raise StorageError("Refusing to store an empty credential")

        parent = self._path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=parent, prefix=".credential_", suffix=".tmp")
        except OSError as e:
            raise StorageError(f"Cannot write credential to {self._path}: {e}") from e

        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                os.fchmod(f.fileno(), self._permissions)
                ownership = self._ownership()
                if ownership is not None:
                    os.fchown(f.fileno(), *ownership)
                f.write(value + "\n")
            os.replace(tmp, self._path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise StorageError(f"Cannot secure credential at {self._path}: {e}") from e

        logger.info("Credential saved to %s", self._path)
        return Credential(
            value=SecretStr(value),
            storage_path=self._path,
            permissions=self._permissions,
        )
