"""
Credential model — the one secret a run carries.

The value is a ``SecretStr`` so it renders as ``**********`` in reprs,
logs and JSON dumps. Call ``reveal()`` only at the point of use.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, SecretStr

DEFAULT_PERMISSIONS = 0o600


class Credential(BaseModel):
    """A stored bearer token. Replaced wholesale, never edited."""

    model_config = ConfigDict(frozen=True)

    value: SecretStr
    storage_path: Path
    permissions: int = DEFAULT_PERMISSIONS

    def reveal(self) -> str:
        """Plain-text token, for building an Authorization header."""
        return self.value.get_secret_value()

    @property
    def empty(self) -> bool:
        return not self.reveal().strip()
