"""
Provision config model — what a registry file declares.

Loaded from YAML, this is the declarative description of a host's
bootstrap: where the credential lives, the run-wide timeout, and the
steps with their dependencies. Each step entry is tagged by ``type``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TIMEOUT = 600.0


def _octal(value: object) -> object:
    """Accept ``0o600``, ``"0600"`` or ``"600"`` for file modes."""
    if isinstance(value, str):
        return int(value, 8)
    return value


class StepSpecBase(BaseModel):
    """Fields shared by every step type."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: str = ""
    depends_on: list[str] = Field(default_factory=list)
    prompt: str | None = None       # Y/n question; None = always attempted
    best_effort: bool = False       # failures tolerated


class ShellStepSpec(StepSpecBase):
    type: Literal["shell"]
    command: str = Field(min_length=1)
    check: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = None


class FileBlockStepSpec(StepSpecBase):
    type: Literal["file-block"]
    path: Path
    block: str = Field(min_length=1)
    marker: str | None = None
    owner: str | None = None
    group: str | None = None
    mode: int = 0o600
    dir_mode: int = 0o700

    @field_validator("mode", "dir_mode", mode="before")
    @classmethod
    def parse_modes(cls, value: object) -> object:
        return _octal(value)


class LineReplaceStepSpec(StepSpecBase):
    type: Literal["line-replace"]
    path: Path
    pattern: str = Field(min_length=1)
    replacement: str
    then: str | None = None


class RemoteScriptStepSpec(StepSpecBase):
    type: Literal["remote-script"]
    url: str = Field(pattern=r"^https?://")
    sha256: str | None = None
    creates: Path | None = None
    args: list[str] = Field(default_factory=list)
    interpreter: str | None = None


StepSpec = Annotated[
    Union[ShellStepSpec, FileBlockStepSpec, LineReplaceStepSpec, RemoteScriptStepSpec],
    Field(discriminator="type"),
]


class ProvisionConfig(BaseModel):
    """Root of a registry file."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    name: str = "bootstrap"
    credential_path: Path = Path("/etc/iso-github-token")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    require_root: bool = True
    audit_path: Path = Path("/var/lib/hostprov/audit.ndjson")
    steps: list[StepSpec] = Field(default_factory=list)

    def get_step(self, name: str) -> StepSpec | None:
        """Look up a step spec by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None
