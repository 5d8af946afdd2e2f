"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr

from hostprov.core.models.credential import Credential
from hostprov.core.models.host import Host


@pytest.fixture
def credential(tmp_path: Path) -> Credential:
    """A loaded credential; the file itself is not needed."""
    return Credential(value=SecretStr("tok-123"), storage_path=tmp_path / "token")


@pytest.fixture
def host(credential: Credential) -> Host:
    """A non-interactive host that approves every prompt."""
    return Host(credential=credential, yes_to_all=True, timeout=10)


@pytest.fixture
def script_dir(tmp_path: Path) -> Path:
    """Isolated directory for temporary script files."""
    path = tmp_path / "scripts"
    path.mkdir()
    return path
