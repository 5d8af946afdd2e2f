"""Adapters — concrete provisioning actions.

Public re-exports for convenient access.
"""

from hostprov.adapters.base import Action, Step
from hostprov.adapters.mock import MockAction
from hostprov.adapters.remote_script import RemoteScriptAction, ScriptState
from hostprov.adapters.shell.command import ShellCommandAction
from hostprov.adapters.shell.filesystem import FileBlockAction, LineReplaceAction

__all__ = [
    "Action",
    "FileBlockAction",
    "LineReplaceAction",
    "MockAction",
    "RemoteScriptAction",
    "ScriptState",
    "ShellCommandAction",
    "Step",
]
