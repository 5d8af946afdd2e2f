"""
Configuration loader — reads a registry file into actions.

Two stages:
    load_config()    YAML → validated ProvisionConfig
    build_registry() ProvisionConfig → StepRegistry of concrete actions

Without a path the built-in bootstrap registry is used.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hostprov.adapters.base import Action
from hostprov.adapters.remote_script import RemoteScriptAction
from hostprov.adapters.shell.command import ShellCommandAction
from hostprov.adapters.shell.filesystem import FileBlockAction, LineReplaceAction
from hostprov.core.config.defaults import builtin_config
from hostprov.core.engine.registry import StepRegistry
from hostprov.core.errors import ConfigError
from hostprov.core.models.provision import (
    FileBlockStepSpec,
    LineReplaceStepSpec,
    ProvisionConfig,
    RemoteScriptStepSpec,
    ShellStepSpec,
    StepSpec,
)

logger = logging.getLogger(__name__)


def load_config(path: Path | None = None) -> ProvisionConfig:
    """Load and validate a registry file.

    Args:
        path: YAML registry file. None selects the built-in registry.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        logger.debug("Using built-in registry")
        return builtin_config()

    if not path.is_file():
        raise ConfigError(f"Registry file not found: {path}")

    logger.debug("Loading registry from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid registry configuration in {path}: {e}") from e

    logger.info("Loaded registry '%s' with %d steps", config.name, len(config.steps))
    return config


def build_action(spec: StepSpec, **remote_options: Any) -> Action:
    """Instantiate the concrete action for one step spec.

    Args:
        spec: Validated step spec.
        remote_options: Extra keyword arguments for remote-script actions
            (``opener``, ``temp_dir``).
    """
    common = {
        "depends_on": spec.depends_on,
        "prompt": spec.prompt,
        "best_effort": spec.best_effort,
        "description": spec.description,
    }

    if isinstance(spec, ShellStepSpec):
        return ShellCommandAction(
            spec.name,
            spec.command,
            check=spec.check,
            env=spec.env,
            timeout=spec.timeout,
            **common,
        )
    if isinstance(spec, FileBlockStepSpec):
        return FileBlockAction(
            spec.name,
            spec.path,
            spec.block,
            marker=spec.marker,
            owner=spec.owner,
            group=spec.group,
            mode=spec.mode,
            dir_mode=spec.dir_mode,
            **common,
        )
    if isinstance(spec, LineReplaceStepSpec):
        return LineReplaceAction(
            spec.name,
            spec.path,
            spec.pattern,
            spec.replacement,
            then=spec.then,
            **common,
        )
    if isinstance(spec, RemoteScriptStepSpec):
        return RemoteScriptAction(
            spec.name,
            spec.url,
            sha256=spec.sha256,
            creates=spec.creates,
            args=spec.args,
            interpreter=spec.interpreter,
            **remote_options,
            **common,
        )
    raise ConfigError(f"Unsupported step type for '{spec.name}': {type(spec).__name__}")


def build_registry(config: ProvisionConfig, **remote_options: Any) -> StepRegistry:
    """Turn a config into a registry, in declaration order.

    Raises:
        ConfigError: A step spec cannot be turned into an action.
        DuplicateNameError: Two steps share a name.
    """
    registry = StepRegistry()
    for spec in config.steps:
        try:
            action = build_action(spec, **remote_options)
        except (ValueError, re.error) as e:
            raise ConfigError(str(e)) from e
        registry.register(action)
    return registry
