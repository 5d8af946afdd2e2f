"""
Plan use case — show what a run would attempt, in order.

Loads and resolves the registry without touching the host: no principal
check, no credential, no preconditions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from hostprov.core.config.loader import build_registry, load_config
from hostprov.core.errors import ProvisionError
from hostprov.core.models.provision import ProvisionConfig


@dataclass
class PlannedStep:
    name: str
    kind: str
    depends_on: list[str] = field(default_factory=list)
    prompt: str | None = None
    best_effort: bool = False
    description: str = ""


@dataclass
class PlanResult:
    """Resolved execution order of a registry."""

    config: ProvisionConfig | None = None
    registry_source: str = ""
    steps: list[PlannedStep] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "registry": self.registry_source,
            "name": self.config.name if self.config else "",
            "steps": [vars(step) for step in self.steps],
        }


def plan_provisioning(registry_path: Path | None = None) -> PlanResult:
    """Resolve a registry into its execution order."""
    result = PlanResult(registry_source=str(registry_path) if registry_path else "builtin")

    try:
        config = load_config(registry_path)
        result.config = config
        order = build_registry(config).resolve_order()
    except ProvisionError as e:
        result.error = str(e)
        return result

    kinds = {spec.name: spec.type for spec in config.steps}
    result.steps = [
        PlannedStep(
            name=step.name,
            kind=kinds.get(step.name, ""),
            depends_on=list(step.depends_on),
            prompt=step.prompt,
            best_effort=step.best_effort,
            description=step.description,
        )
        for step in order
    ]
    return result
