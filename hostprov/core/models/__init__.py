"""
Domain models — the types a run passes around.

All models are re-exported here for convenient access:

    from hostprov.core.models import Credential, Host, RunResult, RunReport
"""

from hostprov.core.models.credential import Credential
from hostprov.core.models.host import Host
from hostprov.core.models.provision import ProvisionConfig, StepSpec
from hostprov.core.models.result import RunReport, RunResult

__all__ = [
    "Credential",
    "Host",
    "ProvisionConfig",
    "RunReport",
    "RunResult",
    "StepSpec",
]
