"""
Idempotent provisioning of the infrastructure a service depends on.
"""

from .models import EnsureResult, ResourceOutcome, ProvisionResult
from .provisioner import ResourceProvisioner

__all__ = [
    "EnsureResult",
    "ResourceOutcome",
    "ProvisionResult",
    "ResourceProvisioner",
]
