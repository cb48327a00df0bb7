"""
Data models for provisioning outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class EnsureResult(Enum):
    """Result of an ensure call."""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@dataclass
class ResourceOutcome:
    """What happened to one resource during provisioning."""
    kind: str  # "cluster", "log_group", "role", "policy", "security_group", "ingress"
    name: str
    result: EnsureResult
    identifier: Optional[str] = None
    details: Dict[str, str] = field(default_factory=dict)

    @property
    def created(self) -> bool:
        return self.result is EnsureResult.CREATED


@dataclass
class ProvisionResult:
    """Outcomes of a provisioning pass plus the values later steps need."""
    outcomes: List[ResourceOutcome] = field(default_factory=list)
    security_group_id: Optional[str] = None
    vpc_id: Optional[str] = None
    subnet_ids: List[str] = field(default_factory=list)

    def of_kind(self, kind: str) -> List[ResourceOutcome]:
        return [o for o in self.outcomes if o.kind == kind]
