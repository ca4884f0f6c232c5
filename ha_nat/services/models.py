"""
Data models for a NAT instance bootstrap run.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class InstanceIdentity:
    """Identity of the instance this run configures."""
    instance_id: str
    region: str
    availability_zone: str


@dataclass(frozen=True)
class NetworkInterface:
    """Primary network interface as reported by instance metadata."""
    mac: str
    vpc_cidr: str


@dataclass(frozen=True)
class EipCandidate:
    """An elastic IP allocation from the pool."""
    allocation_id: str
    public_ip: Optional[str] = None

    @classmethod
    def from_address(cls, address: Dict[str, Any]) -> "EipCandidate":
        """Build a candidate from a DescribeAddresses entry."""
        return cls(allocation_id=address['AllocationId'], public_ip=address.get('PublicIp'))


@dataclass
class AssociationAttempt:
    """One associate-address call against a pool candidate."""
    allocation_id: str
    pass_number: int
    success: bool
    error_code: Optional[str] = None   # EC2 error code when the call was rejected
    message: str = ""


@dataclass
class AssociationResult:
    """Outcome of a successful elastic IP association."""
    candidate: EipCandidate
    association_id: Optional[str]
    passes: int                        # Pool passes used, 1-based
    attempts: List[AssociationAttempt] = field(default_factory=list)
    already_owned: bool = False        # Address was bound to this instance before the run

    @property
    def public_ip(self) -> Optional[str]:
        return self.candidate.public_ip


@dataclass
class RouteUpdate:
    """Default route change applied to the zone's route table."""
    route_table_id: str
    action: str                        # 'replaced' or 'created'
    destination_cidr: str = "0.0.0.0/0"


@dataclass
class NatSetupResult:
    """Masquerade rules that were appended or found already in place."""
    sysctls: List[str] = field(default_factory=list)
    rules_added: List[str] = field(default_factory=list)
    rules_present: List[str] = field(default_factory=list)


@dataclass
class RunSummary:
    """Everything a successful run configured."""
    identity: InstanceIdentity
    interface: NetworkInterface
    nat: NatSetupResult
    source_dest_check_disabled: bool
    association: AssociationResult
    route: RouteUpdate
    started_at: datetime
    duration: Optional[float] = None   # Seconds
