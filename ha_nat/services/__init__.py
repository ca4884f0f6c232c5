"""EC2 control-plane services for the NAT bootstrap."""

from .base import BaseServiceManager
from .models import (
    InstanceIdentity, NetworkInterface, EipCandidate, AssociationAttempt,
    AssociationResult, RouteUpdate, NatSetupResult, RunSummary
)
from .ec2 import EC2ServiceManager
from .eip import ElasticIpAssociator, AssociatorState
from .routes import RouteReconciler

__all__ = [
    'BaseServiceManager',
    'InstanceIdentity',
    'NetworkInterface',
    'EipCandidate',
    'AssociationAttempt',
    'AssociationResult',
    'RouteUpdate',
    'NatSetupResult',
    'RunSummary',
    'EC2ServiceManager',
    'ElasticIpAssociator',
    'AssociatorState',
    'RouteReconciler'
]
