"""
Bootstrap pipeline: metadata, kernel NAT, source/dest check, elastic IP, route.
"""
import logging
import time
from datetime import datetime
from typing import Callable, Optional

import boto3

from .ec2 import EC2ServiceManager
from .eip import ElasticIpAssociator
from .models import RunSummary
from .routes import RouteReconciler
from ..core.config import NatConfig
from ..core.exceptions import ControlPlaneError
from ..metadata.imds import MetadataClient
from ..system.nat import CommandRunner, NatConfigurator


logger = logging.getLogger(__name__)


class NatBootstrap:
    """Runs the NAT instance configuration steps in order, failing fast."""

    def __init__(
        self,
        config: NatConfig,
        metadata: Optional[MetadataClient] = None,
        runner: Optional[CommandRunner] = None,
        session: Optional[boto3.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the pipeline.

        Args:
            config: Validated configuration
            metadata: Metadata client, built from config for each run and closed
                      afterwards when omitted
            runner: Command runner for sysctl and iptables
            session: boto3 session, created for the instance's region when omitted
            sleep: Sleep function used between elastic IP passes
        """
        self.config = config
        self.metadata = metadata
        self.runner = runner or CommandRunner()
        self.session = session
        self.sleep = sleep

    def run(self) -> RunSummary:
        """Configure this instance as the zone's NAT gateway.

        Raises:
            HANatError: On any fatal step; the instance may be left partially configured
        """
        started_at = datetime.now()

        metadata = self.metadata or self.build_metadata_client()
        try:
            identity = metadata.get_identity()
            interface = metadata.get_network_interface()
        finally:
            if metadata is not self.metadata:
                metadata.close()

        nat = NatConfigurator(
            external_interface=self.config.external_interface,
            secondary_cidrs=self.config.secondary_cidrs,
            runner=self.runner,
        ).configure(interface.vpc_cidr)

        session = self.session or boto3.Session(region_name=identity.region)
        ec2 = EC2ServiceManager(session, identity.region)

        source_dest_check_disabled = self.disable_source_dest_check(ec2, identity.instance_id)

        association = ElasticIpAssociator(
            ec2,
            self.config.eip_allocation_ids,
            max_passes=self.config.eip_max_attempts,
            backoff_seconds=self.config.eip_backoff_seconds,
            sleep=self.sleep,
        ).associate(identity.instance_id)

        route = RouteReconciler(
            ec2, self.config.vpc_id, self.config.subnet_suffix
        ).reconcile(identity.instance_id, identity.availability_zone)

        return RunSummary(
            identity=identity,
            interface=interface,
            nat=nat,
            source_dest_check_disabled=source_dest_check_disabled,
            association=association,
            route=route,
            started_at=started_at,
            duration=(datetime.now() - started_at).total_seconds(),
        )

    def build_metadata_client(self) -> MetadataClient:
        return MetadataClient(
            base_url=self.config.metadata_url,
            token_ttl=self.config.metadata_token_ttl,
            timeout=self.config.metadata_timeout,
        )

    def disable_source_dest_check(self, ec2: EC2ServiceManager, instance_id: str) -> bool:
        """Best-effort: a failure is logged and the run carries on."""
        try:
            ec2.disable_source_dest_check(instance_id)
        except ControlPlaneError as e:
            logger.error(
                "Could not disable source/destination check on %s, "
                "forwarded traffic may be dropped: %s",
                instance_id, e.message,
            )
            return False
        return True
