"""
EC2 service manager: the control-plane calls a NAT instance needs.
"""
import logging
from typing import Any, Dict, List, Optional

from .base import BaseServiceManager
from ..core.exceptions import ControlPlaneError


logger = logging.getLogger(__name__)

DEFAULT_ROUTE = "0.0.0.0/0"


class EC2ServiceManager(BaseServiceManager):
    """Service manager for the EC2 API."""

    @property
    def service_name(self) -> str:
        return 'ec2'

    def disable_source_dest_check(self, instance_id: str) -> None:
        """Disable source/destination checking so the instance can forward traffic.

        Raises:
            ControlPlaneError: If the attribute change fails
        """
        try:
            self.client.modify_instance_attribute(
                InstanceId=instance_id,
                SourceDestCheck={'Value': False}
            )
        except Exception as e:
            self._handle_aws_error(e, 'modify-instance-attribute', instance_id)
        logger.info("Disabled source/destination check on %s", instance_id)

    def describe_addresses(self, allocation_ids: List[str]) -> List[Dict[str, Any]]:
        """Describe several elastic IP allocations in one call.

        Raises:
            ControlPlaneError: If any allocation cannot be described
        """
        try:
            response = self.client.describe_addresses(AllocationIds=list(allocation_ids))
        except Exception as e:
            self._handle_aws_error(e, 'describe-addresses', ", ".join(allocation_ids))
        return response.get('Addresses', [])

    def describe_address(self, allocation_id: str) -> Dict[str, Any]:
        """Describe one elastic IP allocation.

        Raises:
            ControlPlaneError: If the allocation cannot be described
        """
        addresses = self.describe_addresses([allocation_id])
        if not addresses:
            raise ControlPlaneError(
                f"Elastic IP allocation {allocation_id} not found",
                error_code='InvalidAllocationID.NotFound'
            )
        return addresses[0]

    def associate_address(self, allocation_id: str, instance_id: str) -> Optional[str]:
        """Associate an elastic IP without stealing it from another instance.

        Returns:
            The association id

        Raises:
            ControlPlaneError: If the association is rejected; error_code is
                'Resource.AlreadyAssociated' when another instance holds it
        """
        try:
            response = self.client.associate_address(
                AllocationId=allocation_id,
                InstanceId=instance_id,
                AllowReassociation=False
            )
        except Exception as e:
            self._handle_aws_error(e, 'associate-address', allocation_id)
        return response.get('AssociationId')

    def find_route_tables(self, vpc_id: str, name_pattern: str) -> List[Dict[str, Any]]:
        """Route tables in the VPC whose Name tag matches a wildcard pattern.

        Returns:
            Matching route tables sorted by route table id
        """
        try:
            response = self.client.describe_route_tables(
                Filters=[
                    {'Name': 'vpc-id', 'Values': [vpc_id]},
                    {'Name': 'tag:Name', 'Values': [name_pattern]},
                ]
            )
        except Exception as e:
            self._handle_aws_error(e, 'describe-route-tables', vpc_id)

        return sorted(response.get('RouteTables', []), key=lambda table: table['RouteTableId'])

    def replace_route(self, route_table_id: str, instance_id: str, destination: str = DEFAULT_ROUTE) -> None:
        """Point an existing route at the instance.

        Raises:
            ControlPlaneError: If the route does not exist or cannot be replaced
        """
        try:
            self.client.replace_route(
                RouteTableId=route_table_id,
                DestinationCidrBlock=destination,
                InstanceId=instance_id
            )
        except Exception as e:
            self._handle_aws_error(e, 'replace-route', route_table_id)

    def create_route(self, route_table_id: str, instance_id: str, destination: str = DEFAULT_ROUTE) -> None:
        """Create a route targeting the instance.

        Raises:
            ControlPlaneError: If the route cannot be created
        """
        try:
            self.client.create_route(
                RouteTableId=route_table_id,
                DestinationCidrBlock=destination,
                InstanceId=instance_id
            )
        except Exception as e:
            self._handle_aws_error(e, 'create-route', route_table_id)
