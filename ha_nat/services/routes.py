"""
Default route reconciliation for the zone's private route table.
"""
import logging

from .ec2 import DEFAULT_ROUTE, EC2ServiceManager
from .models import RouteUpdate
from ..core.exceptions import ControlPlaneError, RouteTableNotFoundError, RouteUpdateError


logger = logging.getLogger(__name__)


class RouteReconciler:
    """Points the private subnet's default route at this instance."""

    def __init__(self, ec2: EC2ServiceManager, vpc_id: str, subnet_suffix: str):
        self.ec2 = ec2
        self.vpc_id = vpc_id
        self.subnet_suffix = subnet_suffix

    def name_pattern(self, availability_zone: str) -> str:
        """Name tag wildcard for the zone's route table, e.g. *private*us-east-1a*."""
        return f"*{self.subnet_suffix}*{availability_zone}*"

    def find_route_table(self, availability_zone: str) -> str:
        """Resolve the route table id for a zone.

        Raises:
            RouteTableNotFoundError: If no route table matches
        """
        pattern = self.name_pattern(availability_zone)
        tables = self.ec2.find_route_tables(self.vpc_id, pattern)
        if not tables:
            raise RouteTableNotFoundError(
                f"No route table in {self.vpc_id} tagged Name={pattern}"
            )

        route_table_id = tables[0]['RouteTableId']
        if len(tables) > 1:
            logger.warning(
                "%d route tables match Name=%s, using %s",
                len(tables), pattern, route_table_id,
            )
        return route_table_id

    def reconcile(self, instance_id: str, availability_zone: str) -> RouteUpdate:
        """Replace the default route, creating it when replacement fails.

        Raises:
            RouteTableNotFoundError: If the zone has no route table
            RouteUpdateError: If neither replace nor create succeeds
        """
        route_table_id = self.find_route_table(availability_zone)

        try:
            self.ec2.replace_route(route_table_id, instance_id, DEFAULT_ROUTE)
        except ControlPlaneError as replace_error:
            logger.info(
                "Replacing %s in %s failed (%s), creating it",
                DEFAULT_ROUTE, route_table_id, replace_error.error_code or replace_error.message,
            )
        else:
            logger.info("Replaced %s in %s -> %s", DEFAULT_ROUTE, route_table_id, instance_id)
            return RouteUpdate(route_table_id=route_table_id, action='replaced')

        try:
            self.ec2.create_route(route_table_id, instance_id, DEFAULT_ROUTE)
        except ControlPlaneError as create_error:
            raise RouteUpdateError(
                f"Failed to replace or create {DEFAULT_ROUTE} in {route_table_id}",
                details=create_error.message,
                error_code=create_error.error_code,
            )

        logger.info("Created %s in %s -> %s", DEFAULT_ROUTE, route_table_id, instance_id)
        return RouteUpdate(route_table_id=route_table_id, action='created')
