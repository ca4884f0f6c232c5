"""
Base service manager for AWS control-plane clients.
"""
from abc import ABC, abstractmethod
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..core.exceptions import ControlPlaneError


class BaseServiceManager(ABC):
    """Abstract base class for AWS service managers."""

    def __init__(self, session: boto3.Session, region: str):
        """Initialize the service manager with AWS session and region.

        Args:
            session: boto3 session (instance profile credentials on a NAT instance)
            region: AWS region to operate in
        """
        self.session = session
        self.region = region
        self._client = None

    @property
    def client(self):
        """Lazy-loaded AWS service client."""
        if self._client is None:
            self._client = self.session.client(self.service_name, region_name=self.region)
        return self._client

    @property
    @abstractmethod
    def service_name(self) -> str:
        """AWS service name (e.g., 'ec2')."""
        pass

    @staticmethod
    def error_code(error: Exception) -> Optional[str]:
        """EC2 error code of a ClientError, None for anything else."""
        if isinstance(error, ClientError):
            return error.response.get('Error', {}).get('Code', 'Unknown')
        return None

    def _handle_aws_error(self, error: Exception, operation: str, resource_id: str = None) -> None:
        """Handle AWS API errors and convert to ControlPlaneError.

        Args:
            error: The original AWS error
            operation: Operation that failed
            resource_id: ID of resource being operated on (if applicable)

        Raises:
            ControlPlaneError: Wrapped error with context
        """
        if not isinstance(error, (ClientError, BotoCoreError)):
            raise error
        resource_context = f" for resource {resource_id}" if resource_id else ""
        error_message = f"AWS {self.service_name} {operation} failed{resource_context}: {str(error)}"
        raise ControlPlaneError(error_message, details=str(error), error_code=self.error_code(error))
