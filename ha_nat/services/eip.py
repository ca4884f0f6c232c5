"""
Elastic IP association with bounded pool retries.

Several NAT instances may start at once (an autoscaling replacement, a
multi-AZ rollout) and race for addresses from the same pool. EC2 rejects
associating an address that is already bound elsewhere, so losing a race
shows up as a failed attempt; the associator moves on to the next
candidate and, once the pool is exhausted, backs off and rescans.
"""
import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .ec2 import EC2ServiceManager
from .models import AssociationAttempt, AssociationResult, EipCandidate
from ..core.exceptions import ControlPlaneError, EipExhaustedError


logger = logging.getLogger(__name__)

ALREADY_ASSOCIATED = 'Resource.AlreadyAssociated'


class AssociatorState(Enum):
    SCANNING = 'scanning'
    BACKING_OFF = 'backing_off'
    SUCCEEDED = 'succeeded'
    EXHAUSTED = 'exhausted'


class ElasticIpAssociator:
    """Claims the first free elastic IP from an ordered pool."""

    def __init__(
        self,
        ec2: EC2ServiceManager,
        allocation_ids: Sequence[str],
        max_passes: int = 10,
        backoff_seconds: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the associator.

        Args:
            ec2: EC2 service manager
            allocation_ids: Pool of allocation ids, tried in this order
            max_passes: Full scans of the pool before giving up
            backoff_seconds: Wait between scans
            sleep: Sleep function, replaced by tests
        """
        if not allocation_ids:
            raise ValueError("Elastic IP pool is empty")
        self.ec2 = ec2
        self.allocation_ids = list(allocation_ids)
        self.max_passes = max_passes
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep
        self.state = AssociatorState.SCANNING
        self.attempts: List[AssociationAttempt] = []

    def associate(self, instance_id: str) -> AssociationResult:
        """Associate an address from the pool with the instance.

        Returns:
            The successful association

        Raises:
            EipExhaustedError: If every pass over the pool failed
        """
        self.state = AssociatorState.SCANNING
        self.attempts = []
        pass_number = 1

        # A re-run keeps whichever pool address the instance already holds
        result = self._find_owned(instance_id)
        if result is not None:
            self.state = AssociatorState.SUCCEEDED

        while True:
            if self.state is AssociatorState.SCANNING:
                logger.info(
                    "Elastic IP pass %d/%d over %d candidate(s)",
                    pass_number, self.max_passes, len(self.allocation_ids),
                )
                result = self._scan_pool(instance_id, pass_number)
                if result is not None:
                    self.state = AssociatorState.SUCCEEDED
                elif pass_number >= self.max_passes:
                    self.state = AssociatorState.EXHAUSTED
                else:
                    self.state = AssociatorState.BACKING_OFF

            elif self.state is AssociatorState.BACKING_OFF:
                logger.warning(
                    "No elastic IP available in pass %d, retrying in %ss",
                    pass_number, self.backoff_seconds,
                )
                self.sleep(self.backoff_seconds)
                pass_number += 1
                self.state = AssociatorState.SCANNING

            elif self.state is AssociatorState.SUCCEEDED:
                logger.info(
                    "Associated %s (%s) with %s",
                    result.public_ip, result.candidate.allocation_id, instance_id,
                )
                return result

            else:
                raise EipExhaustedError(
                    f"Failed to associate any elastic IP from the pool after {self.max_passes} attempts",
                    details=", ".join(self.allocation_ids),
                )

    def _find_owned(self, instance_id: str) -> Optional[AssociationResult]:
        """Return the pool address already bound to the instance, if any."""
        try:
            addresses = self.ec2.describe_addresses(self.allocation_ids)
        except ControlPlaneError as e:
            logger.warning("Could not describe the elastic IP pool, scanning it instead: %s", e.message)
            return None

        for address in addresses:
            if address.get('InstanceId') == instance_id:
                return self._owned_result(address, pass_number=1)
        return None

    def _owned_result(self, address, pass_number: int) -> AssociationResult:
        self.attempts.append(AssociationAttempt(
            allocation_id=address['AllocationId'],
            pass_number=pass_number,
            success=True,
            message="already associated with this instance",
        ))
        return AssociationResult(
            candidate=EipCandidate.from_address(address),
            association_id=address.get('AssociationId'),
            passes=pass_number,
            attempts=list(self.attempts),
            already_owned=True,
        )

    def _scan_pool(self, instance_id: str, pass_number: int) -> Optional[AssociationResult]:
        for allocation_id in self.allocation_ids:
            result = self._try_candidate(allocation_id, instance_id, pass_number)
            if result is not None:
                return result
        return None

    def _try_candidate(self, allocation_id: str, instance_id: str, pass_number: int) -> Optional[AssociationResult]:
        try:
            address = self.ec2.describe_address(allocation_id)
            # Bound to this instance since the pool was first described
            if address.get('InstanceId') == instance_id:
                return self._owned_result(address, pass_number)

            association_id = self.ec2.associate_address(allocation_id, instance_id)

        except ControlPlaneError as e:
            self.attempts.append(AssociationAttempt(
                allocation_id=allocation_id,
                pass_number=pass_number,
                success=False,
                error_code=e.error_code,
                message=e.message,
            ))
            if e.error_code == ALREADY_ASSOCIATED:
                logger.info("%s is held by another instance", allocation_id)
            else:
                logger.warning("Could not associate %s: %s", allocation_id, e.message)
            return None

        self.attempts.append(AssociationAttempt(
            allocation_id=allocation_id,
            pass_number=pass_number,
            success=True,
        ))
        return AssociationResult(
            candidate=EipCandidate.from_address(address),
            association_id=association_id,
            passes=pass_number,
            attempts=list(self.attempts),
        )
