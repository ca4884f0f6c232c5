"""Tests for the EC2 service manager."""

from unittest.mock import Mock

import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from ha_nat.core.exceptions import ControlPlaneError
from ha_nat.services.ec2 import EC2ServiceManager

from conftest import REGION


def client_error(code, operation):
    return ClientError({'Error': {'Code': code, 'Message': f'{code} raised'}}, operation)


class TestEC2ServiceManager:
    """EC2 calls made by the bootstrap."""

    @mock_aws
    def test_disable_source_dest_check(self):
        """Source/destination checking is switched off on the instance."""
        session = boto3.Session(region_name=REGION)
        client = session.client('ec2', region_name=REGION)
        instance_id = client.run_instances(
            ImageId='ami-12345678', MinCount=1, MaxCount=1, InstanceType='t3.micro'
        )['Instances'][0]['InstanceId']

        EC2ServiceManager(session, REGION).disable_source_dest_check(instance_id)

        attribute = client.describe_instance_attribute(InstanceId=instance_id, Attribute='sourceDestCheck')
        assert attribute['SourceDestCheck']['Value'] is False

    @mock_aws
    def test_describe_addresses_covers_whole_pool(self):
        """One call describes every allocation in the pool with its binding."""
        session = boto3.Session(region_name=REGION)
        client = session.client('ec2', region_name=REGION)
        instance_id = client.run_instances(
            ImageId='ami-12345678', MinCount=1, MaxCount=1, InstanceType='t3.micro'
        )['Instances'][0]['InstanceId']
        free = client.allocate_address(Domain='vpc')
        bound = client.allocate_address(Domain='vpc')
        client.associate_address(AllocationId=bound['AllocationId'], InstanceId=instance_id)

        addresses = EC2ServiceManager(session, REGION).describe_addresses(
            [free['AllocationId'], bound['AllocationId']]
        )

        by_id = {a['AllocationId']: a for a in addresses}
        assert set(by_id) == {free['AllocationId'], bound['AllocationId']}
        assert by_id[bound['AllocationId']]['InstanceId'] == instance_id
        assert by_id[free['AllocationId']]['PublicIp'] == free['PublicIp']

    @mock_aws
    def test_describe_address(self):
        """A single allocation resolves to its public IP."""
        session = boto3.Session(region_name=REGION)
        allocation = session.client('ec2', region_name=REGION).allocate_address(Domain='vpc')

        address = EC2ServiceManager(session, REGION).describe_address(allocation['AllocationId'])

        assert address['AllocationId'] == allocation['AllocationId']
        assert address['PublicIp'] == allocation['PublicIp']

    @mock_aws
    def test_unknown_allocation_raises(self):
        """An allocation EC2 does not know is a control-plane error."""
        session = boto3.Session(region_name=REGION)

        with pytest.raises(ControlPlaneError):
            EC2ServiceManager(session, REGION).describe_address('eipalloc-00000000')

    def test_client_error_wrapped_with_code(self):
        """Client errors keep their EC2 error code."""
        manager = EC2ServiceManager(Mock(), REGION)
        manager._client = Mock()
        manager._client.associate_address.side_effect = client_error(
            'Resource.AlreadyAssociated', 'AssociateAddress'
        )

        with pytest.raises(ControlPlaneError) as exc_info:
            manager.associate_address('eipalloc-0a', 'i-0123')

        assert exc_info.value.error_code == 'Resource.AlreadyAssociated'
        assert 'eipalloc-0a' in exc_info.value.message
        manager._client.associate_address.assert_called_once_with(
            AllocationId='eipalloc-0a', InstanceId='i-0123', AllowReassociation=False
        )

    def test_non_aws_errors_propagate(self):
        """Errors that are not from AWS are not wrapped."""
        manager = EC2ServiceManager(Mock(), REGION)
        manager._client = Mock()
        manager._client.replace_route.side_effect = KeyError('boom')

        with pytest.raises(KeyError):
            manager.replace_route('rtb-0a', 'i-0123')

    def test_client_created_lazily_for_region(self):
        """The EC2 client is built once, on first use, for the configured region."""
        session = Mock()
        manager = EC2ServiceManager(session, 'eu-west-1')

        session.client.assert_not_called()
        manager.client
        manager.client

        session.client.assert_called_once_with('ec2', region_name='eu-west-1')
