"""
Pytest configuration and shared fixtures for ha-nat tests.
"""

import json
import subprocess
from typing import Dict, List, Optional

import httpx
import pytest
from moto import mock_aws

from ha_nat.core.config import NatConfig
from ha_nat.metadata.imds import MetadataClient


INSTANCE_ID = "i-0123456789abcdef0"
REGION = "us-east-1"
ZONE = "us-east-1a"
MAC = "0e:12:34:56:78:9a"
VPC_CIDR = "10.0.0.0/16"


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def mock_aws_services():
    """Mock all AWS services used by the application."""
    with mock_aws():
        yield


@pytest.fixture
def sample_config():
    """Sample configuration for testing."""
    return NatConfig(
        eip_allocation_ids=["eipalloc-0a", "eipalloc-0b", "eipalloc-0c"],
        vpc_id="vpc-0123abcd",
        subnet_suffix="private",
        eip_backoff_seconds=0,
    )


class FakeKernel:
    """Records sysctl and iptables invocations and keeps an in-memory nat table."""

    def __init__(self, failing: Optional[List[str]] = None):
        self.calls: List[List[str]] = []
        self.sysctls: Dict[str, str] = {}
        self.postrouting: List[List[str]] = []
        self.failing = failing or []

    def run(self, args):
        args = list(args)
        self.calls.append(args)
        joined = " ".join(args)
        if any(pattern in joined for pattern in self.failing):
            return subprocess.CompletedProcess(args, 1, stdout="", stderr="simulated failure")

        if args[0] == "sysctl":
            key, value = args[2].split("=", 1)
            self.sysctls[key] = value
            return subprocess.CompletedProcess(args, 0, stdout=f"{key} = {value}\n", stderr="")

        # iptables -t nat -C|-A POSTROUTING ...
        action, rule = args[3], args[4:]
        if action == "-C":
            code = 0 if rule in self.postrouting else 1
            return subprocess.CompletedProcess(args, code, stdout="", stderr="")
        if action == "-A":
            self.postrouting.append(rule)
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")
        return subprocess.CompletedProcess(args, 2, stdout="", stderr="unsupported")


@pytest.fixture
def fake_kernel():
    return FakeKernel()


def identity_document(instance_id=INSTANCE_ID, region=REGION, zone=ZONE) -> str:
    return json.dumps({
        "accountId": "123456789012",
        "architecture": "arm64",
        "availabilityZone": zone,
        "imageId": "ami-12345678",
        "instanceId": instance_id,
        "instanceType": "t4g.nano",
        "privateIp": "10.0.1.10",
        "region": region,
    })


class FakeMetadataService:
    """IMDSv2 behaviour served through httpx.MockTransport."""

    token = "AQAEAFakeToken=="

    def __init__(self, document: Optional[str] = None, fail_token: bool = False):
        self.document = document or identity_document()
        self.fail_token = fail_token
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/latest/api/token":
            if self.fail_token or request.method != "PUT":
                return httpx.Response(403)
            return httpx.Response(200, text=self.token)

        if request.headers.get("X-aws-ec2-metadata-token") != self.token:
            return httpx.Response(401)

        if path == "/latest/dynamic/instance-identity/document":
            return httpx.Response(200, text=self.document)
        if path == "/latest/meta-data/mac":
            return httpx.Response(200, text=MAC)
        if path == f"/latest/meta-data/network/interfaces/macs/{MAC}/vpc-ipv4-cidr-block":
            return httpx.Response(200, text=VPC_CIDR)
        return httpx.Response(404)

    def client(self) -> MetadataClient:
        return MetadataClient(http_client=httpx.Client(transport=httpx.MockTransport(self)))


@pytest.fixture
def metadata_service():
    return FakeMetadataService()
