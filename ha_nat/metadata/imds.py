"""
Instance metadata (IMDSv2) client.

Every read is authenticated with a short-lived session token obtained from
the metadata endpoint. Failures are fatal for the run; nothing is retried
at this layer.
"""
import json
import logging
from typing import Dict, Optional

import httpx

from ..core.exceptions import MetadataError
from ..services.models import InstanceIdentity, NetworkInterface


logger = logging.getLogger(__name__)

TOKEN_PATH = "latest/api/token"
IDENTITY_DOCUMENT_PATH = "latest/dynamic/instance-identity/document"
MAC_PATH = "latest/meta-data/mac"
VPC_CIDR_PATH = "latest/meta-data/network/interfaces/macs/{mac}/vpc-ipv4-cidr-block"

TOKEN_TTL_HEADER = "X-aws-ec2-metadata-token-ttl-seconds"
TOKEN_HEADER = "X-aws-ec2-metadata-token"


class MetadataClient:
    """Reads instance identity and network details from the metadata service."""

    def __init__(
        self,
        base_url: str = "http://169.254.169.254",
        token_ttl: int = 300,
        timeout: float = 2.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize the metadata client.

        Args:
            base_url: Metadata service base URL
            token_ttl: Lifetime requested for the session token, in seconds
            timeout: Per-request timeout in seconds
            http_client: Optional preconfigured httpx client (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.token_ttl = token_ttl
        self._http = http_client or httpx.Client(timeout=timeout)
        self._token: Optional[str] = None

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def fetch_token(self) -> str:
        """Obtain a session token, caching it for the rest of the run.

        Raises:
            MetadataError: If the token request fails
        """
        if self._token is not None:
            return self._token

        logger.debug("Requesting IMDSv2 token (ttl=%ss)", self.token_ttl)
        response = self._request(
            "PUT", TOKEN_PATH, headers={TOKEN_TTL_HEADER: str(self.token_ttl)}
        )
        token = response.text.strip()
        if not token:
            raise MetadataError("Metadata service returned an empty token")

        self._token = token
        return token

    def get(self, path: str) -> str:
        """Authenticated GET of a metadata path, returning the stripped body.

        Raises:
            MetadataError: If the read fails or returns an empty body
        """
        token = self.fetch_token()
        response = self._request("GET", path, headers={TOKEN_HEADER: token})
        body = response.text.strip()
        if not body:
            raise MetadataError(f"Metadata path {path} returned an empty body")
        return body

    def get_identity(self) -> InstanceIdentity:
        """Read instance id, region and availability zone from the identity document."""
        raw = self.get(IDENTITY_DOCUMENT_PATH)
        try:
            document: Dict[str, str] = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MetadataError(f"Instance identity document is not valid JSON: {e}", details=raw)

        missing = [key for key in ("instanceId", "region", "availabilityZone") if not document.get(key)]
        if missing:
            raise MetadataError(
                f"Instance identity document is missing {', '.join(missing)}", details=raw
            )

        identity = InstanceIdentity(
            instance_id=document["instanceId"],
            region=document["region"],
            availability_zone=document["availabilityZone"],
        )
        logger.info(
            "Instance %s in %s (%s)",
            identity.instance_id, identity.availability_zone, identity.region,
        )
        return identity

    def get_network_interface(self) -> NetworkInterface:
        """Read the primary interface MAC and the CIDR block of its VPC."""
        mac = self.get(MAC_PATH)
        vpc_cidr = self.get(VPC_CIDR_PATH.format(mac=mac))
        logger.info("Interface %s, VPC CIDR %s", mac, vpc_cidr)
        return NetworkInterface(mac=mac, vpc_cidr=vpc_cidr)

    def _request(self, method: str, path: str, headers: Dict[str, str]) -> httpx.Response:
        url = f"{self.base_url}/{path}"
        try:
            response = self._http.request(method, url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MetadataError(
                f"Metadata {method} {path} failed with HTTP {e.response.status_code}",
                details=str(e),
            )
        except httpx.HTTPError as e:
            raise MetadataError(f"Metadata {method} {path} failed: {e}", details=str(e))
        return response
