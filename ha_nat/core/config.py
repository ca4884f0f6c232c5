"""Configuration management for ha-nat."""

import ipaddress
import json
import os
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ha_nat.core.exceptions import ConfigurationError


DEFAULT_CONFIG_FILE = Path("/etc/ha-nat/config.json")

# Environment variables injected at deployment time (user data, systemd unit).
ENV_VARS: Dict[str, str] = {
    "eip_allocation_ids": "HA_NAT_EIP_POOL",
    "vpc_id": "HA_NAT_VPC_ID",
    "subnet_suffix": "HA_NAT_SUBNET_SUFFIX",
    "external_interface": "HA_NAT_INTERFACE",
    "secondary_cidrs": "HA_NAT_SECONDARY_CIDRS",
    "eip_max_attempts": "HA_NAT_EIP_MAX_ATTEMPTS",
    "eip_backoff_seconds": "HA_NAT_EIP_BACKOFF",
    "metadata_url": "HA_NAT_METADATA_URL",
    "metadata_token_ttl": "HA_NAT_METADATA_TOKEN_TTL",
    "metadata_timeout": "HA_NAT_METADATA_TIMEOUT",
}


def _split_csv(value):
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class NatConfig(BaseModel):
    """Configuration model for a NAT instance bootstrap run."""

    eip_allocation_ids: List[str] = Field(..., min_length=1, description="Ordered elastic IP allocation pool")
    vpc_id: str = Field(..., description="VPC holding the private route tables")
    subnet_suffix: str = Field(..., min_length=1, description="Route table Name tag suffix")
    external_interface: str = Field(default="eth0", description="Interface traffic leaves through")
    secondary_cidrs: List[str] = Field(default_factory=lambda: ["100.64.0.0/10"], description="Extra masqueraded source ranges")
    eip_max_attempts: int = Field(default=10, ge=1, description="Full passes over the EIP pool")
    eip_backoff_seconds: float = Field(default=60.0, ge=0, description="Sleep between EIP pool passes")
    metadata_url: str = Field(default="http://169.254.169.254", description="Instance metadata service base URL")
    metadata_token_ttl: int = Field(default=300, ge=1, le=21600, description="IMDSv2 token lifetime in seconds")
    metadata_timeout: float = Field(default=2.0, gt=0, description="Per-request metadata timeout in seconds")

    @field_validator('eip_allocation_ids', mode='before')
    @classmethod
    def split_allocation_ids(cls, v):
        """Accept the pool as a comma-separated string."""
        return _split_csv(v)

    @field_validator('eip_allocation_ids')
    @classmethod
    def validate_allocation_ids(cls, v: List[str]) -> List[str]:
        """Validate elastic IP allocation id format."""
        for allocation_id in v:
            if not re.match(r'^eipalloc-[0-9a-f]+$', allocation_id):
                raise ValueError(
                    f"Invalid allocation id: {allocation_id}. "
                    "Expected format: eipalloc-0123456789abcdef0"
                )
        return v

    @field_validator('vpc_id')
    @classmethod
    def validate_vpc_id(cls, v: str) -> str:
        """Validate VPC id format."""
        if not re.match(r'^vpc-[0-9a-f]+$', v):
            raise ValueError(f"Invalid VPC id: {v}. Expected format: vpc-0123456789abcdef0")
        return v

    @field_validator('secondary_cidrs', mode='before')
    @classmethod
    def split_secondary_cidrs(cls, v):
        return _split_csv(v)

    @field_validator('secondary_cidrs')
    @classmethod
    def validate_secondary_cidrs(cls, v: List[str]) -> List[str]:
        """Normalise secondary CIDRs, rejecting anything that is not IPv4."""
        normalised = []
        for cidr in v:
            try:
                network = ipaddress.IPv4Network(cidr, strict=False)
            except ValueError:
                raise ValueError(f"Invalid secondary CIDR: {cidr}")
            normalised.append(str(network))
        return normalised

    @field_validator('metadata_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')


class ConfigManager:
    """Loads ha-nat configuration from a JSON file and the environment."""

    def __init__(self, config_file: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None):
        """Initialize configuration manager.

        Args:
            config_file: Optional JSON configuration file.
                         Defaults to /etc/ha-nat/config.json
            environ: Environment mapping, defaults to os.environ
        """
        self.config_file = Path(config_file) if config_file is not None else DEFAULT_CONFIG_FILE
        self.environ = os.environ if environ is None else environ

    def load_config(self) -> NatConfig:
        """Load configuration, with environment variables overriding the file.

        Returns:
            Validated NatConfig.

        Raises:
            ConfigurationError: If the file is corrupted or the result is invalid.
        """
        config_data = self._read_file()
        config_data.update(self._read_environ())

        try:
            return NatConfig(**config_data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}", details=str(e))

    def _read_file(self) -> Dict[str, object]:
        if not self.config_file.exists():
            return {}

        try:
            with open(self.config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid configuration file {self.config_file}: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file {self.config_file}: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {self.config_file} must hold a JSON object")
        return config_data

    def _read_environ(self) -> Dict[str, str]:
        return {
            field: self.environ[env_var]
            for field, env_var in ENV_VARS.items()
            if self.environ.get(env_var)
        }
