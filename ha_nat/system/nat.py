"""
Kernel NAT configuration: sysctl tuning and idempotent masquerade rules.
"""
import logging
import subprocess
from typing import List, Optional, Sequence

from ..core.exceptions import KernelConfigError
from ..services.models import NatSetupResult


logger = logging.getLogger(__name__)

EPHEMERAL_PORT_RANGE = "1024 65535"


class CommandRunner:
    """Runs sysctl and iptables as external processes."""

    def run(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        """Run a command and return the completed process, whatever its exit code.

        Raises:
            KernelConfigError: If the executable cannot be started
        """
        logger.debug("Running: %s", " ".join(args))
        try:
            return subprocess.run(list(args), capture_output=True, text=True, check=False)
        except OSError as e:
            raise KernelConfigError(f"Failed to run {args[0]}: {e}", details=str(e))


class NatConfigurator:
    """Turns the instance into a masquerading router for the VPC."""

    def __init__(
        self,
        external_interface: str = "eth0",
        secondary_cidrs: Optional[List[str]] = None,
        runner: Optional[CommandRunner] = None,
    ):
        """Initialize the configurator.

        Args:
            external_interface: Interface outbound traffic leaves through
            secondary_cidrs: Source ranges masqueraded in addition to the VPC CIDR
            runner: Command runner, replaced by tests
        """
        self.external_interface = external_interface
        self.secondary_cidrs = list(secondary_cidrs or [])
        self.runner = runner or CommandRunner()

    def configure(self, vpc_cidr: str) -> NatSetupResult:
        """Apply sysctls, then ensure masquerade rules for the VPC and secondary CIDRs.

        Raises:
            KernelConfigError: If any sysctl or rule append fails
        """
        result = NatSetupResult()

        for key, value in self.sysctl_settings():
            self.set_sysctl(key, value)
            result.sysctls.append(f"{key}={value}")

        for cidr in [vpc_cidr] + [c for c in self.secondary_cidrs if c != vpc_cidr]:
            rule = " ".join(self.masquerade_rule(cidr))
            if self.ensure_masquerade(cidr):
                result.rules_added.append(rule)
            else:
                result.rules_present.append(rule)

        return result

    def sysctl_settings(self) -> List[tuple]:
        return [
            ("net.ipv4.ip_forward", "1"),
            (f"net.ipv4.conf.{self.external_interface}.send_redirects", "0"),
            ("net.ipv4.ip_local_port_range", EPHEMERAL_PORT_RANGE),
        ]

    def set_sysctl(self, key: str, value: str) -> None:
        completed = self.runner.run(["sysctl", "-w", f"{key}={value}"])
        if completed.returncode != 0:
            raise KernelConfigError(
                f"sysctl {key}={value} failed (exit {completed.returncode})",
                details=(completed.stderr or "").strip(),
            )
        logger.info("Set %s=%s", key, value)

    def masquerade_rule(self, cidr: str) -> List[str]:
        """Rule specification shared by the check and append commands."""
        return ["POSTROUTING", "-o", self.external_interface, "-s", cidr, "-j", "MASQUERADE"]

    def rule_exists(self, cidr: str) -> bool:
        # iptables -C exits non-zero when the rule is absent
        completed = self.runner.run(["iptables", "-t", "nat", "-C"] + self.masquerade_rule(cidr))
        return completed.returncode == 0

    def ensure_masquerade(self, cidr: str) -> bool:
        """Append the masquerade rule for cidr unless an identical one exists.

        Returns:
            True if the rule was appended, False if it was already present

        Raises:
            KernelConfigError: If the append fails
        """
        if self.rule_exists(cidr):
            logger.info("Masquerade rule for %s via %s already present", cidr, self.external_interface)
            return False

        completed = self.runner.run(["iptables", "-t", "nat", "-A"] + self.masquerade_rule(cidr))
        if completed.returncode != 0:
            raise KernelConfigError(
                f"Failed to add masquerade rule for {cidr} (exit {completed.returncode})",
                details=(completed.stderr or "").strip(),
            )
        logger.info("Added masquerade rule for %s via %s", cidr, self.external_interface)
        return True
