"""
ha-nat - Highly-available NAT instance bootstrap for AWS.

Turns an EC2 instance into the NAT gateway for its availability zone:
kernel forwarding and masquerading, source/destination check, a floating
elastic IP from a shared pool, and the private subnet's default route.
"""

__version__ = "1.0.0"

from ha_nat.core.exceptions import HANatError

__all__ = ["HANatError"]
