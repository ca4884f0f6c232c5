"""
Core exception classes for ha-nat.
"""


class HANatError(Exception):
    """Base exception for all ha-nat errors."""
    
    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(HANatError):
    """Raised when configuration is invalid or missing."""
    pass


class MetadataError(HANatError):
    """Raised when the instance metadata service cannot be read."""
    pass


class KernelConfigError(HANatError):
    """Raised when a sysctl or iptables step fails."""
    pass


class ControlPlaneError(HANatError):
    """Raised when EC2 API operations fail."""

    def __init__(self, message: str, details: str = None, error_code: str = None):
        super().__init__(message, details)
        self.error_code = error_code


class EipExhaustedError(ControlPlaneError):
    """Raised when no elastic IP from the pool could be associated."""
    pass


class RouteTableNotFoundError(ControlPlaneError):
    """Raised when no route table matches the VPC, zone and subnet suffix."""
    pass


class RouteUpdateError(ControlPlaneError):
    """Raised when the default route could be neither replaced nor created."""
    pass


class UserCancelled(HANatError):
    """Raised when the operator interrupts the run (Ctrl+C)."""

    def __init__(self, message: str = "Run interrupted by operator"):
        super().__init__(message)
