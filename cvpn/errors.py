"""
Domain errors raised by the state store, the cloud client and the
lifecycle services.

The command layers (CLI and HTTP) are the only places these are caught;
everything below them lets them propagate unchanged.
"""

from typing import Optional

# Provider codes that mean "the resource is already gone".  Detach and
# delete treat these as success so an interrupted teardown can be re-run.
NOT_FOUND_CODES = frozenset(
    {
        "InvalidVpcID.NotFound",
        "InvalidVpnGatewayID.NotFound",
        "InvalidVpnGatewayAttachment.NotFound",
    }
)


class VPNError(Exception):
    """Base class for every error cvpn reports to its caller."""


class AlreadyExists(VPNError):
    def __init__(self, name: str) -> None:
        super().__init__(f"VPN '{name}' already exists")
        self.name = name


class NotFound(VPNError):
    def __init__(self, name: str) -> None:
        super().__init__(f"VPN '{name}' not found")
        self.name = name


class ProviderError(VPNError):
    """
    A remote call to the cloud provider failed.

    ``record`` is filled in by the lifecycle services when the failure
    happened after a checkpoint was persisted, so callers can show what
    was left behind.
    """

    def __init__(self, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.record = None

    @property
    def not_found(self) -> bool:
        return self.code in NOT_FOUND_CODES


class PersistenceError(VPNError):
    """The state file could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(f"{message} ({path})" if path else message)
        self.path = path
