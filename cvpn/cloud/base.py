"""
Capability interface the lifecycle services use to talk to a cloud provider.

Every method takes the region explicitly; implementations must not rely on
a process-wide "current region".  Identifiers crossing this boundary are
opaque strings.  Any method may raise ``ProviderError``.
"""

from abc import ABC, abstractmethod

from cvpn.schemas.vpn import ProviderState


class CloudResourceClient(ABC):
    """Create, attach, detach, delete and inspect a network + gateway pair."""

    @abstractmethod
    def create_network(self, region: str, cidr_block: str, tags: dict[str, str]) -> str:
        """Create a network for *cidr_block* and return its id."""

    @abstractmethod
    def create_gateway(self, region: str, tags: dict[str, str]) -> str:
        """Create a VPN gateway and return its id."""

    @abstractmethod
    def attach_gateway(self, region: str, network_id: str, gateway_id: str) -> None:
        """Attach *gateway_id* to *network_id*."""

    @abstractmethod
    def detach_gateway(self, region: str, network_id: str, gateway_id: str) -> None:
        """Detach the gateway.  An already-detached gateway is not an error."""

    @abstractmethod
    def delete_gateway(self, region: str, gateway_id: str) -> None:
        """Delete the gateway.  An already-deleted gateway is not an error."""

    @abstractmethod
    def delete_network(self, region: str, network_id: str) -> None:
        """Delete the network.  An already-deleted network is not an error."""

    @abstractmethod
    def describe_gateway_state(self, region: str, gateway_id: str) -> ProviderState:
        """Return the provider's current state for the gateway."""
