"""
Abstract DAO (Data Access Object) for the VPN state.

`VPNStateStore` defines the persistence contract that the lifecycle services
depend on.  Unlike a per-item repository, the store always reads and writes
the *whole* name → record mapping: the number of VPNs a person manages is
small, and rewriting everything keeps every save a single atomic step.
"""

from abc import ABC, abstractmethod

from cvpn.schemas.vpn import VPNRecord


class VPNStateStore(ABC):
    """Persistence interface for the name → VPNRecord mapping."""

    @abstractmethod
    def load(self) -> dict[str, VPNRecord]:
        """
        Return every stored record keyed by VPN name.

        When nothing has been persisted yet, an empty mapping is written
        first and then returned.

        Raises
        ------
        PersistenceError
            The stored state exists but cannot be read or parsed.
        """

    @abstractmethod
    def save(self, vpns: dict[str, VPNRecord]) -> None:
        """
        Replace the persisted state with *vpns*.

        Readers never observe a half-written state.  Raises
        ``PersistenceError`` on I/O failure; the write is not retried.
        """
