"""
VPN service layer — orchestrates the network + gateway lifecycle and the
state checkpoints that make it recoverable.

Each function receives a `VPNStateStore` and a `CloudResourceClient`
(injected by the CLI or the API router).  The service has no knowledge of
which storage backend or which cloud SDK is in use.

Lifecycle per VPN name
──────────────────────
  (absent)  --network created-->           creating
  creating  --gateway created + attached--> active
  active    --gateway detached + deleted--> deleting
  deleting  --network deleted-->           (absent)

The store is saved before every step that could leave something behind in
the cloud, so after any failure the persisted ``status`` says exactly what
to retry.  Nothing is rolled back automatically: a half-built VPN stays in
the store at ``creating`` until it is resumed or deleted.

The API serves requests from a thread pool, so every load → mutate → save
sequence runs under one process-wide lock.  Separate processes sharing a
state file are still not coordinated.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from cvpn.cloud.base import CloudResourceClient
from cvpn.dao.base import VPNStateStore
from cvpn.errors import AlreadyExists, NotFound, ProviderError
from cvpn.schemas.vpn import VPNRecord, VPNStatus, VPNStatusResponse, validate_vpn_cidr

logger = logging.getLogger(__name__)

OWNER_TAG = "cvpn:name"

_state_lock = threading.Lock()


def network_tags(name: str) -> dict[str, str]:
    return {"Name": f"vpn-{name}", OWNER_TAG: name}


def gateway_tags(name: str) -> dict[str, str]:
    return {"Name": f"vgw-{name}", OWNER_TAG: name}


# ── Internal helpers ──────────────────────────────────────────────────────────

def _checkpoint(
    store: VPNStateStore,
    vpns: dict[str, VPNRecord],
    name: str,
    record: VPNRecord,
) -> VPNRecord:
    vpns[name] = record
    store.save(vpns)
    logger.info("VPN '%s' checkpointed at status '%s'.", name, record.status.value)
    return record


def _tolerating_missing(step: str, call: Callable[..., None], *args) -> None:
    """Run a detach/delete step; a not-found answer means it already happened."""
    try:
        call(*args)
    except ProviderError as exc:
        if not exc.not_found:
            raise
        logger.warning("%s: resource already gone (%s); continuing.", step, exc)


def _get_record(vpns: dict[str, VPNRecord], name: str) -> VPNRecord:
    record = vpns.get(name)
    if record is None:
        raise NotFound(name)
    return record


def _finish_provisioning(
    name: str,
    record: VPNRecord,
    vpns: dict[str, VPNRecord],
    store: VPNStateStore,
    cloud: CloudResourceClient,
) -> VPNRecord:
    """Create (if missing) and attach the gateway, then mark the VPN active."""
    try:
        if record.gateway_id is None:
            gateway_id = cloud.create_gateway(record.region, gateway_tags(name))
            record = _checkpoint(
                store, vpns, name, record.model_copy(update={"gateway_id": gateway_id})
            )
        cloud.attach_gateway(record.region, record.network_id, record.gateway_id)
    except ProviderError as exc:
        logger.error(
            "Provisioning of VPN '%s' stopped at status '%s': %s",
            name,
            record.status.value,
            exc,
        )
        exc.record = record
        raise

    return _checkpoint(
        store, vpns, name, record.model_copy(update={"status": VPNStatus.ACTIVE})
    )


def _finish_teardown(
    name: str,
    record: VPNRecord,
    vpns: dict[str, VPNRecord],
    store: VPNStateStore,
    cloud: CloudResourceClient,
) -> None:
    """Mark the VPN deleting, remove its cloud resources, then drop the record."""
    if record.status is not VPNStatus.DELETING:
        record = _checkpoint(
            store, vpns, name, record.model_copy(update={"status": VPNStatus.DELETING})
        )

    region = record.region
    try:
        if record.gateway_id is not None:
            _tolerating_missing(
                "detach gateway",
                cloud.detach_gateway,
                region,
                record.network_id,
                record.gateway_id,
            )
            _tolerating_missing("delete gateway", cloud.delete_gateway, region, record.gateway_id)
        _tolerating_missing("delete network", cloud.delete_network, region, record.network_id)
    except ProviderError as exc:
        logger.error("Teardown of VPN '%s' left at status 'deleting': %s", name, exc)
        exc.record = record
        raise

    del vpns[name]
    store.save(vpns)
    logger.info("VPN '%s' deleted and removed from state.", name)


# ── Public operations ─────────────────────────────────────────────────────────

def provision_vpn(
    name: str,
    region: str,
    cidr_block: str,
    store: VPNStateStore,
    cloud: CloudResourceClient,
    created_by: Optional[str] = None,
) -> VPNRecord:
    """
    Create the network and gateway for a new VPN and record them.

    Parameters
    ----------
    name : str
        Unique VPN name; rejected with ``AlreadyExists`` before any cloud
        call if the store already holds it.
    region : str
        Region passed to every cloud call for this VPN.
    cidr_block : str
        IPv4 CIDR block for the network (/16 to /28).
    store : VPNStateStore
        Where the record is checkpointed.
    cloud : CloudResourceClient
        Provider used to create the resources.
    created_by : str, optional
        Operator or local user stored in the record for auditing.

    Returns
    -------
    VPNRecord
        The record at ``status: active``.

    Raises
    ------
    ProviderError
        A cloud call failed.  If the network had already been created, the
        persisted partial record is attached as ``exc.record``.
    """
    if not name:
        raise ValueError("VPN name must not be empty.")
    if not region:
        raise ValueError("Region must not be empty.")
    validate_vpn_cidr(cidr_block)

    with _state_lock:
        vpns = store.load()
        if name in vpns:
            raise AlreadyExists(name)

        logger.info(
            "Provisioning VPN '%s' in %s (%s) for '%s'.",
            name,
            region,
            cidr_block,
            created_by or "unknown",
        )

        network_id = cloud.create_network(region, cidr_block, network_tags(name))
        record = _checkpoint(
            store,
            vpns,
            name,
            VPNRecord(
                region=region,
                network_id=network_id,
                cidr_block=cidr_block,
                status=VPNStatus.CREATING,
                created_at=datetime.now(timezone.utc).isoformat(),
                created_by=created_by,
            ),
        )

        record = _finish_provisioning(name, record, vpns, store, cloud)
    logger.info("VPN '%s' provisioned and persisted.", name)
    return record


def teardown_vpn(name: str, store: VPNStateStore, cloud: CloudResourceClient) -> None:
    """
    Detach and delete the gateway, delete the network, then forget the VPN.

    The record is moved to ``deleting`` before the first destructive call and
    removed only once every step succeeded or reported the resource already
    gone.  Re-running after a failure picks up where the last run stopped.
    """
    with _state_lock:
        vpns = store.load()
        record = _get_record(vpns, name)
        logger.info(
            "Deleting VPN '%s' (network %s, gateway %s).",
            name,
            record.network_id,
            record.gateway_id,
        )
        _finish_teardown(name, record, vpns, store, cloud)


def resume_vpn(
    name: str, store: VPNStateStore, cloud: CloudResourceClient
) -> Optional[VPNRecord]:
    """
    Continue an interrupted create or delete.

    Returns the active record, or ``None`` when a pending delete completed.
    """
    with _state_lock:
        vpns = store.load()
        record = _get_record(vpns, name)

        if record.status is VPNStatus.CREATING:
            logger.info("Resuming provisioning of VPN '%s'.", name)
            return _finish_provisioning(name, record, vpns, store, cloud)
        if record.status is VPNStatus.DELETING:
            logger.info("Resuming deletion of VPN '%s'.", name)
            _finish_teardown(name, record, vpns, store, cloud)
            return None

    logger.info("VPN '%s' is already active; nothing to resume.", name)
    return record


def fetch_all_vpns(store: VPNStateStore) -> dict[str, VPNRecord]:
    """Return every stored record, exactly as last persisted."""
    with _state_lock:
        return store.load()


def fetch_vpn_status(
    name: str, store: VPNStateStore, cloud: CloudResourceClient
) -> VPNStatusResponse:
    """
    Return the stored record plus the gateway state the provider reports now.

    The stored ``status`` is left untouched.  A VPN without a gateway yet
    has no live state to report.
    """
    with _state_lock:
        record = _get_record(store.load(), name)
        current = None
        if record.gateway_id is not None:
            current = cloud.describe_gateway_state(record.region, record.gateway_id)
    return VPNStatusResponse(name=name, current_status=current, **record.model_dump())
