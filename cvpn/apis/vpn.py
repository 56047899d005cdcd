"""
VPN router — all endpoints under /vpn.

Every route requires an operator JWT (via `get_current_operator`): reads
need the ``vpn:read`` scope, anything that touches the cloud account needs
``vpn:write``.  The creating operator is stored as the record's ``createdBy``.
The state store and the cloud client are injected via `get_state_store` and
`get_cloud_client`, so tests swap both with in-memory fakes.

Endpoints
─────────
  POST   /vpn                Create a network + gateway and record them
  GET    /vpn                List every stored VPN record
  GET    /vpn/{name}         Stored record plus live gateway state
  DELETE /vpn/{name}         Tear down the cloud resources and forget the VPN
  POST   /vpn/{name}/resume  Continue an interrupted create or delete
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Response, Security, status

from cvpn.cloud.base import CloudResourceClient
from cvpn.dao.base import VPNStateStore
from cvpn.dependencies.api import get_current_operator
from cvpn.dependencies.dao import get_cloud_client, get_state_store
from cvpn.errors import AlreadyExists, NotFound, PersistenceError, ProviderError
from cvpn.schemas.vpn import (
    CreateVPNRequest,
    VPNListResponse,
    VPNResponse,
    VPNStatusResponse,
)
from cvpn.services.auth import READ_SCOPE, WRITE_SCOPE, Operator
from cvpn.services.vpn import (
    fetch_all_vpns,
    fetch_vpn_status,
    provision_vpn,
    resume_vpn,
    teardown_vpn,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vpn", tags=["VPN Management"])


def _raise_http(operation: str, name: str, exc: Exception) -> NoReturn:
    """Map a domain error onto the matching HTTP status."""
    message = f"{operation} '{name}' failed: {exc}"
    if isinstance(exc, AlreadyExists):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, NotFound):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ProviderError):
        code = status.HTTP_502_BAD_GATEWAY
        if exc.record is not None:
            raise HTTPException(
                status_code=code,
                detail={"message": message, "record": exc.record.to_document()},
            ) from exc
    elif isinstance(exc, ValueError):
        code = status.HTTP_400_BAD_REQUEST
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    raise HTTPException(status_code=code, detail=message) from exc


@router.post(
    "",
    response_model=VPNResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a VPN",
    description=(
        "Creates a VPC with the given CIDR block and a virtual private gateway, "
        "attaches the gateway, and records both ids in the state file. If a later "
        "step fails the partial record is kept and returned in the error detail."
    ),
)
def create_vpn(
    body: CreateVPNRequest,
    operator: Operator = Security(get_current_operator, scopes=[WRITE_SCOPE]),
    store: VPNStateStore = Depends(get_state_store),
    cloud: CloudResourceClient = Depends(get_cloud_client),
) -> VPNResponse:
    logger.info("POST /vpn '%s' called by '%s'", body.name, operator.name)
    try:
        record = provision_vpn(
            body.name,
            body.region,
            body.cidr_block,
            store=store,
            cloud=cloud,
            created_by=operator.name,
        )
    except (AlreadyExists, ProviderError, PersistenceError, ValueError) as exc:
        _raise_http("create", body.name, exc)
    return VPNResponse(name=body.name, **record.model_dump())


@router.get(
    "",
    response_model=VPNListResponse,
    summary="List all VPN records",
    description="Returns every record in the state file. No cloud calls are made.",
)
def list_vpns(
    operator: Operator = Security(get_current_operator, scopes=[READ_SCOPE]),
    store: VPNStateStore = Depends(get_state_store),
) -> VPNListResponse:
    logger.info("GET /vpn called by '%s'", operator.name)
    try:
        vpns = fetch_all_vpns(store=store)
    except PersistenceError as exc:
        _raise_http("list", "*", exc)
    return VPNListResponse(count=len(vpns), vpns=vpns)


@router.get(
    "/{name}",
    response_model=VPNStatusResponse,
    summary="Get a VPN with its live gateway state",
)
def get_vpn_status(
    name: str,
    operator: Operator = Security(get_current_operator, scopes=[READ_SCOPE]),
    store: VPNStateStore = Depends(get_state_store),
    cloud: CloudResourceClient = Depends(get_cloud_client),
) -> VPNStatusResponse:
    logger.info("GET /vpn/%s called by '%s'", name, operator.name)
    try:
        return fetch_vpn_status(name, store=store, cloud=cloud)
    except (NotFound, ProviderError, PersistenceError) as exc:
        _raise_http("status", name, exc)


@router.delete(
    "/{name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a VPN and its cloud resources",
    description=(
        "Detaches and deletes the gateway, deletes the VPC, then removes the record. "
        "On failure the record stays at status 'deleting' and the call can be repeated."
    ),
)
def delete_vpn(
    name: str,
    operator: Operator = Security(get_current_operator, scopes=[WRITE_SCOPE]),
    store: VPNStateStore = Depends(get_state_store),
    cloud: CloudResourceClient = Depends(get_cloud_client),
) -> None:
    logger.info("DELETE /vpn/%s called by '%s'", name, operator.name)
    try:
        teardown_vpn(name, store=store, cloud=cloud)
    except (NotFound, ProviderError, PersistenceError) as exc:
        _raise_http("delete", name, exc)


@router.post(
    "/{name}/resume",
    response_model=VPNResponse,
    summary="Resume an interrupted create or delete",
    responses={204: {"description": "A pending delete completed"}},
)
def resume(
    name: str,
    operator: Operator = Security(get_current_operator, scopes=[WRITE_SCOPE]),
    store: VPNStateStore = Depends(get_state_store),
    cloud: CloudResourceClient = Depends(get_cloud_client),
):
    logger.info("POST /vpn/%s/resume called by '%s'", name, operator.name)
    try:
        record = resume_vpn(name, store=store, cloud=cloud)
    except (NotFound, ProviderError, PersistenceError) as exc:
        _raise_http("resume", name, exc)
    if record is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return VPNResponse(name=name, **record.model_dump())
