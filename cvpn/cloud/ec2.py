"""
EC2 implementation of CloudResourceClient.

A VPN managed by cvpn is two EC2 resources:
  1. A VPC (the "network") with the requested CIDR block.
  2. A virtual private gateway (the "gateway", type ipsec.1) attached to it.

Region is passed on every call; one boto3 client per region is built lazily
and cached on the instance.  botocore errors never leave this module: they
are translated into ``ProviderError``, and the not-found codes listed in
``cvpn.errors.NOT_FOUND_CODES`` are swallowed by detach/delete so that a
teardown can be re-run after a partial failure.
"""

import logging
from typing import Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cvpn.cloud.base import CloudResourceClient
from cvpn.config import settings
from cvpn.errors import NOT_FOUND_CODES, ProviderError
from cvpn.schemas.vpn import ProviderState

logger = logging.getLogger(__name__)


def _ec2_client(region: str):
    """Build a boto3 EC2 client for *region* from application settings."""
    kwargs = {"region_name": region}
    if settings.aws_access_key_id:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
        if settings.aws_session_token:
            kwargs["aws_session_token"] = settings.aws_session_token
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    return boto3.client("ec2", **kwargs)


def _tag_specs(resource_type: str, tags: dict[str, str]) -> list:
    """Build a TagSpecifications list understood by the EC2 API."""
    return [
        {
            "ResourceType": resource_type,
            "Tags": [{"Key": k, "Value": v} for k, v in tags.items()],
        }
    ]


def _provider_error(exc: Exception) -> ProviderError:
    """Translate a botocore exception into a ProviderError."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        return ProviderError(error.get("Code", "Unknown"), error.get("Message", str(exc)))
    return ProviderError(type(exc).__name__, str(exc))


class EC2ResourceClient(CloudResourceClient):
    """CloudResourceClient backed by the EC2 API via boto3."""

    def __init__(
        self,
        client_factory: Optional[Callable[[str], object]] = None,
        gateway_type: Optional[str] = None,
    ) -> None:
        self._client_factory = client_factory or _ec2_client
        self._gateway_type = gateway_type or settings.vpn_gateway_type
        self._clients: dict[str, object] = {}

    # ── Internal helpers ──────────────────────────────────────────────────────

    def _client(self, region: str):
        if region not in self._clients:
            self._clients[region] = self._client_factory(region)
        return self._clients[region]

    def _call(self, region: str, operation: str, **params) -> dict:
        """Invoke *operation* on the region's client, translating errors."""
        ec2 = self._client(region)
        try:
            return getattr(ec2, operation)(**params)
        except (ClientError, BotoCoreError) as exc:
            error = _provider_error(exc)
            if error.code not in NOT_FOUND_CODES:
                logger.error("EC2 %s failed in %s: %s", operation, region, error)
            raise error from exc

    def _call_tolerating_missing(self, region: str, operation: str, **params) -> None:
        """Like `_call`, but a not-found error means the work is already done."""
        try:
            self._call(region, operation, **params)
        except ProviderError as exc:
            if not exc.not_found:
                raise
            logger.warning("EC2 %s in %s: %s (already done, continuing)", operation, region, exc)

    # ── CloudResourceClient interface ─────────────────────────────────────────

    def create_network(self, region: str, cidr_block: str, tags: dict[str, str]) -> str:
        logger.info("Creating VPC with CIDR %s in %s", cidr_block, region)
        resp = self._call(
            region,
            "create_vpc",
            CidrBlock=cidr_block,
            TagSpecifications=_tag_specs("vpc", tags),
        )
        vpc_id = resp["Vpc"]["VpcId"]
        logger.info("VPC created: %s", vpc_id)
        return vpc_id

    def create_gateway(self, region: str, tags: dict[str, str]) -> str:
        logger.info("Creating %s virtual private gateway in %s", self._gateway_type, region)
        resp = self._call(
            region,
            "create_vpn_gateway",
            Type=self._gateway_type,
            TagSpecifications=_tag_specs("vpn-gateway", tags),
        )
        vgw_id = resp["VpnGateway"]["VpnGatewayId"]
        logger.info("Virtual private gateway created: %s", vgw_id)
        return vgw_id

    def attach_gateway(self, region: str, network_id: str, gateway_id: str) -> None:
        self._call(region, "attach_vpn_gateway", VpcId=network_id, VpnGatewayId=gateway_id)
        logger.info("Gateway %s attached to VPC %s", gateway_id, network_id)

    def detach_gateway(self, region: str, network_id: str, gateway_id: str) -> None:
        self._call_tolerating_missing(
            region, "detach_vpn_gateway", VpcId=network_id, VpnGatewayId=gateway_id
        )
        logger.info("Gateway %s detached from VPC %s", gateway_id, network_id)

    def delete_gateway(self, region: str, gateway_id: str) -> None:
        self._call_tolerating_missing(region, "delete_vpn_gateway", VpnGatewayId=gateway_id)
        logger.info("Deleted gateway %s", gateway_id)

    def delete_network(self, region: str, network_id: str) -> None:
        self._call_tolerating_missing(region, "delete_vpc", VpcId=network_id)
        logger.info("Deleted VPC %s", network_id)

    def describe_gateway_state(self, region: str, gateway_id: str) -> ProviderState:
        resp = self._call(region, "describe_vpn_gateways", VpnGatewayIds=[gateway_id])
        gateways = resp.get("VpnGateways", [])
        if not gateways:
            raise ProviderError(
                "InvalidVpnGatewayID.NotFound",
                f"The vpnGateway ID '{gateway_id}' does not exist",
            )
        state = gateways[0]["State"]
        try:
            return ProviderState(state)
        except ValueError:
            raise ProviderError("UnknownGatewayState", f"unexpected gateway state '{state}'")
