"""
Pydantic schemas for VPN records and the API that exposes them.

`VPNRecord` is also the on-disk shape: the state store dumps it with
camelCase aliases, so the YAML file and the JSON API use the same keys.
"""

import ipaddress
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class VPNStatus(str, Enum):
    """Lifecycle marker owned by cvpn (never taken from the provider)."""

    CREATING = "creating"
    ACTIVE = "active"
    DELETING = "deleting"


class ProviderState(str, Enum):
    """Gateway state as reported live by the provider."""

    PENDING = "pending"
    AVAILABLE = "available"
    DELETING = "deleting"
    DELETED = "deleted"


def validate_vpn_cidr(value: str) -> str:
    """Accept an IPv4 CIDR whose prefix AWS allows for a VPC (/16 to /28)."""
    try:
        net = ipaddress.IPv4Network(value, strict=False)
    except ValueError:
        raise ValueError(f"'{value}' is not a valid IPv4 CIDR block.")
    if net.prefixlen > 28 or net.prefixlen < 16:
        raise ValueError("VPN CIDR prefix must be between /16 and /28.")
    return value


# ── Persisted record ──────────────────────────────────────────────────────────

class VPNRecord(BaseModel):
    """
    Resource ids and lifecycle status of one managed VPN.

    Older ``~/.vpnrc.yml`` files used ``vpcId``/``vgwId``; those keys are
    still read, but records are always written back with
    ``networkId``/``gatewayId``.  Unknown keys are rejected rather than
    dropped on the next save.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    region: str
    network_id: str = Field(
        ...,
        alias="networkId",
        validation_alias=AliasChoices("networkId", "vpcId", "network_id"),
    )
    gateway_id: Optional[str] = Field(
        None,
        alias="gatewayId",
        validation_alias=AliasChoices("gatewayId", "vgwId", "gateway_id"),
    )
    cidr_block: str = Field(..., alias="cidrBlock")
    status: VPNStatus
    created_at: Optional[str] = Field(None, alias="createdAt")
    created_by: Optional[str] = Field(None, alias="createdBy")

    def to_document(self) -> dict:
        """Plain dict with camelCase keys, ready for YAML or JSON."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Request models ────────────────────────────────────────────────────────────

class CreateVPNRequest(BaseModel):
    """Request body for POST /vpn."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(
        ...,
        min_length=1,
        examples=["office"],
        description="Unique name of the VPN within the state file.",
    )
    region: str = Field(
        ...,
        min_length=1,
        examples=["us-east-1"],
        description="AWS region to create the network and gateway in.",
    )
    cidr_block: str = Field(
        ...,
        alias="cidrBlock",
        examples=["10.0.0.0/16"],
        description="IPv4 CIDR block for the network.",
    )

    @field_validator("cidr_block")
    @classmethod
    def validate_cidr_block(cls, v: str) -> str:
        return validate_vpn_cidr(v)


# ── Response models ───────────────────────────────────────────────────────────

class VPNResponse(VPNRecord):
    """A record together with the name it is stored under."""

    name: str


class VPNStatusResponse(VPNResponse):
    """Stored record augmented with the live gateway state."""

    current_status: Optional[ProviderState] = Field(None, alias="currentStatus")


class VPNListResponse(BaseModel):
    """Returned by GET /vpn (list all)."""

    count: int
    vpns: dict[str, VPNRecord]
