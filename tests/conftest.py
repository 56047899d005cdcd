import itertools
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cvpn.cloud.base import CloudResourceClient
from cvpn.dao.base import VPNStateStore
from cvpn.dependencies.api import get_current_operator
from cvpn.dependencies.dao import get_cloud_client, get_state_store
from cvpn.errors import PersistenceError, ProviderError
from cvpn.main import app
from cvpn.schemas.vpn import ProviderState, VPNRecord
from cvpn.services.auth import READ_SCOPE, WRITE_SCOPE, Operator


class InMemoryStateStore(VPNStateStore):
    """Keeps serialised documents so every load returns fresh objects."""

    def __init__(self) -> None:
        self.documents: dict[str, dict] = {}
        self.saves = 0
        self.fail_saves = False

    def load(self) -> dict[str, VPNRecord]:
        return {name: VPNRecord.model_validate(doc) for name, doc in self.documents.items()}

    def save(self, vpns: dict[str, VPNRecord]) -> None:
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.documents = {name: record.to_document() for name, record in vpns.items()}
        self.saves += 1


class FakeCloudClient(CloudResourceClient):
    """
    Tracks networks, gateways and attachments like a tiny provider would.

    Detach/delete of something that does not exist raises the same
    not-found codes EC2 uses.  `fail(op, code)` makes the next call to *op*
    raise a ProviderError.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.networks: dict[str, str] = {}
        self.gateways: dict[str, str] = {}
        self.attachments: set[tuple[str, str]] = set()
        self.tags: dict[str, dict[str, str]] = {}
        self.failures: dict[str, ProviderError] = {}
        self._ids = itertools.count(1)

    def fail(self, operation: str, code: str = "InternalError", message: str = "boom") -> None:
        self.failures[operation] = ProviderError(code, message)

    def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation,) + args)
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    @property
    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    def create_network(self, region, cidr_block, tags):
        self._enter("create_network", region, cidr_block)
        network_id = f"vpc-{next(self._ids):04d}"
        self.networks[network_id] = cidr_block
        self.tags[network_id] = dict(tags)
        return network_id

    def create_gateway(self, region, tags):
        self._enter("create_gateway", region)
        gateway_id = f"vgw-{next(self._ids):04d}"
        self.gateways[gateway_id] = ProviderState.AVAILABLE.value
        self.tags[gateway_id] = dict(tags)
        return gateway_id

    def attach_gateway(self, region, network_id, gateway_id):
        self._enter("attach_gateway", region, network_id, gateway_id)
        self.attachments.add((network_id, gateway_id))

    def detach_gateway(self, region, network_id, gateway_id):
        self._enter("detach_gateway", region, network_id, gateway_id)
        if (network_id, gateway_id) not in self.attachments:
            raise ProviderError("InvalidVpnGatewayAttachment.NotFound", "no such attachment")
        self.attachments.discard((network_id, gateway_id))

    def delete_gateway(self, region, gateway_id):
        self._enter("delete_gateway", region, gateway_id)
        if self.gateways.pop(gateway_id, None) is None:
            raise ProviderError("InvalidVpnGatewayID.NotFound", "no such gateway")

    def delete_network(self, region, network_id):
        self._enter("delete_network", region, network_id)
        if self.networks.pop(network_id, None) is None:
            raise ProviderError("InvalidVpcID.NotFound", "no such vpc")

    def describe_gateway_state(self, region, gateway_id):
        self._enter("describe_gateway_state", region, gateway_id)
        if gateway_id not in self.gateways:
            raise ProviderError("InvalidVpnGatewayID.NotFound", "no such gateway")
        return ProviderState(self.gateways[gateway_id])


@pytest.fixture()
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture()
def cloud() -> FakeCloudClient:
    return FakeCloudClient()


@pytest.fixture()
def client(store, cloud):
    app.dependency_overrides[get_current_operator] = lambda: Operator(
        name="test-operator", scopes=[READ_SCOPE, WRITE_SCOPE]
    )
    app.dependency_overrides[get_state_store] = lambda: store
    app.dependency_overrides[get_cloud_client] = lambda: cloud
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
