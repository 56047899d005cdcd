"""
Factories for the state store and the cloud client.

The API routes declare `store: VPNStateStore = Depends(get_state_store)` and
the CLI calls the same functions directly.  Swapping either backend (e.g.
for tests) only requires overriding the dependency:

    app.dependency_overrides[get_cloud_client] = lambda: FakeCloudClient()
"""

from cvpn.cloud.base import CloudResourceClient
from cvpn.cloud.ec2 import EC2ResourceClient
from cvpn.config import settings
from cvpn.dao.base import VPNStateStore
from cvpn.dao.yaml_file import YAMLFileVPNStateStore


def get_state_store() -> VPNStateStore:
    """Return the store for the configured state file."""
    return YAMLFileVPNStateStore(settings.state_file)


def get_cloud_client() -> CloudResourceClient:
    """Return a fresh EC2-backed cloud client."""
    return EC2ResourceClient()
