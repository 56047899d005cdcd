import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from cvpn.errors import AlreadyExists, NotFound, PersistenceError, ProviderError
from cvpn.schemas.vpn import ProviderState, VPNStatus
from cvpn.services.vpn import (
    fetch_all_vpns,
    fetch_vpn_status,
    provision_vpn,
    resume_vpn,
    teardown_vpn,
)


def _create_office(store, cloud):
    return provision_vpn("office", "us-east-1", "10.0.0.0/16", store=store, cloud=cloud)


def test_create_records_active_vpn(store, cloud):
    record = _create_office(store, cloud)

    assert record.status is VPNStatus.ACTIVE
    assert record.region == "us-east-1"
    assert record.cidr_block == "10.0.0.0/16"
    assert record.network_id in cloud.networks
    assert record.gateway_id in cloud.gateways
    assert (record.network_id, record.gateway_id) in cloud.attachments
    assert cloud.operations == ["create_network", "create_gateway", "attach_gateway"]

    persisted = store.documents["office"]
    assert persisted["status"] == "active"
    assert persisted["networkId"] == record.network_id
    assert persisted["gatewayId"] == record.gateway_id


def test_create_passes_region_and_tags(store, cloud):
    record = _create_office(store, cloud)

    assert all(call[1] == "us-east-1" for call in cloud.calls)
    assert cloud.tags[record.network_id]["Name"] == "vpn-office"
    assert cloud.tags[record.gateway_id]["Name"] == "vgw-office"
    assert cloud.tags[record.gateway_id]["cvpn:name"] == "office"


def test_create_checkpoints_before_gateway(store, cloud):
    _create_office(store, cloud)
    # network recorded, gateway id recorded, then marked active
    assert store.saves == 3


def test_create_records_creator(store, cloud):
    record = provision_vpn(
        "office", "us-east-1", "10.0.0.0/16", store=store, cloud=cloud, created_by="alice"
    )

    assert record.created_by == "alice"
    assert store.documents["office"]["createdBy"] == "alice"


def test_concurrent_creates_of_same_name_provision_once(store, cloud, monkeypatch):
    create_network = cloud.create_network

    def slow_create_network(*args):
        time.sleep(0.2)
        return create_network(*args)

    monkeypatch.setattr(cloud, "create_network", slow_create_network)

    def attempt():
        try:
            return _create_office(store, cloud)
        except AlreadyExists as exc:
            return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        outcomes = list(pool.map(lambda _: attempt(), range(2)))

    assert sum(isinstance(o, AlreadyExists) for o in outcomes) == 1
    assert len(cloud.networks) == 1
    assert len(cloud.gateways) == 1
    assert store.documents["office"]["networkId"] in cloud.networks


def test_create_existing_name_makes_no_cloud_calls(store, cloud):
    _create_office(store, cloud)
    calls_before = list(cloud.calls)

    with pytest.raises(AlreadyExists):
        provision_vpn("office", "eu-west-1", "10.1.0.0/16", store=store, cloud=cloud)

    assert cloud.calls == calls_before


def test_names_are_case_sensitive(store, cloud):
    _create_office(store, cloud)
    provision_vpn("Office", "us-east-1", "10.1.0.0/16", store=store, cloud=cloud)
    assert set(fetch_all_vpns(store)) == {"office", "Office"}


@pytest.mark.parametrize("cidr", ["not-a-cidr", "10.0.0.0/8", "10.0.0.0/29"])
def test_create_rejects_invalid_cidr_before_any_call(store, cloud, cidr):
    with pytest.raises(ValueError):
        provision_vpn("office", "us-east-1", cidr, store=store, cloud=cloud)
    assert cloud.calls == []
    assert store.saves == 0


def test_gateway_failure_leaves_creating_record_without_gateway(store, cloud):
    cloud.fail("create_gateway", code="VpnGatewayLimitExceeded")

    with pytest.raises(ProviderError) as excinfo:
        _create_office(store, cloud)

    assert excinfo.value.code == "VpnGatewayLimitExceeded"
    persisted = store.documents["office"]
    assert persisted["status"] == "creating"
    assert "gatewayId" not in persisted
    assert excinfo.value.record.status is VPNStatus.CREATING
    # no rollback of the network that was created
    assert persisted["networkId"] in cloud.networks


def test_attach_failure_keeps_gateway_id(store, cloud):
    cloud.fail("attach_gateway")

    with pytest.raises(ProviderError) as excinfo:
        _create_office(store, cloud)

    persisted = store.documents["office"]
    assert persisted["status"] == "creating"
    assert persisted["gatewayId"] in cloud.gateways
    assert excinfo.value.record.gateway_id == persisted["gatewayId"]


def test_network_failure_records_nothing(store, cloud):
    cloud.fail("create_network", code="VpcLimitExceeded")

    with pytest.raises(ProviderError):
        _create_office(store, cloud)

    assert store.documents == {}


def test_delete_removes_resources_and_record(store, cloud):
    record = _create_office(store, cloud)
    cloud.calls.clear()

    teardown_vpn("office", store=store, cloud=cloud)

    assert "office" not in store.documents
    assert cloud.operations == ["detach_gateway", "delete_gateway", "delete_network"]
    assert record.network_id not in cloud.networks
    assert record.gateway_id not in cloud.gateways


def test_delete_unknown_name(store, cloud):
    with pytest.raises(NotFound):
        teardown_vpn("nope", store=store, cloud=cloud)
    assert cloud.calls == []


def test_delete_failure_leaves_deleting_checkpoint(store, cloud):
    _create_office(store, cloud)
    cloud.fail("delete_network", code="DependencyViolation")

    with pytest.raises(ProviderError) as excinfo:
        teardown_vpn("office", store=store, cloud=cloud)

    assert excinfo.value.code == "DependencyViolation"
    assert store.documents["office"]["status"] == "deleting"


def test_delete_retry_tolerates_not_found(store, cloud):
    record = _create_office(store, cloud)
    cloud.fail("delete_network", code="DependencyViolation")
    with pytest.raises(ProviderError):
        teardown_vpn("office", store=store, cloud=cloud)

    # gateway is already gone: detach and delete report not-found this time
    teardown_vpn("office", store=store, cloud=cloud)

    assert "office" not in store.documents
    assert record.network_id not in cloud.networks


def test_delete_of_interrupted_create_skips_gateway(store, cloud):
    cloud.fail("create_gateway")
    with pytest.raises(ProviderError):
        _create_office(store, cloud)
    cloud.calls.clear()

    teardown_vpn("office", store=store, cloud=cloud)

    assert cloud.operations == ["delete_network"]
    assert store.documents == {}


def test_delete_with_failing_save_keeps_resources(store, cloud):
    record = _create_office(store, cloud)
    store.fail_saves = True

    with pytest.raises(PersistenceError):
        teardown_vpn("office", store=store, cloud=cloud)

    assert record.network_id in cloud.networks
    assert store.documents["office"]["status"] == "active"


def test_list_returns_stored_records_without_cloud_calls(store, cloud):
    _create_office(store, cloud)
    provision_vpn("lab", "eu-west-1", "10.2.0.0/24", store=store, cloud=cloud)
    cloud.calls.clear()

    vpns = fetch_all_vpns(store)

    assert set(vpns) == {"office", "lab"}
    assert vpns["lab"].region == "eu-west-1"
    assert cloud.calls == []


def test_status_adds_live_state_without_touching_stored_status(store, cloud):
    record = _create_office(store, cloud)
    cloud.gateways[record.gateway_id] = ProviderState.DELETING.value

    result = fetch_vpn_status("office", store=store, cloud=cloud)

    assert result.name == "office"
    assert result.current_status is ProviderState.DELETING
    assert result.status is VPNStatus.ACTIVE
    assert store.documents["office"]["status"] == "active"


def test_status_without_gateway_skips_provider(store, cloud):
    cloud.fail("create_gateway")
    with pytest.raises(ProviderError):
        _create_office(store, cloud)
    cloud.calls.clear()

    result = fetch_vpn_status("office", store=store, cloud=cloud)

    assert result.current_status is None
    assert cloud.calls == []


def test_status_unknown_name(store, cloud):
    with pytest.raises(NotFound):
        fetch_vpn_status("nope", store=store, cloud=cloud)


def test_resume_interrupted_create(store, cloud):
    cloud.fail("create_gateway")
    with pytest.raises(ProviderError):
        _create_office(store, cloud)
    cloud.calls.clear()

    record = resume_vpn("office", store=store, cloud=cloud)

    assert record.status is VPNStatus.ACTIVE
    assert cloud.operations == ["create_gateway", "attach_gateway"]
    assert len(cloud.networks) == 1


def test_resume_after_attach_failure_reuses_gateway(store, cloud):
    cloud.fail("attach_gateway")
    with pytest.raises(ProviderError):
        _create_office(store, cloud)
    cloud.calls.clear()

    record = resume_vpn("office", store=store, cloud=cloud)

    assert cloud.operations == ["attach_gateway"]
    assert record.status is VPNStatus.ACTIVE
    assert len(cloud.gateways) == 1


def test_resume_deleting_finishes_teardown(store, cloud):
    _create_office(store, cloud)
    cloud.fail("delete_gateway", code="IncorrectState")
    with pytest.raises(ProviderError):
        teardown_vpn("office", store=store, cloud=cloud)

    assert resume_vpn("office", store=store, cloud=cloud) is None
    assert store.documents == {}
    assert cloud.networks == {}


def test_resume_active_is_a_no_op(store, cloud):
    _create_office(store, cloud)
    cloud.calls.clear()

    record = resume_vpn("office", store=store, cloud=cloud)

    assert record.status is VPNStatus.ACTIVE
    assert cloud.calls == []


def test_end_to_end(store, cloud):
    created = _create_office(store, cloud)
    assert created.status is VPNStatus.ACTIVE

    status = fetch_vpn_status("office", store=store, cloud=cloud)
    assert status.network_id == created.network_id
    assert status.gateway_id == created.gateway_id
    assert status.current_status is ProviderState.AVAILABLE

    teardown_vpn("office", store=store, cloud=cloud)
    assert "office" not in fetch_all_vpns(store)

    with pytest.raises(NotFound):
        teardown_vpn("office", store=store, cloud=cloud)
