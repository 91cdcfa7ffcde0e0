"""
Unit tests for the pure transition function; no database involved.
"""
import uuid
from dataclasses import replace

import pytest

from itam.services.errors import AssetInUse, IneligibleStatus, InvalidDomainAccount, NotFound, PairTypeMismatch, ValidationFailed
from itam.services.lifecycle import (
    AssetSnapshot,
    Ownership,
    PairSnapshot,
    TransitionRequest,
    compute_transition,
    resolve_status,
)

CUSTODIAN = Ownership(holder="ICT Manager", location="ICT Store", department="ICT")
DESTINATION = Ownership(
    holder="Jane Wanjiru",
    domain_account="K12345678",
    location="HQ 3rd Floor",
    department="Finance",
    section="Payroll",
)


def snap(serial, asset_type, status="In Store", ownership=CUSTODIAN, pair_id=None):
    return AssetSnapshot(
        id=uuid.uuid4(),
        serial_number=serial,
        asset_type=asset_type,
        status=status,
        ownership=ownership,
        pair_id=pair_id,
    )


def pair_request(action_type="New Deployment", pair_type="PC", to=DESTINATION):
    return TransitionRequest(
        action_type=action_type,
        deployment_type="Pair",
        primary_asset_serial="CPU-001",
        secondary_asset_serial="MON-001",
        asset_pair_type=pair_type,
        to=to,
    )


def individual_request(action_type, serial="LAP-001", to=DESTINATION):
    return TransitionRequest(action_type=action_type, primary_asset_serial=serial, to=to)


def test_new_pair_deployment_creates_pair_and_activates_both():
    cpu, mon = snap("CPU-001", "CPU"), snap("MON-001", "Monitor")
    plan = compute_transition(pair_request(), [cpu, mon], None, CUSTODIAN)

    assert plan.status == "Active"
    assert plan.pair_outcome == "create"
    assert plan.pair_is_deployed is True
    assert plan.ownership == DESTINATION
    assert plan.from_ownership == CUSTODIAN
    assert [c.serial_number for c in plan.asset_changes] == ["CPU-001", "MON-001"]
    for change in plan.asset_changes:
        assert change.old["status"] == "In Store"
        assert change.new["status"] == "Active"
        assert change.new["holder"] == "Jane Wanjiru"


def test_pair_members_are_ordered_regardless_of_input_order():
    cpu, mon = snap("CPU-001", "CPU"), snap("MON-001", "Monitor")
    plan = compute_transition(pair_request(), [mon, cpu], None, CUSTODIAN)
    assert plan.primary_asset_id == cpu.id
    assert plan.secondary_asset_id == mon.id


def test_vdi_pair_requires_receiver_and_monitor():
    receiver, mon = snap("VDI-R-001", "VDI Receiver"), snap("MON-003", "Monitor")
    plan = compute_transition(pair_request(pair_type="VDI"), [receiver, mon], None, CUSTODIAN)
    assert plan.pair_type == "VDI"

    cpu = snap("CPU-001", "CPU")
    with pytest.raises(PairTypeMismatch) as exc:
        compute_transition(pair_request(pair_type="VDI"), [cpu, mon], None, CUSTODIAN)
    assert "VDI Receiver" in exc.value.message
    assert "CPU" in exc.value.message


def test_pc_pair_of_two_monitors_is_a_mismatch():
    with pytest.raises(PairTypeMismatch):
        compute_transition(
            pair_request(), [snap("MON-001", "Monitor"), snap("MON-002", "Monitor")], None, CUSTODIAN
        )


def test_deploying_an_active_asset_is_rejected_as_in_use():
    cpu = snap("CPU-001", "CPU", status="Active", ownership=DESTINATION)
    mon = snap("MON-001", "Monitor")
    with pytest.raises(AssetInUse) as exc:
        compute_transition(pair_request(), [cpu, mon], None, CUSTODIAN)
    assert "already in use" in exc.value.message


@pytest.mark.parametrize("status", ["Under Maintenance", "Obsolete", "Disposed"])
def test_deploying_an_unavailable_asset_is_ineligible(status):
    with pytest.raises(IneligibleStatus):
        compute_transition(
            individual_request("New Deployment"), [snap("LAP-001", "Laptop", status=status)], None, CUSTODIAN
        )


def test_existing_undeployed_pair_is_reused():
    cpu, mon = snap("CPU-001", "CPU"), snap("MON-001", "Monitor")
    pair_id = uuid.uuid4()
    cpu = replace(cpu, pair_id=pair_id)
    mon = replace(mon, pair_id=pair_id)
    pair = PairSnapshot(pair_id, cpu.id, mon.id, "PC", False, CUSTODIAN)

    plan = compute_transition(pair_request("Redeployment"), [cpu, mon], pair, CUSTODIAN)
    assert plan.pair_outcome == "reuse"
    assert plan.pair_id == pair_id
    assert plan.status == "Active"


def test_deployed_pair_cannot_be_deployed_again():
    cpu, mon = snap("CPU-001", "CPU"), snap("MON-001", "Monitor")
    pair = PairSnapshot(uuid.uuid4(), cpu.id, mon.id, "PC", True, DESTINATION)
    with pytest.raises(AssetInUse):
        compute_transition(pair_request(), [cpu, mon], pair, CUSTODIAN)


def test_pair_redeployment_without_pair_record_is_not_found():
    with pytest.raises(NotFound):
        compute_transition(
            pair_request("Redeployment"), [snap("CPU-001", "CPU"), snap("MON-001", "Monitor")], None, CUSTODIAN
        )


def test_asset_in_another_pair_is_rejected():
    cpu = snap("CPU-001", "CPU", pair_id=uuid.uuid4())
    mon = snap("MON-001", "Monitor")
    with pytest.raises(IneligibleStatus):
        compute_transition(pair_request(), [cpu, mon], None, CUSTODIAN)


def test_individual_action_on_paired_asset_is_rejected():
    asset = snap("CPU-001", "CPU", status="Active", ownership=DESTINATION, pair_id=uuid.uuid4())
    with pytest.raises(IneligibleStatus):
        compute_transition(individual_request("Surrender", "CPU-001"), [asset], None, CUSTODIAN)


@pytest.mark.parametrize("action_type", ["Surrender", "Exit"])
def test_surrender_and_exit_return_to_custodian(action_type):
    laptop = snap("LAP-001", "Laptop", status="Active", ownership=DESTINATION)
    plan = compute_transition(individual_request(action_type, to=Ownership()), [laptop], None, CUSTODIAN)

    assert plan.status == "In Store"
    assert plan.ownership.holder == "ICT Manager"
    assert plan.ownership.location == "ICT Store"
    assert plan.ownership.department == "ICT"
    assert plan.ownership.section is None
    assert plan.ownership.domain_account is None
    assert plan.from_ownership == DESTINATION


def test_pair_surrender_undeploys_pair():
    cpu = snap("CPU-001", "CPU", status="Active", ownership=DESTINATION)
    mon = snap("MON-001", "Monitor", status="Active", ownership=DESTINATION)
    pair = PairSnapshot(uuid.uuid4(), cpu.id, mon.id, "PC", True, DESTINATION)
    plan = compute_transition(pair_request("Surrender", to=Ownership()), [cpu, mon], pair, CUSTODIAN)
    assert plan.pair_is_deployed is False
    assert plan.ownership == CUSTODIAN


def test_surrender_requires_active_asset():
    with pytest.raises(IneligibleStatus):
        compute_transition(
            individual_request("Surrender", to=Ownership()), [snap("LAP-001", "Laptop")], None, CUSTODIAN
        )


def test_relocation_keeps_holder_and_status():
    laptop = snap("LAP-001", "Laptop", status="Active", ownership=DESTINATION)
    plan = compute_transition(
        individual_request("Relocation", to=Ownership(location="Annex Block B")), [laptop], None, CUSTODIAN
    )
    assert plan.status == "Active"
    assert plan.ownership.holder == "Jane Wanjiru"
    assert plan.ownership.domain_account == "K12345678"
    assert plan.ownership.location == "Annex Block B"
    assert plan.ownership.department == "Finance"


def test_relocation_requires_location():
    laptop = snap("LAP-001", "Laptop", status="Active", ownership=DESTINATION)
    with pytest.raises(ValidationFailed):
        compute_transition(individual_request("Relocation", to=Ownership()), [laptop], None, CUSTODIAN)


def test_change_of_ownership_validates_domain_account():
    laptop = snap("LAP-001", "Laptop", status="Active", ownership=DESTINATION)
    new_owner = Ownership(holder="Peter Otieno", domain_account="A87654321")
    with pytest.raises(InvalidDomainAccount):
        compute_transition(individual_request("Change of Ownership", to=new_owner), [laptop], None, CUSTODIAN)

    plan = compute_transition(
        individual_request("Change of Ownership", to=Ownership(holder="Peter Otieno", domain_account="t87654321")),
        [laptop], None, CUSTODIAN,
    )
    assert plan.ownership.holder == "Peter Otieno"
    assert plan.ownership.domain_account == "T87654321"
    assert plan.ownership.location == "HQ 3rd Floor"
    assert plan.status == "Active"


def test_deployment_requires_destination_fields():
    missing = Ownership(holder="Jane Wanjiru", domain_account="K12345678")
    with pytest.raises(ValidationFailed) as exc:
        compute_transition(individual_request("New Deployment", to=missing), [snap("LAP-001", "Laptop")], None, CUSTODIAN)
    assert "location" in exc.value.message


def test_unknown_action_type_is_rejected():
    with pytest.raises(ValidationFailed):
        compute_transition(individual_request("Teleport"), [snap("LAP-001", "Laptop")], None, CUSTODIAN)


def test_compute_transition_does_not_mutate_inputs():
    cpu, mon = snap("CPU-001", "CPU"), snap("MON-001", "Monitor")
    compute_transition(pair_request(), [cpu, mon], None, CUSTODIAN)
    assert cpu.status == "In Store"
    assert cpu.ownership == CUSTODIAN


def test_resolve_status_table():
    assert resolve_status("New Deployment", "In Store") == "Active"
    assert resolve_status("Redeployment", "In Store") == "Active"
    assert resolve_status("Relocation", "Active") == "Active"
    assert resolve_status("Change of Ownership", "Active") == "Active"
    assert resolve_status("Surrender", "Active") == "In Store"
    assert resolve_status("Exit", "Active") == "In Store"
