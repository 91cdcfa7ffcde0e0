from conftest import deployment_payload
from sqlalchemy.exc import SQLAlchemyError

from itam.models.models import Asset, AssetPair, AuditLog, LifecycleAction


def _asset(db, serial):
    db.expire_all()
    return db.query(Asset).filter(Asset.serial_number == serial).one()


def _deploy_pc(client, headers, **overrides):
    return client.post("/lifecycle/actions", json=deployment_payload(**overrides), headers=headers)


def test_new_pair_deployment(client, db, make_asset, officer, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")

    r = _deploy_pc(client, officer_headers)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "Pending"
    assert body["from_holder"] == "ICT Manager"
    assert body["from_location"] == "ICT Store"
    assert body["to_holder"] == "Jane Wanjiru"
    assert body["to_domain_account"] == "K12345678"
    assert body["requested_by_name"] == officer.name

    cpu, mon = _asset(db, "CPU-001"), _asset(db, "MON-001")
    for asset in (cpu, mon):
        assert asset.status == "Active"
        assert asset.holder == "Jane Wanjiru"
        assert asset.domain_account == "K12345678"
        assert asset.location == "HQ 3rd Floor"
        assert asset.department == "Finance"
        assert asset.section == "Payroll"
    assert cpu.pair_id is not None
    assert cpu.pair_id == mon.pair_id

    pair = db.query(AssetPair).one()
    assert pair.id == cpu.pair_id
    assert pair.pair_type == "PC"
    assert pair.primary_asset_id == cpu.id
    assert pair.secondary_asset_id == mon.id
    assert pair.is_deployed is True
    assert pair.current_holder == "Jane Wanjiru"
    assert pair.current_location == "HQ 3rd Floor"
    assert pair.current_department == "Finance"

    audits = db.query(AuditLog).all()
    assert len(audits) == 1
    assert audits[0].action == "New Deployment"
    assert audits[0].asset_serial == "CPU-001"
    assert audits[0].actor_id == officer.id
    assert audits[0].old_values["CPU-001"]["status"] == "In Store"
    assert audits[0].new_values["MON-001"]["holder"] == "Jane Wanjiru"
    assert audits[0].context["pair_id"] == str(pair.id)


def test_pair_order_in_request_does_not_matter(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    r = _deploy_pc(client, officer_headers, primary_asset_serial="MON-001", secondary_asset_serial="CPU-001")
    assert r.status_code == 201, r.text
    pair = db.query(AssetPair).one()
    assert pair.primary_asset_id == _asset(db, "CPU-001").id


def test_failed_request_changes_nothing(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor", status="Under Maintenance")

    r = _deploy_pc(client, officer_headers)
    assert r.status_code == 409

    assert _asset(db, "CPU-001").status == "In Store"
    assert _asset(db, "CPU-001").holder == "ICT Manager"
    assert _asset(db, "CPU-001").pair_id is None
    assert db.query(AssetPair).count() == 0
    assert db.query(LifecycleAction).count() == 0
    assert db.query(AuditLog).count() == 0


def test_audit_failure_rolls_back_deployment(client, db, make_asset, officer_headers, monkeypatch):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")

    def broken_audit(*args, **kwargs):
        raise SQLAlchemyError("audit table unavailable")

    monkeypatch.setattr("itam.services.lifecycle.create_audit_log", broken_audit)
    r = _deploy_pc(client, officer_headers)
    assert r.status_code == 500
    assert "no changes were saved" in r.json()["detail"]

    for serial in ("CPU-001", "MON-001"):
        asset = _asset(db, serial)
        assert asset.status == "In Store"
        assert asset.holder == "ICT Manager"
        assert asset.domain_account is None
        assert asset.pair_id is None
    assert db.query(AssetPair).count() == 0
    assert db.query(LifecycleAction).count() == 0
    assert db.query(AuditLog).count() == 0


def test_deploying_active_pair_again_is_in_use(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    assert _deploy_pc(client, officer_headers).status_code == 201

    r = _deploy_pc(client, officer_headers, to_holder="Someone Else")
    assert r.status_code == 409
    assert "already in use" in r.json()["detail"]
    assert db.query(AuditLog).count() == 1


def test_unknown_serial_is_not_found(client, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    r = _deploy_pc(client, officer_headers, secondary_asset_serial="MON-404")
    assert r.status_code == 404
    assert "MON-404" in r.json()["detail"]


def test_pair_type_mismatch_is_rejected(client, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    r = _deploy_pc(client, officer_headers, asset_pair_type="VDI")
    assert r.status_code == 400
    assert "VDI Receiver" in r.json()["detail"]


def test_invalid_domain_account_is_rejected(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    r = _deploy_pc(client, officer_headers, to_domain_account="A12345678")
    assert r.status_code == 400
    assert "K or T" in r.json()["detail"]
    assert _asset(db, "CPU-001").status == "In Store"


def test_lowercase_domain_account_is_normalised(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    r = _deploy_pc(client, officer_headers, to_domain_account="k12345678")
    assert r.status_code == 201
    assert _asset(db, "CPU-001").domain_account == "K12345678"


def test_destination_is_filled_from_directory(client, db, make_asset, holder, officer_headers):
    make_asset("LAP-001", "Laptop")
    r = client.post(
        "/lifecycle/actions",
        json={
            "action_type": "New Deployment",
            "primary_asset_serial": "LAP-001",
            "to_domain_account": holder.domain_account,
        },
        headers=officer_headers,
    )
    assert r.status_code == 201, r.text
    laptop = _asset(db, "LAP-001")
    assert laptop.holder == holder.full_name
    assert laptop.location == holder.location
    assert laptop.department == holder.department
    assert laptop.section == holder.section


def test_pair_surrender_returns_custodial_identity(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    assert _deploy_pc(client, officer_headers).status_code == 201

    r = client.post(
        "/lifecycle/actions",
        json={
            "action_type": "Surrender",
            "deployment_type": "Pair",
            "primary_asset_serial": "CPU-001",
            "secondary_asset_serial": "MON-001",
            "asset_pair_type": "PC",
        },
        headers=officer_headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["from_holder"] == "Jane Wanjiru"
    assert body["to_holder"] == "ICT Manager"

    for serial in ("CPU-001", "MON-001"):
        asset = _asset(db, serial)
        assert asset.status == "In Store"
        assert asset.holder == "ICT Manager"
        assert asset.location == "ICT Store"
        assert asset.department == "ICT"
        assert asset.section is None
        assert asset.domain_account is None

    pair = db.query(AssetPair).one()
    assert pair.is_deployed is False
    assert pair.current_holder == "ICT Manager"
    assert pair.current_location == "ICT Store"
    assert db.query(AuditLog).filter(AuditLog.action == "Surrender").count() == 1


def test_surrendered_pair_can_be_redeployed(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    assert _deploy_pc(client, officer_headers).status_code == 201
    surrender = deployment_payload(action_type="Surrender")
    assert client.post("/lifecycle/actions", json=surrender, headers=officer_headers).status_code == 201

    r = _deploy_pc(client, officer_headers, action_type="Redeployment", to_holder="Peter Otieno", to_domain_account="T87654321")
    assert r.status_code == 201, r.text
    assert db.query(AssetPair).count() == 1
    pair = db.query(AssetPair).one()
    assert pair.is_deployed is True
    assert pair.current_holder == "Peter Otieno"


def test_individual_relocation(client, db, make_asset, officer_headers):
    make_asset("LAP-001", "Laptop")
    deploy = deployment_payload(deployment_type="Individual", primary_asset_serial="LAP-001",
                                secondary_asset_serial=None, asset_pair_type=None)
    assert client.post("/lifecycle/actions", json=deploy, headers=officer_headers).status_code == 201

    r = client.post(
        "/lifecycle/actions",
        json={"action_type": "Relocation", "primary_asset_serial": "LAP-001", "to_location": "Annex Block B"},
        headers=officer_headers,
    )
    assert r.status_code == 201, r.text
    laptop = _asset(db, "LAP-001")
    assert laptop.status == "Active"
    assert laptop.location == "Annex Block B"
    assert laptop.holder == "Jane Wanjiru"
    assert r.json()["from_location"] == "HQ 3rd Floor"


def test_complete_action_once(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    action_id = _deploy_pc(client, officer_headers).json()["id"]

    r = client.post(f"/lifecycle/actions/{action_id}/complete", headers=officer_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "Completed"
    assert r.json()["completion_date"] is not None
    assert db.query(AuditLog).filter(AuditLog.action == "New Deployment Completed").count() == 1

    r = client.post(f"/lifecycle/actions/{action_id}/complete", headers=officer_headers)
    assert r.status_code == 409


def test_end_user_cannot_create_actions(client, make_asset, user_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    assert _deploy_pc(client, user_headers).status_code == 403


def test_pair_request_requires_secondary_serial(client, officer_headers):
    r = client.post("/lifecycle/actions", json=deployment_payload(secondary_asset_serial=None), headers=officer_headers)
    assert r.status_code == 422


def test_list_and_filter_actions(client, make_asset, officer_headers, user_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    _deploy_pc(client, officer_headers)

    r = client.get("/lifecycle/actions", params={"serial": "MON-001"}, headers=user_headers)
    assert r.status_code == 200
    assert len(r.json()) == 1
    r = client.get("/lifecycle/actions", params={"action_type": "Surrender"}, headers=user_headers)
    assert r.json() == []


def test_unpair_undeployed_pair(client, db, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    _deploy_pc(client, officer_headers)
    pair_id = db.query(AssetPair).one().id

    assert client.delete(f"/pairs/{pair_id}", headers=officer_headers).status_code == 409

    client.post("/lifecycle/actions", json=deployment_payload(action_type="Surrender"), headers=officer_headers)
    r = client.delete(f"/pairs/{pair_id}", headers=officer_headers)
    assert r.status_code == 200
    assert db.query(AssetPair).count() == 0
    assert _asset(db, "CPU-001").pair_id is None
    assert _asset(db, "MON-001").pair_id is None
