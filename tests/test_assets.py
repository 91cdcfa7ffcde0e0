from conftest import deployment_payload

from itam.models.models import Asset, AuditLog


def test_create_asset_lands_in_store(client, db, officer, officer_headers):
    r = client.post(
        "/assets",
        json={"asset_type": "Laptop", "serial_number": " LAP-100 ", "brand": "HP", "model": "EliteBook 840"},
        headers=officer_headers,
    )
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["serial_number"] == "LAP-100"
    assert body["status"] == "In Store"
    assert body["holder"] == "ICT Manager"
    assert body["location"] == "ICT Store"
    assert body["department"] == "ICT"
    assert body["created_by"] == str(officer.id)

    audit = db.query(AuditLog).one()
    assert audit.action == "Asset Created"
    assert audit.asset_serial == "LAP-100"
    assert audit.new_values["status"] == "In Store"


def test_duplicate_serial_is_rejected(client, db, make_asset, officer_headers):
    make_asset("LAP-100", "Laptop")
    r = client.post("/assets", json={"asset_type": "Laptop", "serial_number": "LAP-100"}, headers=officer_headers)
    assert r.status_code == 409
    assert "already exists" in r.json()["detail"]
    assert db.query(Asset).count() == 1
    assert db.query(AuditLog).count() == 0


def test_unknown_asset_type_is_rejected(client, officer_headers):
    r = client.post("/assets", json={"asset_type": "Toaster", "serial_number": "T-1"}, headers=officer_headers)
    assert r.status_code == 422


def test_end_user_cannot_create_assets(client, user_headers):
    r = client.post("/assets", json={"asset_type": "Laptop", "serial_number": "LAP-1"}, headers=user_headers)
    assert r.status_code == 403


def test_unauthenticated_requests_are_rejected(client):
    assert client.get("/assets").status_code == 401


def test_update_records_only_changed_fields(client, db, make_asset, officer_headers):
    asset = make_asset("LAP-100", "Laptop")
    r = client.patch(f"/assets/{asset.id}", json={"brand": "Lenovo", "model": "Generic"}, headers=officer_headers)
    assert r.status_code == 200, r.text
    assert r.json()["brand"] == "Lenovo"
    assert r.json()["version"] == 2

    audit = db.query(AuditLog).one()
    assert audit.action == "Asset Updated"
    assert audit.old_values == {"brand": "Dell"}
    assert audit.new_values == {"brand": "Lenovo"}


def test_update_cannot_reuse_serial(client, make_asset, officer_headers):
    make_asset("LAP-100", "Laptop")
    other = make_asset("LAP-101", "Laptop")
    r = client.patch(f"/assets/{other.id}", json={"serial_number": "LAP-100"}, headers=officer_headers)
    assert r.status_code == 409


def test_status_is_not_editable(client, make_asset, officer_headers):
    asset = make_asset("LAP-100", "Laptop")
    r = client.patch(f"/assets/{asset.id}", json={"status": "Active"}, headers=officer_headers)
    # unknown fields are ignored by the schema; status stays put
    assert r.status_code == 200
    assert r.json()["status"] == "In Store"


def test_list_and_lookup(client, make_asset, user_headers):
    make_asset("LAP-100", "Laptop")
    make_asset("MON-100", "Monitor", brand="Samsung")
    make_asset("MON-101", "Monitor", status="Obsolete")

    r = client.get("/assets", params={"asset_type": "Monitor"}, headers=user_headers)
    assert sorted(a["serial_number"] for a in r.json()) == ["MON-100", "MON-101"]
    r = client.get("/assets", params={"status": "Obsolete"}, headers=user_headers)
    assert [a["serial_number"] for a in r.json()] == ["MON-101"]
    r = client.get("/assets", params={"search": "samsung"}, headers=user_headers)
    assert [a["serial_number"] for a in r.json()] == ["MON-100"]

    r = client.get("/assets/by-serial/LAP-100", headers=user_headers)
    assert r.status_code == 200
    assert r.json()["asset_type"] == "Laptop"
    assert client.get("/assets/by-serial/NOPE", headers=user_headers).status_code == 404


def test_history_lists_lifecycle_actions(client, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    monitor = make_asset("MON-001", "Monitor")
    client.post("/lifecycle/actions", json=deployment_payload(), headers=officer_headers)

    r = client.get(f"/assets/{monitor.id}/history", headers=officer_headers)
    assert r.status_code == 200
    assert [a["action_type"] for a in r.json()] == ["New Deployment"]


def test_dispose_requires_obsolete(client, db, make_asset, admin_headers):
    store = make_asset("LAP-100", "Laptop")
    obsolete = make_asset("LAP-101", "Laptop", status="Obsolete")

    assert client.post(f"/assets/{store.id}/dispose", headers=admin_headers).status_code == 409
    r = client.post(f"/assets/{obsolete.id}/dispose", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "Disposed"
    assert db.query(AuditLog).filter(AuditLog.action == "Asset Disposed").count() == 1


def test_dispose_is_admin_only(client, make_asset, officer_headers):
    obsolete = make_asset("LAP-101", "Laptop", status="Obsolete")
    assert client.post(f"/assets/{obsolete.id}/dispose", headers=officer_headers).status_code == 403


def test_delete_rules(client, db, make_asset, admin_headers):
    active = make_asset("LAP-100", "Laptop", status="Active", holder="Jane Wanjiru")
    spare = make_asset("LAP-101", "Laptop")

    r = client.delete(f"/assets/{active.id}", headers=admin_headers)
    assert r.status_code == 409
    assert "in use" in r.json()["detail"]

    r = client.delete(f"/assets/{spare.id}", headers=admin_headers)
    assert r.status_code == 200
    db.expire_all()
    assert db.query(Asset).filter(Asset.serial_number == "LAP-101").count() == 0
    audit = db.query(AuditLog).filter(AuditLog.action == "Asset Deleted").one()
    assert audit.old_values["serial_number"] == "LAP-101"


def test_paired_asset_cannot_be_deleted(client, db, make_asset, officer_headers, admin_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    client.post("/lifecycle/actions", json=deployment_payload(), headers=officer_headers)
    client.post("/lifecycle/actions", json=deployment_payload(action_type="Surrender"), headers=officer_headers)

    cpu = db.query(Asset).filter(Asset.serial_number == "CPU-001").one()
    assert cpu.status == "In Store"
    r = client.delete(f"/assets/{cpu.id}", headers=admin_headers)
    assert r.status_code == 409


def test_pairs_listing(client, make_asset, officer_headers):
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    client.post("/lifecycle/actions", json=deployment_payload(), headers=officer_headers)

    r = client.get("/pairs", params={"is_deployed": True}, headers=officer_headers)
    assert r.status_code == 200
    pairs = r.json()
    assert len(pairs) == 1
    assert pairs[0]["primary_asset"]["serial_number"] == "CPU-001"
    assert pairs[0]["secondary_asset"]["serial_number"] == "MON-001"
    assert pairs[0]["current_holder"] == "Jane Wanjiru"
