from datetime import datetime, timedelta, timezone

from conftest import deployment_payload

from itam.models.models import AuditLog
from itam.services.audit import compute_diff, create_audit_log, verify_audit_log


def _create(client, headers, serial, asset_type="Laptop"):
    r = client.post("/assets", json={"asset_type": asset_type, "serial_number": serial}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_entries_carry_actor_and_integrity_hash(client, db, officer, officer_headers):
    _create(client, officer_headers, "LAP-001")
    entry = db.query(AuditLog).one()
    assert entry.performed_by == officer.name
    assert entry.actor_role == "ICT Officer"
    assert len(entry.integrity_hash) == 64
    assert verify_audit_log(entry)


def test_verify_endpoint_detects_tampering(client, db, officer_headers):
    _create(client, officer_headers, "LAP-001")
    entry = db.query(AuditLog).one()

    r = client.get(f"/audit/{entry.id}/verify", headers=officer_headers)
    assert r.status_code == 200
    assert r.json() == {"id": str(entry.id), "valid": True}

    entry.details = "Nothing to see here"
    db.commit()
    r = client.get(f"/audit/{entry.id}/verify", headers=officer_headers)
    assert r.json()["valid"] is False


def test_verify_with_other_secret_fails(db, officer):
    entry = create_audit_log(db, entity_type="asset", action="Asset Created", actor=officer, integrity_secret="one")
    db.commit()
    assert verify_audit_log(entry, integrity_secret="one")
    assert not verify_audit_log(entry, integrity_secret="two")


def test_filters(client, db, officer_headers, make_asset):
    _create(client, officer_headers, "LAP-001")
    _create(client, officer_headers, "LAP-002")
    make_asset("CPU-001", "CPU")
    make_asset("MON-001", "Monitor")
    client.post("/lifecycle/actions", json=deployment_payload(), headers=officer_headers)

    r = client.get("/audit", params={"asset_serial": "LAP-002"}, headers=officer_headers)
    assert [e["action"] for e in r.json()] == ["Asset Created"]

    r = client.get("/audit", params={"entity_type": "lifecycle_action"}, headers=officer_headers)
    entries = r.json()
    assert len(entries) == 1
    assert entries[0]["action"] == "New Deployment"
    assert set(entries[0]["new_values"]) == {"CPU-001", "MON-001"}

    r = client.get("/audit", params={"action": "created"}, headers=officer_headers)
    assert len(r.json()) == 2

    r = client.get("/audit", params={"limit": 1}, headers=officer_headers)
    assert len(r.json()) == 1

    future = (datetime.now(timezone.utc) + timedelta(days=1)).replace(tzinfo=None).isoformat()
    r = client.get("/audit", params={"date_from": future}, headers=officer_headers)
    assert r.json() == []


def test_unknown_entry(client, officer_headers):
    r = client.get("/audit/00000000-0000-0000-0000-000000000000", headers=officer_headers)
    assert r.status_code == 404


def test_compute_diff():
    diff = compute_diff({"a": 1, "b": 2}, {"a": 1, "b": 3, "c": 4})
    assert diff == {"b": {"before": 2, "after": 3}, "c": {"before": None, "after": 4}}
