import importlib.util
from pathlib import Path

import pytest

from itam.models.models import Asset, UserDetails

SCRIPTS = Path(__file__).resolve().parent.parent / "scripts"


def _load(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="module")
def seed_sample_data():
    return _load("seed_sample_data")


def test_sample_assets_are_upserted(db, seed_sample_data):
    seed_sample_data.ensure_asset(db, "Laptop", "LAP-150", "Lenovo", "ThinkPad T14")
    db.commit()
    laptop = db.query(Asset).filter(Asset.serial_number == "LAP-150").one()
    assert laptop.status == "In Store"
    assert laptop.holder == "ICT Manager"

    laptop.status = "Active"
    db.commit()
    seed_sample_data.ensure_asset(db, "Laptop", "LAP-150", "Lenovo", "ThinkPad T14 Gen 2")
    db.commit()
    assert db.query(Asset).count() == 1
    laptop = db.query(Asset).one()
    assert laptop.model == "ThinkPad T14 Gen 2"
    assert laptop.status == "Active"


def test_sample_holders_are_upserted(db, seed_sample_data):
    seed_sample_data.ensure_holder(db, "Jane Wanjiru", "K12345678", "HQ 3rd Floor", "Finance", "Payroll")
    seed_sample_data.ensure_holder(db, "Jane Wanjiru", "K12345678", "HQ 4th Floor", "Finance", "Payroll")
    db.commit()
    entry = db.query(UserDetails).one()
    assert entry.location == "HQ 4th Floor"
