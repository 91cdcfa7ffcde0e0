"""
Seed the local database with sample assets and holder directory entries.

Usage:
  python scripts/seed_sample_data.py

This script is idempotent: running it multiple times will upsert the same
records based on unique fields (serial number for assets, domain account for
holders). Existing assets keep their status and holder.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from itam.db import Base, SessionLocal, engine
from itam.models.models import Asset, UserDetails
from itam.services.lifecycle import apply_ownership, custodian_ownership


def ensure_asset(session, asset_type: str, serial: str, brand: str, model: str) -> Asset:
    asset = session.query(Asset).filter(Asset.serial_number == serial).first()
    if asset:
        # Only descriptive fields; lifecycle state belongs to the running system
        asset.brand = brand
        asset.model = model
        session.add(asset)
        return asset
    asset = Asset(asset_type=asset_type, serial_number=serial, brand=brand, model=model, status="In Store")
    apply_ownership(asset, custodian_ownership())
    session.add(asset)
    session.flush()
    return asset


def ensure_holder(session, full_name: str, domain_account: str, location: str, department: str, section: str) -> UserDetails:
    entry = session.query(UserDetails).filter(UserDetails.domain_account == domain_account).first()
    if entry is None:
        entry = UserDetails(domain_account=domain_account)
    entry.full_name = full_name
    entry.location = location
    entry.department = department
    entry.section = section
    session.add(entry)
    session.flush()
    return entry


def main() -> None:
    # Ensure tables exist (safe for SQLite dev)
    if os.getenv("DATABASE_URL", "sqlite:///./var/dev.db").startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        # Desktop pairs and their spare parts
        ensure_asset(session, "CPU", "CPU-001", "Dell", "OptiPlex 7090")
        ensure_asset(session, "Monitor", "MON-001", "Dell", "P2422H")
        ensure_asset(session, "CPU", "CPU-002", "HP", "EliteDesk 800")
        ensure_asset(session, "Monitor", "MON-002", "HP", "E24 G5")
        ensure_asset(session, "VDI Receiver", "VDI-R-001", "Dell", "Wyse 5070")
        ensure_asset(session, "Monitor", "MON-003", "Dell", "P2422H")

        # Individual devices
        ensure_asset(session, "Laptop", "LAP-099", "Lenovo", "ThinkPad T480")
        ensure_asset(session, "Laptop", "LAP-150", "Lenovo", "ThinkPad T14")
        ensure_asset(session, "Printer", "PRN-001", "HP", "LaserJet M404")
        ensure_asset(session, "IP Phone", "IPP-001", "Cisco", "CP-8841")

        # Holder directory
        ensure_holder(session, "Jane Wanjiru", "K12345678", "HQ 3rd Floor", "Finance", "Payroll")
        ensure_holder(session, "Peter Otieno", "T87654321", "Annex Block B", "Procurement", "Tenders")
        ensure_holder(session, "Amina Hassan", "K23456789", "HQ 1st Floor", "Human Resources", "Recruitment")

        session.commit()
        print("Seed completed: assets and holders upserted.")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
