"""
Create the first Admin account.

Usage:
  python scripts/seed_admin.py K12345678 "secret123" [--name "Full Name"]

Does nothing when any user already exists.
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Load environment variables first
from dotenv import load_dotenv

load_dotenv()

# Check database type before importing
database_url = os.getenv("DATABASE_URL", "sqlite:///./var/dev.db")

if database_url.startswith("postgresql"):
    try:
        import psycopg2  # noqa: F401
    except ImportError:
        print("ERROR: PostgreSQL database detected but psycopg2 is not installed.")
        print("Please install it with: pip install psycopg2-binary")
        sys.exit(1)

from itam.config import settings
from itam.db import Base, SessionLocal, engine
from itam.auth.bootstrap import ensure_admin_user
from itam.services.errors import AssetManagerError


def seed_admin(personal_number: str, password: str, name: str) -> int:
    """Create the admin unless users exist; returns the process exit code"""
    if database_url.startswith("sqlite:///./"):
        os.makedirs("var", exist_ok=True)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user = ensure_admin_user(db, personal_number, password, name=name, min_password_length=settings.min_password_length)
        if user is None:
            print("[SKIP] Users already exist; nothing to do.")
        else:
            print(f"[ADMIN] Created {user.personal_number} ({user.name})")
        return 0
    except AssetManagerError as e:
        db.rollback()
        print(f"[ERROR] {e.message}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the first Admin account when the users table is empty")
    parser.add_argument("personal_number", help="Personal number, K or T followed by 8 digits")
    parser.add_argument("password", help="Initial password")
    parser.add_argument("--name", default="System Administrator", help="Display name")
    args = parser.parse_args()

    sys.exit(seed_admin(args.personal_number, args.password, args.name))
