"""
Bootstrap a privileged admin.

This script:
1. Creates the identity (or resets its password if it already exists)
2. Grants it the admin role
3. Adds the email to the privileged admin registry

Usage:
    python scripts/create_admin.py admin@example.com s3cret12
"""

import sys

from dotenv import load_dotenv

load_dotenv()

from app.core.errors import ValidationError
from app.core.security import validate_email, validate_password
from app.db.session import SessionLocal
from app.services.admin_registry import seed_privileged_admins
from app.services.identity import upsert_admin_identity


def main(argv: list[str]) -> int:
    if len(argv) != 3:
        print(__doc__)
        return 1

    try:
        email = validate_email(argv[1])
        password = validate_password(argv[2])
    except ValidationError as e:
        print(f"ERROR: {e.message}")
        return 1

    db = SessionLocal()
    try:
        user = upsert_admin_identity(db, email, password)
        db.commit()
        seed_privileged_admins(db, [email])
        print(f"✓ {email} is a privileged admin (user id {user.id})")
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
