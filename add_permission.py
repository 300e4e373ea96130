# add_permission.py
# Make sure a permission exists and grant it to roles.
#
#   python add_permission.py contract:revert SUPER_ADMIN ENTITY_ADMIN LEGAL_HEAD
import argparse
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import get_db_session
from app.models.user import Role
from app.services.seed_service import ensure_permission, grant_permission


def main():
    parser = argparse.ArgumentParser(description="Ensure a permission and assign it to roles")
    parser.add_argument("code", help="Permission code, e.g. contract:revert")
    parser.add_argument("roles", nargs="+", help="Role codes")
    parser.add_argument("--name", help="Display name")
    parser.add_argument("--module", help="Module name")
    args = parser.parse_args()

    print(f"🚀 Ensuring permission: {args.code}")
    with get_db_session() as db:
        permission = ensure_permission(db, args.code, args.name, args.module)
        print(f"✅ Permission ensured: {permission.code}")

        for role_code in args.roles:
            role = db.query(Role).filter(Role.code == role_code.upper()).first()
            if not role:
                print(f"⚠️ Role not found: {role_code}")
                continue
            if grant_permission(db, role, permission):
                print(f"➕ Assigned to role: {role.code}")
            else:
                print(f"ℹ️ Already assigned to: {role.code}")

    print("✅ Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
