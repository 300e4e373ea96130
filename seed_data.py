# seed_data.py
# Create tables, permissions, roles and the demo tenant.
#
#   python seed_data.py [--no-demo]
import argparse
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import get_db_session, init_db
from app.services.seed_service import DEMO_PASSWORD, DEMO_USERS, seed_demo_data, sync_permissions_and_roles


def main():
    parser = argparse.ArgumentParser(description="Seed reference and demo data")
    parser.add_argument("--no-demo", action="store_true", help="Only permissions and roles")
    args = parser.parse_args()

    print("=" * 60)
    print("SEEDING DATABASE")
    print("=" * 60)

    init_db()
    with get_db_session() as db:
        if args.no_demo:
            summary = sync_permissions_and_roles(db)
        else:
            summary = seed_demo_data(db)

    for key, value in summary.items():
        print(f"✅ {key}: {value}")

    if not args.no_demo:
        print(f"\nDemo users (password {DEMO_PASSWORD}):")
        for email, _, role in DEMO_USERS:
            print(f"   {role:<16} {email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
