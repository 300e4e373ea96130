# delete_all_contracts.py
# Remove every contract with its versions, approvals, attachments and files.
#
#   python delete_all_contracts.py --yes [--organization DEMO]
import argparse
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import get_db_session
from app.models.contract import Contract
from app.models.organization import Organization
from app.utils.contract_purge import purge_contracts


def main():
    parser = argparse.ArgumentParser(description="Delete all contracts")
    parser.add_argument("--yes", action="store_true", help="Confirm deletion")
    parser.add_argument("--organization", help="Only this organization code")
    args = parser.parse_args()

    if not args.yes:
        print("❌ Refusing to delete without --yes")
        return 1

    with get_db_session() as db:
        query = db.query(Contract.id)
        if args.organization:
            org = db.query(Organization).filter(Organization.code == args.organization.upper()).first()
            if not org:
                print(f"❌ Organization {args.organization} not found")
                return 1
            query = query.filter(Contract.organization_id == org.id)

        contract_ids = [row[0] for row in query.all()]
        if not contract_ids:
            print("No contracts to delete.")
            return 0

        print(f"🗑️ Deleting {len(contract_ids)} contracts...")
        removed = purge_contracts(db, contract_ids)
        for table, count in removed.items():
            print(f"   {table}: {count}")
        print(f"✅ Deleted {removed['contracts']} contracts")
    return 0


if __name__ == "__main__":
    sys.exit(main())
