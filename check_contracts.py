# check_contracts.py
# Contract counts and value per status, plus the latest contracts.
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from sqlalchemy import func

from app.core.database import get_db_session
from app.models.contract import Contract, ContractVersion

ACTIVE_STATUSES = ("ACTIVE", "APPROVED", "SENT_TO_COUNTERPARTY")


def main():
    with get_db_session() as db:
        rows = (
            db.query(Contract.status, func.count(Contract.id), func.sum(Contract.amount))
            .filter(Contract.is_deleted == False)
            .group_by(Contract.status)
            .order_by(Contract.status)
            .all()
        )

        print("=" * 60)
        print("CONTRACT COUNTS BY STATUS")
        print("=" * 60)
        for status, count, total in rows:
            print(f"{status:<24} {count:>6} {total or 0:>16}")

        active_sum = db.query(func.sum(Contract.amount)).filter(
            Contract.is_deleted == False,
            Contract.status.in_(ACTIVE_STATUSES)
        ).scalar()
        print(f"\nActive value ({', '.join(ACTIVE_STATUSES)}): {active_sum or 0}")

        latest = (
            db.query(Contract, func.count(ContractVersion.id))
            .outerjoin(ContractVersion, ContractVersion.contract_id == Contract.id)
            .group_by(Contract.id)
            .order_by(Contract.created_at.desc())
            .limit(20)
            .all()
        )
        print("\nLatest contracts:")
        for contract, version_count in latest:
            deleted = " [deleted]" if contract.is_deleted else ""
            print(f"  #{contract.id} {contract.reference} {contract.status} "
                  f"v{version_count} {contract.title}{deleted}")


if __name__ == "__main__":
    main()
