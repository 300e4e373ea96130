# debug_versions.py
# Dump every version of a contract with its snapshot structure.
#
#   python debug_versions.py 17
import json
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import get_db_session
from app.models.contract import ContractVersion


def describe_snapshot(raw):
    try:
        snapshot = json.loads(raw) if raw else None
    except ValueError:
        print(f"   Snapshot (string): {raw[:100]}...")
        return

    if not isinstance(snapshot, dict):
        print(f"   Snapshot (non-object): {str(snapshot)[:100]}")
        return

    print(f"   Snapshot keys: {', '.join(sorted(snapshot.keys()))}")
    print(f"   Content length: {len(snapshot.get('content') or '')}")
    print(f"   Annexure length: {len(snapshot.get('annexure_data') or '')}")
    if "ocr_status" in snapshot:
        print(f"   OCR status: {snapshot['ocr_status']}")


def main():
    if len(sys.argv) != 2:
        print("Usage: python debug_versions.py <contract_id>")
        return 1
    contract_id = int(sys.argv[1])

    with get_db_session() as db:
        versions = (
            db.query(ContractVersion)
            .filter(ContractVersion.contract_id == contract_id)
            .order_by(ContractVersion.version_number.asc())
            .all()
        )
        print(f"Found {len(versions)} versions for contract {contract_id}.")

        for v in versions:
            print(f"\n--- Version {v.version_number} ---")
            print(f"   ID: {v.id}")
            print(f"   Created At: {v.created_at}")
            print(f"   Summary: {(v.change_log or {}).get('summary')}")
            describe_snapshot(v.content_snapshot)
    return 0


if __name__ == "__main__":
    sys.exit(main())
