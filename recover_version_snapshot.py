# recover_version_snapshot.py
# Patch a stuck contract version snapshot in place.
#
#   python recover_version_snapshot.py 42 --ocr-status COMPLETED --content "<p>Recovered text</p>"
#   python recover_version_snapshot.py 42 --set file_name=signed.pdf
import argparse
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent))

from app.core.database import get_db_session
from app.utils.snapshot_repair import repair_version


def parse_args():
    parser = argparse.ArgumentParser(description="Repair a contract version snapshot")
    parser.add_argument("version_id", type=int)
    parser.add_argument("--content", help="Replacement main content (HTML)")
    parser.add_argument("--ocr-status", default="COMPLETED", help="Value for ocr_status")
    parser.add_argument("--set", action="append", default=[], metavar="KEY=VALUE",
                        help="Additional snapshot key to set (repeatable)")
    return parser.parse_args()


def main():
    args = parse_args()

    updates = {"ocr_status": args.ocr_status}
    if args.content is not None:
        updates["content"] = args.content
    for item in args.set:
        key, sep, value = item.partition("=")
        if not sep or not key:
            print(f"❌ Invalid --set value: {item}")
            return 1
        updates[key] = value

    print("=" * 60)
    print(f"RECOVERING VERSION {args.version_id}")
    print("=" * 60)

    try:
        with get_db_session() as db:
            version = repair_version(db, args.version_id, updates)
            print(f"✅ Version {version.version_number} of contract {version.contract_id} updated")
            print(f"   Summary: {version.change_log.get('summary')}")
            print(f"   Keys set: {', '.join(sorted(updates))}")
    except LookupError as e:
        print(f"❌ {e}")
        return 1

    print("\nDone. Refresh the version history to see the change.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
