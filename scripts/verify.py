"""
Session File Verification Script

Verifies the session files written by the simulation: every file holds a
complete ClientSessionRecord and no two devices share a session id.
Run from project root: python scripts/verify.py

Author: Your Name
Version: 1.0.0
"""

import sys
from collections import Counter
from datetime import datetime
from pathlib import Path

from table_checkin.services.session.store import JsonFileSessionStore

DEVICE_DIR = Path("data") / "devices"


def verify_sessions() -> bool:
    """Verify session file integrity after simulation."""

    print("=" * 60)
    print("🔍 SESSION VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📂 Directory: {DEVICE_DIR}")
    print("=" * 60)

    files = sorted(DEVICE_DIR.glob("device_*.json"))
    if not files:
        print("\n❌ No session files found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    records = []
    empty = []
    for path in files:
        record = JsonFileSessionStore(path).load()
        if record is None:
            empty.append(path.name)
        else:
            records.append(record)

    print(f"\n📊 STATISTICS:")
    print(f"   Files: {len(files)}")
    print(f"   Active sessions: {len(records)}")
    print(f"   Without session: {len(empty)}")

    ok = True
    duplicates = [sid for sid, n in Counter(r.session_id for r in records).items() if n > 1]
    if duplicates:
        print(f"\n⚠️ {len(duplicates)} duplicate session IDs found!")
        ok = False
    else:
        print(f"\n✅ No duplicate session IDs")

    by_method = Counter(r.method.value for r in records)
    by_table = Counter(r.table_number for r in records)
    print(f"\n🧭 BY METHOD: {dict(by_method)}")
    print(f"🪑 BY TABLE:  {dict(sorted(by_table.items()))}")

    print(f"\n📋 RECENT SESSIONS:")
    print("-" * 60)
    for record in sorted(records, key=lambda r: r.login_time)[-5:]:
        print(
            f"   Table {record.table_number:>2} │ {record.customer_name:<8} │ "
            f"{record.method.value:<6} │ {record.session_id}"
        )

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FAILED")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_sessions() else 1)
