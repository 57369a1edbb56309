"""
Copy all ID records and the admin credentials from one record store to another
Run this when moving a deployment between the local and Firestore backends

    python scripts/migrate_store.py local firestore
"""

import sys

from idverify import create_app
from idverify.errors import StoreError
from idverify.storage import build_store, copy_store


def migrate_store(app, source_name, target_name):
    with app.app_context():
        source = build_store({**app.config, 'RECORD_STORE': source_name})
        target = build_store({**app.config, 'RECORD_STORE': target_name})
        print(f"Copying records from {source.name} to {target.name}...")

        copied, skipped = copy_store(source, target)
        print(f"[OK] Copied {copied} records, skipped {skipped}")
        print("[OK] Admin credentials copied")
        return copied, skipped


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    try:
        migrate_store(create_app(), sys.argv[1], sys.argv[2])
    except (StoreError, ValueError) as e:
        print(f"Migration failed: {e}")
        sys.exit(1)
