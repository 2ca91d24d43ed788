#!/usr/bin/env python3
"""
Delete blobs that no photo row references (left behind when a metadata insert
failed after the blob write, with CLEANUP_ORPHANED_BLOBS off or the cleanup itself failing).

Lists what it would delete unless --confirm is given. Uses the same env as the API:
  DATABASE_URL=... BLOB_BACKEND=azure AZURE_STORAGE_ACCOUNT=... python scripts/sweep_orphaned_blobs.py --confirm
"""
import argparse
import sys

from gallery_api.core.blob_storage import create_blob_store
from gallery_api.core.logging_config import setup_logging
from gallery_api.db.session import SessionLocal
from gallery_api.services.sweep import sweep_orphaned_blobs


def main():
    parser = argparse.ArgumentParser(description="Remove blobs with no matching photo row")
    parser.add_argument("--confirm", action="store_true", help="Actually delete (default: list only)")
    args = parser.parse_args()
    setup_logging()

    store = create_blob_store()
    db = SessionLocal()
    try:
        keys = sweep_orphaned_blobs(db, store, dry_run=not args.confirm)
    finally:
        db.close()

    for key in keys:
        print(f"  {key}")
    if args.confirm:
        print(f"Deleted {len(keys)} orphaned blob(s).")
    else:
        print(f"{len(keys)} orphaned blob(s). Re-run with --confirm to delete them.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
