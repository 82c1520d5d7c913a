#!/usr/bin/env python3
"""
Template Drift Checker
Compares local face_encodings with the remote face collection and prints the
difference. Nothing is modified; orphans are for an operator to review.

Run from the repository root with the package installed (pip install -e .):
    python scripts/check_template_drift.py [--report /tmp/template_drift_report.json]
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime

from dotenv import load_dotenv
load_dotenv()

from core.logging import setup_logging
from infrastructure.minio_storage import MinioStorage
from infrastructure.rekognition import RekognitionBackend
from services.assignment import IdentityCommitService
from services.database import PostgresClient
from services.reconciler import ConsistencyReconciler


async def check_drift(report_path: str) -> int:
    db = PostgresClient()
    backend = RekognitionBackend()
    storage = MinioStorage()
    reconciler = ConsistencyReconciler(db, backend, storage, IdentityCommitService(db, backend, storage))

    print("=" * 60)
    print("TEMPLATE DRIFT CHECK")
    print("=" * 60)
    print(f"Collection: {backend.collection_id}")
    print(f"Started at: {datetime.now().isoformat()}")
    print()

    await db.connect()
    try:
        report = await reconciler.audit_drift()
    finally:
        await db.disconnect()

    print(f"Local encodings:  {report.local_count}")
    print(f"Remote templates: {report.remote_count}")
    print()
    sections = [
        ("Local only (encoding without remote template)", report.local_only),
        ("Remote only (template without encoding)", report.remote_only),
        ("Face templates without encoding", report.unshadowed_face_templates),
    ]
    for title, ids in sections:
        print(f"{title}: {len(ids)}")
        for template_id in ids[:20]:
            print(f"   {template_id}")
        if len(ids) > 20:
            print(f"   ... and {len(ids) - 20} more")

    print()
    print("=" * 60)
    print("IN SYNC" if report.in_sync else "DRIFT DETECTED")
    print("=" * 60)

    with open(report_path, 'w') as f:
        json.dump(
            {'timestamp': datetime.now().isoformat(), **report.model_dump()},
            f,
            indent=2,
        )
    print(f"\nDetailed report saved to: {report_path}")

    return 0 if report.in_sync else 1


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Report drift between local encodings and remote templates")
    parser.add_argument('--report', default='/tmp/template_drift_report.json')
    args = parser.parse_args()
    setup_logging(level="WARNING")
    sys.exit(asyncio.run(check_drift(args.report)))
