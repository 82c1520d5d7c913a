#!/usr/bin/env python3
"""
Database Integrity Checker - Standalone version
Checks the local face/identity invariants in PostgreSQL. Read-only.

Usage:
    python scripts/check_db_integrity.py [--report /tmp/db_integrity_report.json]
"""
import argparse
import asyncio
import json
import os
import sys
from datetime import datetime

import asyncpg
from dotenv import load_dotenv

# Load python/.env when present, else the current directory's .env
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'python', '.env')
load_dotenv(env_path if os.path.exists(env_path) else None)


CHECKS = [
    (
        'committed_face_without_template',
        "Committed faces (is_confirmed) without a template",
        """
        SELECT id, photo_id, person_id
        FROM photo_faces
        WHERE is_confirmed = TRUE AND remote_template_id IS NULL
        """,
    ),
    (
        'template_without_person',
        "Faces referencing a template but no person",
        """
        SELECT id, photo_id, remote_template_id
        FROM photo_faces
        WHERE remote_template_id IS NOT NULL AND person_id IS NULL
        """,
    ),
    (
        'confirmed_exceeds_face_count',
        "Photos with more confirmed faces than face_count",
        """
        SELECT p.id AS photo_id, p.face_count, COUNT(pf.id) AS confirmed
        FROM photos p
        JOIN photo_faces pf ON pf.photo_id = p.id AND pf.review_status = 'confirmed'
        GROUP BY p.id, p.face_count
        HAVING COUNT(pf.id) > p.face_count
        """,
    ),
    (
        'face_template_without_encoding',
        "Face templates missing a face_encodings row",
        """
        SELECT pf.id, pf.person_id, pf.remote_template_id
        FROM photo_faces pf
        LEFT JOIN face_encodings fe ON fe.remote_template_id = pf.remote_template_id
        WHERE pf.remote_template_id IS NOT NULL AND fe.id IS NULL
        """,
    ),
    (
        'encoding_person_mismatch',
        "Faces whose person differs from the owner of their template",
        """
        SELECT pf.id, pf.person_id AS face_person_id, fe.person_id AS encoding_person_id
        FROM photo_faces pf
        JOIN face_encodings fe ON fe.remote_template_id = pf.remote_template_id
        WHERE pf.person_id IS DISTINCT FROM fe.person_id
        """,
    ),
    (
        'face_count_mismatch',
        "Completed photos whose face_count differs from stored faces",
        """
        SELECT p.id AS photo_id, p.face_count, COUNT(pf.id) AS stored
        FROM photos p
        LEFT JOIN photo_faces pf ON pf.photo_id = p.id
        WHERE p.processing_status = 'completed'
        GROUP BY p.id, p.face_count
        HAVING COUNT(pf.id) <> p.face_count
        """,
    ),
]


async def check_integrity(report_path: str) -> int:
    db_url = os.getenv('DATABASE_URL')
    if not db_url:
        print("Error: DATABASE_URL environment variable not set")
        return 2

    print("=" * 60)
    print("DATABASE INTEGRITY CHECK")
    print("=" * 60)
    print(f"Started at: {datetime.now().isoformat()}")
    print()

    conn = await asyncpg.connect(db_url)

    try:
        issues = {}
        total_issues = 0

        for index, (key, title, query) in enumerate(CHECKS, start=1):
            print(f"[{index}/{len(CHECKS)}] {title}...")
            rows = await conn.fetch(query)
            issues[key] = {
                'count': len(rows),
                'records': [dict(r) for r in rows[:10]]  # First 10 examples
            }
            total_issues += len(rows)
            print(f"   Found: {len(rows)}")

        print()
        print("=" * 60)
        print("SUMMARY")
        print("=" * 60)
        for key, value in issues.items():
            print(f"{key}: {value['count']} issues")
        print(f"\nTotal issues found: {total_issues}")
        print("=" * 60)

        report = {
            'timestamp': datetime.now().isoformat(),
            'total_issues': total_issues,
            'issues': issues
        }
        with open(report_path, 'w') as f:
            json.dump(report, f, indent=2, default=str)
        print(f"\nDetailed report saved to: {report_path}")

    finally:
        await conn.close()

    return 1 if total_issues else 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description="Check local face/identity invariants")
    parser.add_argument('--report', default='/tmp/db_integrity_report.json')
    args = parser.parse_args()
    sys.exit(asyncio.run(check_integrity(args.report)))
