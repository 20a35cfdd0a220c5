#!/usr/bin/env python3
"""
Verify that the search index mirrors the relational store.

Every job is projected exactly as a reindex would and compared with the
stored document. Jobs with integrity gaps are expected to be absent.

Usage:
    python scripts/verify_index.py --db data/jobs.db --es-url http://localhost:9200
"""

import argparse
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jobindex.config import Settings
from jobindex.database import get_session
from jobindex.errors import MissingCompanyError, SearchIndexError
from jobindex.index.client import SearchIndexClient
from jobindex.rebuild import project_job
from jobindex.repository import JobRepository


def verify(db_path: Path, client: SearchIndexClient, index: str, page_size: int = 100) -> bool:
    """
    Compare projections with indexed documents.

    Returns True if every projectable job is indexed with identical content.
    """
    print(f"Querying database at {db_path}...")
    session = get_session(db_path)
    repository = JobRepository(session)

    checked = 0
    missing = []
    mismatches = []
    gaps = []

    try:
        for job in repository.iter_jobs(page_size=page_size):
            try:
                expected = project_job(repository, job, page_size).to_source()
            except MissingCompanyError:
                gaps.append(job.id)
                continue

            checked += 1
            actual = client.get_document(index, str(job.id))
            if actual is None:
                missing.append(job.id)
                continue

            for field, value in expected.items():
                if actual.get(field) != value:
                    mismatches.append({"job_id": job.id, "field": field, "db": value, "index": actual.get(field)})
    finally:
        session.close()

    print(f"  Checked: {checked} jobs")
    if gaps:
        print(f"  Integrity gaps (not indexable): {len(gaps)}")

    if missing:
        print(f"\n❌ MISSING from index: {len(missing)} jobs")
        for job_id in missing[:5]:
            print(f"   - {job_id}")
        if len(missing) > 5:
            print(f"   ... and {len(missing) - 5} more")

    if mismatches:
        print(f"\n❌ DATA MISMATCHES: {len(mismatches)} field differences")
        for mismatch in mismatches[:5]:
            print(f"   - job {mismatch['job_id']}")
            print(f"     {mismatch['field']}: DB={mismatch['db']!r} vs index={mismatch['index']!r}")
        if len(mismatches) > 5:
            print(f"   ... and {len(mismatches) - 5} more")

    if not missing and not mismatches:
        print("✅ Index matches the relational store")
        return True
    return False


def main():
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="Verify the search index against the relational store")
    parser.add_argument("--db", type=Path, default=settings.db_path,
                       help="Path to SQLite database file")
    parser.add_argument("--es-url", default=settings.es_url, help="Search index URL")
    parser.add_argument("--index", default=settings.index_name, help="Index name")

    args = parser.parse_args()

    if not args.db.exists():
        print(f"❌ Database file not found: {args.db}")
        sys.exit(1)

    client = SearchIndexClient.from_settings(settings.with_overrides(es_url=args.es_url))
    try:
        success = verify(args.db, client, args.index, page_size=settings.page_size)
    except SearchIndexError as e:
        print(f"❌ Search index error: {e}")
        sys.exit(1)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
