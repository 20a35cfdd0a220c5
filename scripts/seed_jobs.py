#!/usr/bin/env python3
"""
Load companies, jobs and skills from a JSON file into the relational store.

Input format:
    {"companies": [{"name": "...", "industry": "...", "location": "...",
                    "jobs": [{"title": "...", "location": "...", "skills": ["Go"], ...}]}]}

Usage:
    python scripts/seed_jobs.py --json data/seed.json --db data/jobs.db
"""

import argparse
import json
from pathlib import Path
import sys

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from jobindex.database import Company, get_session, init_database
from jobindex.repository import JobRepository

REQUIRED_COMPANY_FIELDS = ["name", "industry", "location"]
REQUIRED_JOB_FIELDS = ["title", "location"]


def seed(json_path: Path, db_path: Path, dry_run: bool = False) -> bool:
    """
    Insert every company and job from the JSON file.

    Companies that already exist (by name) are reused, not duplicated.
    """
    print(f"Loading seed data from {json_path}...")
    with open(json_path, encoding="utf-8") as f:
        data = json.load(f)

    companies = data.get("companies", [])
    job_total = sum(len(c.get("jobs", [])) for c in companies)
    print(f"Found {len(companies)} companies and {job_total} jobs")

    if dry_run:
        print("\n[DRY RUN] Would insert the following:")
        for company in companies[:5]:
            print(f"  {company.get('name')}: {len(company.get('jobs', []))} jobs")
        if len(companies) > 5:
            print(f"  ... and {len(companies) - 5} more companies")
        return True

    print(f"\nInitializing database at {db_path}...")
    init_database(db_path)
    session = get_session(db_path)
    repository = JobRepository(session)

    inserted = 0
    skipped = 0
    errors = 0

    try:
        for entry in companies:
            if not all(entry.get(field) for field in REQUIRED_COMPANY_FIELDS):
                print(f"⚠️  Skipping company {entry.get('name')!r}: missing required fields")
                skipped += len(entry.get("jobs", []))
                continue

            company = session.query(Company).filter_by(name=entry["name"]).first()
            if company is None:
                company = repository.create_company(entry["name"], entry["industry"], entry["location"])

            for job in entry.get("jobs", []):
                if not all(job.get(field) for field in REQUIRED_JOB_FIELDS):
                    print(f"⚠️  Skipping job {job.get('title')!r} at {company.name}: missing required fields")
                    skipped += 1
                    continue
                try:
                    repository.create_job(
                        company_id=company.id,
                        title=job["title"],
                        location=job["location"],
                        description=job.get("description", ""),
                        requirements=job.get("requirements", ""),
                        salary_min=job.get("salary_min"),
                        salary_max=job.get("salary_max"),
                        skills=job.get("skills", []),
                    )
                    inserted += 1
                except Exception as e:
                    print(f"❌ Error inserting {job.get('title')!r} at {company.name}: {e}")
                    errors += 1

                if inserted and inserted % 20 == 0:
                    print(f"  Inserted {inserted} jobs...")
    finally:
        session.close()

    print("\n✅ Seeding complete!")
    print(f"   Inserted: {inserted}")
    print(f"   Skipped:  {skipped}")
    print(f"   Errors:   {errors}")
    return errors == 0


def main():
    parser = argparse.ArgumentParser(description="Seed the relational job store from JSON")
    parser.add_argument("--json", type=Path, default=Path("data/seed.json"),
                       help="Path to seed JSON file")
    parser.add_argument("--db", type=Path, default=Path("data/jobs.db"),
                       help="Path to SQLite database file")
    parser.add_argument("--dry-run", action="store_true",
                       help="Show what would be inserted without writing")

    args = parser.parse_args()

    if not args.json.exists():
        print(f"❌ JSON file not found: {args.json}")
        sys.exit(1)

    success = seed(args.json, args.db, dry_run=args.dry_run)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
