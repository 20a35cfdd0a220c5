import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import List

from . import __version__
from .config import Settings
from .database import get_session, init_database
from .env import load_env
from .errors import IndexingSessionError, InvalidQueryError, SearchIndexError, TransientError
from .index.client import SearchIndexClient
from .logger import get_logger
from .matching import match_jobs_by_skills
from .rebuild import SyncReport, reindex_all, reindex_jobs, remove_jobs
from .repository import JobRepository
from .search import SearchCriteria, search_jobs

logger = get_logger()

EXIT_FAILURE = 1
EXIT_USAGE = 2


def _settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_env()
    return settings.with_overrides(
        db_path=Path(args.db) if getattr(args, "db", None) else None,
        es_url=getattr(args, "es_url", None),
        index_name=getattr(args, "index", None),
        num_workers=getattr(args, "workers", None),
        batch_size=getattr(args, "batch_size", None),
    )


def _repository(settings: Settings) -> JobRepository:
    if not settings.db_path.exists():
        raise SystemExit(f"Database not found: {settings.db_path} (run 'jobindex init-db' first)")
    return JobRepository(get_session(settings.db_path))


def _print_report(report: SyncReport) -> None:
    stats = report.stats
    print(
        f"Done. indexed={stats.num_indexed} failed={stats.num_failed} "
        f"not-attempted={stats.num_not_attempted} skipped={len(report.skipped)}"
    )
    for failure in stats.failures:
        print(f"[failed] job {failure.job_id}: {failure.error}")
    for error in report.skipped:
        print(f"[skipped] job {error.job_id}: {error}")
    if stats.cancelled:
        print("Run was cancelled before all work was dispatched.")


def _run_cancellable(func, timeout):
    """Run func(cancel_event), cancelling on Ctrl-C or when timeout elapses."""
    cancel_event = threading.Event()
    timer = None
    if timeout:
        timer = threading.Timer(timeout, cancel_event.set)
        timer.daemon = True
        timer.start()

    def _on_sigint(signum, frame):
        print("Cancelling: in-flight requests will finish, queued work is dropped.")
        cancel_event.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        return func(cancel_event)
    finally:
        signal.signal(signal.SIGINT, previous)
        if timer is not None:
            timer.cancel()


def cmd_init_db(args: argparse.Namespace) -> None:
    settings = _settings(args)
    init_database(settings.db_path)
    print(f"Initialized database at {settings.db_path}")


def cmd_reindex(args: argparse.Namespace) -> None:
    settings = _settings(args)
    repository = _repository(settings)
    client = SearchIndexClient.from_settings(settings)

    if args.job_id:
        report = _run_cancellable(
            lambda cancel: reindex_jobs(repository, client, args.job_id, settings, cancel),
            args.timeout,
        )
    else:
        report = _run_cancellable(
            lambda cancel: reindex_all(repository, client, settings, cancel, recreate=args.recreate),
            args.timeout,
        )
    _print_report(report)
    logger.log_metrics_summary()
    if not report.ok:
        raise SystemExit(EXIT_FAILURE)


def cmd_unindex(args: argparse.Namespace) -> None:
    settings = _settings(args)
    client = SearchIndexClient.from_settings(settings)
    report = _run_cancellable(
        lambda cancel: remove_jobs(client, args.job_id, settings, cancel),
        args.timeout,
    )
    _print_report(report)
    if not report.ok:
        raise SystemExit(EXIT_FAILURE)


def _parse_skills(raw: str) -> List[str]:
    # Only surrounding whitespace is trimmed; labels stay case-sensitive.
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


def cmd_match(args: argparse.Namespace) -> None:
    settings = _settings(args)
    repository = _repository(settings)
    skills = _parse_skills(args.skills)
    results = match_jobs_by_skills(
        repository, skills, limit=args.limit, offset=args.offset, max_page_size=settings.max_page_size
    )
    if not results:
        print("No matching jobs.")
        return
    for result in results:
        job = repository.get_job(result.job_id)
        title = job.title if job is not None else "?"
        print(f"[{result.score}] job {result.job_id}: {title}")


def cmd_search(args: argparse.Namespace) -> None:
    settings = _settings(args)
    client = SearchIndexClient.from_settings(settings)
    criteria = SearchCriteria(
        text=args.text,
        industry=args.industry,
        location=args.location,
        salary_min=args.salary_min,
        salary_max=args.salary_max,
    )
    page = search_jobs(
        client,
        settings.index_name,
        criteria,
        limit=args.limit,
        offset=args.offset,
        max_page_size=settings.max_page_size,
    )
    if not page.results:
        print("No jobs found.")
        return
    print(f"Found {page.total} jobs (showing {len(page.results)} from offset {args.offset}):\n")
    for result in page.results:
        salary = ""
        if result.salary_min is not None or result.salary_max is not None:
            salary = f" [{result.salary_min or '?'}-{result.salary_max or '?'}]"
        print(f"{result.score:.3f}  job {result.job_id}: {result.title} @ {result.company_name}")
        print(f"  {result.industry} | {result.location}{salary}")
        if result.job_skills:
            print(f"  Skills: {', '.join(result.job_skills)}")


def _add_store_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--db", help="Path to SQLite database (default: $JOBINDEX_DB_PATH or data/jobs.db)")


def _add_index_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--es-url", help="Search index URL (default: $ELASTICSEARCH_URL)")
    parser.add_argument("--index", help="Index name (default: $JOBINDEX_INDEX or jobs)")


def _add_page_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--limit", type=int, default=10, help="Page size (default 10)")
    parser.add_argument("--offset", type=int, default=0, help="Results to skip (default 0)")


def main():
    load_env()
    parser = argparse.ArgumentParser(prog="jobindex", description="Job search indexing and retrieval")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    ini = subparsers.add_parser("init-db", help="Create the relational tables")
    _add_store_args(ini)
    ini.set_defaults(func=cmd_init_db)

    rix = subparsers.add_parser("reindex", help="Synchronize jobs into the search index")
    _add_store_args(rix)
    _add_index_args(rix)
    rix.add_argument("--job-id", type=int, action="append", help="Reindex only this job (repeatable)")
    rix.add_argument("--recreate", action="store_true", help="Drop the index before a full rebuild")
    rix.add_argument("--workers", type=int, help="Bulk worker threads (default: $JOBINDEX_WORKERS or 5)")
    rix.add_argument("--batch-size", type=int, help="Documents per bulk request (default 50)")
    rix.add_argument("--timeout", type=float, help="Cancel the run after this many seconds")
    rix.set_defaults(func=cmd_reindex)

    uix = subparsers.add_parser("unindex", help="Remove job documents from the search index")
    _add_index_args(uix)
    uix.add_argument("--job-id", type=int, action="append", required=True, help="Job id to remove (repeatable)")
    uix.add_argument("--timeout", type=float, help="Cancel the run after this many seconds")
    uix.set_defaults(func=cmd_unindex)

    mat = subparsers.add_parser("match", help="Rank jobs by skill overlap")
    _add_store_args(mat)
    mat.add_argument("--skills", required=True, help="Comma-separated skill labels, e.g. \"Go,SQL\"")
    _add_page_args(mat)
    mat.set_defaults(func=cmd_match)

    sea = subparsers.add_parser("search", help="Filtered search over indexed jobs")
    _add_index_args(sea)
    sea.add_argument("--text", help="Words to find in title, description or requirements")
    sea.add_argument("--industry", help="Exact industry")
    sea.add_argument("--location", help="Location words")
    sea.add_argument("--salary-min", type=int, help="Salary floor: job salary_max must reach it")
    sea.add_argument("--salary-max", type=int, help="Salary ceiling: job salary_min must not exceed it")
    _add_page_args(sea)
    sea.set_defaults(func=cmd_search)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if not hasattr(args, "func"):
        parser.print_help()
        return

    get_logger().logger.setLevel(Settings.from_env().log_level.upper())
    try:
        args.func(args)
    except InvalidQueryError as e:
        print(f"Invalid query: {e}", file=sys.stderr)
        raise SystemExit(EXIT_USAGE)
    except IndexingSessionError as e:
        logger.error("Indexing session failed", error=str(e))
        print(f"Indexing aborted: {e}", file=sys.stderr)
        raise SystemExit(EXIT_FAILURE)
    except (TransientError, SearchIndexError) as e:
        hint = "try again" if e.retryable else "not retryable"
        print(f"Request failed ({hint}): {e}", file=sys.stderr)
        raise SystemExit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
