"""
Index Synchronization Pipeline.

Responsibilities:
- Page through the relational store, project each job and feed the
  bulk indexer (full rebuild, single-job reindex, document removal).
- Report integrity gaps per job id without aborting the pass.

Non-Responsibilities:
- No query answering.
- No relational writes.

Invariant:
A full rebuild must be idempotent and reproducible: running it twice
over an unchanged store leaves identical documents in the index.
"""

import threading
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .config import Settings
from .database import Job
from .errors import (
    IndexingSessionError,
    JobIndexError,
    JobNotFoundError,
    MissingCompanyError,
    SearchIndexError,
)
from .index.bulk import BulkIndexer, BulkStats
from .index.client import SearchIndexClient
from .logger import get_logger
from .projection import Document, build_document
from .repository import JobRepository

logger = get_logger()


@dataclass
class SyncReport:
    stats: BulkStats
    skipped: List[JobIndexError] = field(default_factory=list)

    @property
    def skipped_ids(self) -> List[int]:
        return sorted(e.job_id for e in self.skipped)

    @property
    def cancelled(self) -> bool:
        return self.stats.cancelled

    @property
    def ok(self) -> bool:
        return self.stats.complete and self.stats.num_failed == 0 and not self.skipped


def _make_indexer(
    client: SearchIndexClient,
    settings: Settings,
    cancel_event: Optional[threading.Event],
    expected: Optional[int] = None,
) -> BulkIndexer:
    num_workers = settings.num_workers
    if expected is not None:
        num_workers = max(1, min(num_workers, expected))
    return BulkIndexer(
        client,
        settings.index_name,
        num_workers=num_workers,
        batch_size=settings.batch_size,
        queue_size=settings.effective_queue_size,
        cancel_event=cancel_event,
    )


def project_job(repository: JobRepository, job: Job, page_size: int = 100) -> Document:
    """Resolve a job's company and skills, then build its document."""
    company = repository.get_company(job.company_id)
    skills = list(repository.iter_skill_labels(job.id, page_size=page_size))
    return build_document(job, company, skills)


def _skip(skipped: List[JobIndexError], error: JobIndexError) -> None:
    logger.warning("Skipping job", job_id=error.job_id, reason=str(error))
    logger.record_skipped()
    skipped.append(error)


def reindex_all(
    repository: JobRepository,
    client: SearchIndexClient,
    settings: Settings,
    cancel_event: Optional[threading.Event] = None,
    recreate: bool = False,
) -> SyncReport:
    """
    Rebuild the index from every job in the relational store.

    Args:
        recreate: Drop the index first so documents of deleted jobs go too

    Raises:
        IndexingSessionError: the index could not be opened; nothing indexed
    """
    logger.info("Starting full reindex", index=settings.index_name, recreate=recreate)
    if recreate:
        try:
            client.delete_index(settings.index_name)
        except SearchIndexError as e:
            raise IndexingSessionError(f"Cannot drop index '{settings.index_name}': {e}") from e

    skipped: List[JobIndexError] = []
    with _make_indexer(client, settings, cancel_event) as indexer:
        for job in repository.iter_jobs(page_size=settings.page_size):
            if indexer.cancelled:
                break
            try:
                document = project_job(repository, job, settings.page_size)
            except MissingCompanyError as e:
                _skip(skipped, e)
                continue
            if not indexer.add(document):
                break
        stats = indexer.close()

    report = SyncReport(stats=stats, skipped=skipped)
    logger.info(
        "Full reindex finished",
        indexed=stats.num_indexed,
        failed=stats.num_failed,
        not_attempted=stats.num_not_attempted,
        skipped=len(skipped),
        cancelled=stats.cancelled,
    )
    return report


def reindex_jobs(
    repository: JobRepository,
    client: SearchIndexClient,
    job_ids: Iterable[int],
    settings: Settings,
    cancel_event: Optional[threading.Event] = None,
) -> SyncReport:
    """Reindex specific jobs after an insert or update."""
    job_ids = list(dict.fromkeys(job_ids))
    skipped: List[JobIndexError] = []
    with _make_indexer(client, settings, cancel_event, expected=len(job_ids)) as indexer:
        for job_id in job_ids:
            if indexer.cancelled:
                break
            job = repository.get_job(job_id)
            if job is None:
                _skip(skipped, JobNotFoundError(job_id))
                continue
            try:
                document = project_job(repository, job, settings.page_size)
            except MissingCompanyError as e:
                _skip(skipped, e)
                continue
            if not indexer.add(document):
                break
        stats = indexer.close()
    return SyncReport(stats=stats, skipped=skipped)


def remove_jobs(
    client: SearchIndexClient,
    job_ids: Iterable[int],
    settings: Settings,
    cancel_event: Optional[threading.Event] = None,
) -> SyncReport:
    """Delete the documents of jobs removed from the relational store."""
    job_ids = list(dict.fromkeys(job_ids))
    with _make_indexer(client, settings, cancel_event, expected=len(job_ids)) as indexer:
        for job_id in job_ids:
            if not indexer.delete(job_id):
                break
        stats = indexer.close()
    return SyncReport(stats=stats)
