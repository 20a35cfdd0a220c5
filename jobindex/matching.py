"""
Skill overlap matching against the relational store.

A job's score is the number of distinct query skills it declares. Jobs
with no overlap never appear. Ranking is score descending, then job id
ascending, so equal scores always come back in the same order and
consecutive pages neither repeat nor skip jobs.

Labels are compared exactly (case-sensitive); normalizing them is up to
whoever builds the skill set.
"""

from dataclasses import dataclass
from typing import Iterable, List

from .logger import get_logger
from .repository import JobRepository
from .schema import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, require_valid, validate_pagination, validate_skills

logger = get_logger()


@dataclass(frozen=True)
class MatchResult:
    job_id: int
    score: int


def match_jobs_by_skills(
    repository: JobRepository,
    skills: Iterable[str],
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    max_page_size: int = MAX_PAGE_SIZE,
) -> List[MatchResult]:
    """
    Rank jobs by how many of the given skills they require.

    Args:
        repository: Relational job repository
        skills: Requester's declared skill labels
        limit: Page size, 1..max_page_size
        offset: Number of ranked results to skip

    Returns:
        One page of MatchResult, empty for an empty skill set

    Raises:
        InvalidQueryError: bad pagination or non-string labels (no I/O issued)
    """
    labels = skills
    if isinstance(skills, Iterable) and not isinstance(skills, str):
        labels = list(skills)
    require_valid(validate_pagination(limit, offset, max_page_size) + validate_skills(labels))

    # Deduplicate, keeping first-seen order for a stable query.
    labels = list(dict.fromkeys(labels))
    if not labels:
        return []

    logger.record_skill_match()
    rows = repository.list_job_ids_by_skills(labels, limit=limit, offset=offset)
    results = [MatchResult(job_id=job_id, score=score) for job_id, score in rows]
    logger.debug("Skill match", skills=labels, limit=limit, offset=offset, returned=len(results))
    return results
