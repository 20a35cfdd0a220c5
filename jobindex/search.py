from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .index.client import SearchIndexClient
from .logger import get_logger
from .schema import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MAX_RESULT_WINDOW,
    require_valid,
    validate_pagination,
    validate_salary_bounds,
)

logger = get_logger()

TEXT_FIELDS = ["title^3", "description", "requirements"]


@dataclass(frozen=True)
class SearchCriteria:
    """Optional filters; empty strings and zero salaries impose no constraint."""

    text: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    salary_min: Optional[int] = None  # floor: job.salary_max >= salary_min
    salary_max: Optional[int] = None  # ceiling: job.salary_min <= salary_max


@dataclass(frozen=True)
class SearchResult:
    job_id: int
    score: float
    title: str
    company_name: str
    industry: str
    location: str
    salary_min: Optional[int]
    salary_max: Optional[int]
    job_skills: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SearchPage:
    total: int
    results: List[SearchResult]


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def build_search_body(criteria: SearchCriteria, limit: int, offset: int) -> Dict[str, Any]:
    """
    Translate criteria into one Elasticsearch query body.

    Supplied criteria are AND-combined; with none supplied every document
    matches. Sorting falls back to job id so equal scores page stably.
    """
    must: List[Dict[str, Any]] = []
    filters: List[Dict[str, Any]] = []

    text = _clean(criteria.text)
    if text:
        must.append({"multi_match": {"query": text, "fields": TEXT_FIELDS, "operator": "and"}})

    industry = _clean(criteria.industry)
    if industry:
        filters.append({"term": {"industry": industry}})

    location = _clean(criteria.location)
    if location:
        filters.append({"match": {"location": {"query": location, "operator": "and"}}})

    if criteria.salary_min:
        filters.append({"range": {"salary_max": {"gte": criteria.salary_min}}})
    if criteria.salary_max:
        filters.append({"range": {"salary_min": {"lte": criteria.salary_max}}})

    if must or filters:
        bool_query: Dict[str, Any] = {}
        if must:
            bool_query["must"] = must
        if filters:
            bool_query["filter"] = filters
        query: Dict[str, Any] = {"bool": bool_query}
    else:
        query = {"match_all": {}}

    return {
        "query": query,
        "from": offset,
        "size": limit,
        "sort": [{"_score": {"order": "desc"}}, {"id": {"order": "asc"}}],
        "track_total_hits": True,
    }


def _parse_hit(hit: Dict[str, Any]) -> SearchResult:
    source = hit.get("_source") or {}
    job_id = source.get("id", hit.get("_id"))
    return SearchResult(
        job_id=int(job_id),
        score=float(hit.get("_score") or 0.0),
        title=source.get("title", ""),
        company_name=source.get("company_name", ""),
        industry=source.get("industry", ""),
        location=source.get("location", ""),
        salary_min=source.get("salary_min"),
        salary_max=source.get("salary_max"),
        job_skills=list(source.get("job_skills") or []),
    )


def _total_hits(hits: Dict[str, Any], fallback: int) -> int:
    total = hits.get("total")
    if isinstance(total, dict):
        return int(total.get("value", fallback))
    if total is None:
        return fallback
    return int(total)


def search_jobs(
    client: SearchIndexClient,
    index: str,
    criteria: Optional[SearchCriteria] = None,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    max_page_size: int = MAX_PAGE_SIZE,
) -> SearchPage:
    """
    Run a filtered search against the index.

    Raises:
        InvalidQueryError: bad pagination or salary bounds (no I/O issued)
        SearchIndexError: the index request failed
    """
    criteria = criteria or SearchCriteria()
    errors = validate_pagination(limit, offset, max_page_size)
    errors += validate_salary_bounds(criteria.salary_min, criteria.salary_max)
    if not errors and offset + limit > MAX_RESULT_WINDOW:
        errors.append(f"offset + limit must not exceed {MAX_RESULT_WINDOW}")
    require_valid(errors)

    body = build_search_body(criteria, limit, offset)
    logger.record_search()
    response = client.search(index, body)

    hits = response.get("hits") or {}
    results = [_parse_hit(hit) for hit in hits.get("hits", [])]
    total = _total_hits(hits, len(results))
    logger.debug("Filtered search", criteria=asdict(criteria), limit=limit, offset=offset, total=total)
    return SearchPage(total=total, results=results)
