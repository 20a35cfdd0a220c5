"""
Error taxonomy for the indexing and retrieval core.

- Caller errors (InvalidQueryError) are raised before any I/O.
- Transient I/O failures (TransientError subclasses) are retryable.
- Session-level failures (IndexingSessionError) abort a whole sync run.
- Integrity gaps (MissingCompanyError) exclude one job from a pass.
"""

from typing import Optional


class JobIndexError(Exception):
    """Base class for every error raised by jobindex."""


class InvalidQueryError(JobIndexError, ValueError):
    """Query parameters rejected before reaching storage."""


class TransientError(JobIndexError):
    """A backing store was temporarily unreachable; the call may be retried."""

    retryable = True


class StoreUnavailableError(TransientError):
    """The relational store could not serve the request."""


class SearchIndexError(JobIndexError):
    """A request to the search index failed; `retryable` tells transient failures apart."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class IndexingSessionError(JobIndexError):
    """The indexing session could not be opened; nothing was indexed."""


class MissingCompanyError(JobIndexError):
    """A job references a company that cannot be resolved."""

    def __init__(self, job_id: int, company_id: Optional[int]):
        super().__init__(f"Job {job_id} references missing company {company_id}")
        self.job_id = job_id
        self.company_id = company_id


class JobNotFoundError(JobIndexError, LookupError):
    def __init__(self, job_id: int):
        super().__init__(f"Job {job_id} does not exist")
        self.job_id = job_id
