"""
Search index client for the Elasticsearch REST API.

Every public method is a single round trip (plus transport-level retries
on timeouts and connection errors). Failures surface as SearchIndexError;
per-item bulk outcomes come back as BulkItemResult values instead.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests

from ..config import Settings
from ..errors import SearchIndexError
from ..logger import get_logger
from ..retry import RetryError, exponential_backoff, should_retry_http_status

logger = get_logger()

# Network-level failures retried with backoff; HTTP errors are classified by status instead.
TRANSPORT_ERRORS = (requests.exceptions.Timeout, requests.exceptions.ConnectionError)

JOB_INDEX_MAPPING: Dict[str, Any] = {
    "properties": {
        "id": {"type": "integer"},
        "title": {"type": "text"},
        "industry": {"type": "keyword"},
        "company_name": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
        "description": {"type": "text"},
        "location": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
        "salary_min": {"type": "integer"},
        "salary_max": {"type": "integer"},
        "requirements": {"type": "text"},
        "job_skills": {"type": "keyword"},
    }
}


@dataclass(frozen=True)
class BulkAction:
    """One line pair of a _bulk request: 'index' carries a source, 'delete' does not."""

    action: str
    document_id: str
    source: Optional[Dict[str, Any]] = None

    @property
    def job_id(self) -> int:
        return int(self.document_id)


@dataclass(frozen=True)
class BulkItemResult:
    document_id: str
    action: str
    status: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        # Deleting an absent document leaves the index in the wanted state.
        if self.action == "delete" and self.status == 404:
            return True
        return 200 <= self.status < 300

    @property
    def retryable(self) -> bool:
        return not self.ok and should_retry_http_status(self.status)


def _error_reason(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return f"{error.get('type')}: {error.get('reason')}"
    if error:
        return str(error)
    return str(data)[:200]


def _item_error(detail: Dict[str, Any]) -> Optional[str]:
    error = detail.get("error")
    if error is None:
        return None
    if isinstance(error, dict):
        return f"{error.get('type')}: {error.get('reason')}"
    return str(error)


def encode_bulk_body(index: str, actions: Sequence[BulkAction]) -> bytes:
    """Serialize actions as NDJSON. Sources are key-sorted so repeated runs send identical bytes."""
    lines: List[str] = []
    for action in actions:
        lines.append(json.dumps({action.action: {"_index": index, "_id": action.document_id}}))
        if action.action == "index":
            lines.append(json.dumps(action.source, sort_keys=True, ensure_ascii=False))
    return ("\n".join(lines) + "\n").encode("utf-8")


class SearchIndexClient:
    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password or "")
        self._send = exponential_backoff(
            max_retries=max_retries,
            base_delay=retry_delay,
            exceptions=TRANSPORT_ERRORS,
            on_retry=self._on_retry,
        )(self._send_once)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchIndexClient":
        return cls(
            settings.es_url,
            username=settings.es_username,
            password=settings.es_password,
            timeout=settings.timeout,
        )

    @staticmethod
    def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
        logger.warning("Search index request failed, retrying", attempt=attempt, delay=delay, error=str(exc))

    def _send_once(self, method: str, path: str, **kwargs) -> requests.Response:
        return self.session.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            return self._send(method, path, **kwargs)
        except RetryError as e:
            raise SearchIndexError(f"Search index unreachable: {e}", retryable=True) from e
        except requests.exceptions.RequestException as e:
            raise SearchIndexError(f"Search index request error: {e}", retryable=False) from e

    @staticmethod
    def _raise_for_status(resp: requests.Response, what: str) -> None:
        if resp.status_code >= 400:
            raise SearchIndexError(
                f"{what} failed ({resp.status_code}): {_error_reason(resp)}",
                status_code=resp.status_code,
                retryable=should_retry_http_status(resp.status_code),
            )

    def ping(self) -> bool:
        try:
            resp = self._request("GET", "/")
        except SearchIndexError:
            return False
        return resp.status_code == 200

    def ensure_index(self, index: str, mappings: Optional[Dict[str, Any]] = None) -> bool:
        """
        Create the index with the job mapping unless it already exists.

        Returns:
            True if the index was created by this call
        """
        resp = self._request("HEAD", f"/{index}")
        if resp.status_code == 200:
            return False
        if resp.status_code != 404:
            self._raise_for_status(resp, f"Index check for '{index}'")

        body = {"mappings": mappings or JOB_INDEX_MAPPING}
        resp = self._request("PUT", f"/{index}", json=body)
        if resp.status_code == 400 and "resource_already_exists_exception" in resp.text:
            return False
        self._raise_for_status(resp, f"Index creation for '{index}'")
        logger.info("Created search index", index=index)
        return True

    def delete_index(self, index: str) -> bool:
        """Drop the whole index. Returns False if it did not exist."""
        resp = self._request("DELETE", f"/{index}")
        if resp.status_code == 404:
            return False
        self._raise_for_status(resp, f"Index deletion for '{index}'")
        logger.info("Deleted search index", index=index)
        return True

    def bulk(self, index: str, actions: Sequence[BulkAction]) -> List[BulkItemResult]:
        """
        Send one _bulk request.

        Raises:
            SearchIndexError: the request as a whole failed; no per-item
                outcome is known
        """
        if not actions:
            return []
        resp = self._request(
            "POST",
            "/_bulk",
            data=encode_bulk_body(index, actions),
            headers={"Content-Type": "application/x-ndjson"},
        )
        self._raise_for_status(resp, "Bulk request")

        items = resp.json().get("items", [])
        if len(items) != len(actions):
            raise SearchIndexError(
                f"Bulk response has {len(items)} items for {len(actions)} actions",
                retryable=True,
            )

        results: List[BulkItemResult] = []
        for action, item in zip(actions, items):
            detail = item.get(action.action) or next(iter(item.values()), {})
            results.append(
                BulkItemResult(
                    document_id=str(detail.get("_id", action.document_id)),
                    action=action.action,
                    status=int(detail.get("status", 0)),
                    error=_item_error(detail),
                )
            )
        return results

    def search(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = self._request("POST", f"/{index}/_search", json=body)
        self._raise_for_status(resp, f"Search on '{index}'")
        return resp.json()

    def get_document(self, index: str, document_id: str) -> Optional[Dict[str, Any]]:
        resp = self._request("GET", f"/{index}/_doc/{document_id}")
        if resp.status_code == 404:
            return None
        self._raise_for_status(resp, f"Get document {document_id}")
        return resp.json().get("_source")

    def delete_document(self, index: str, document_id: str) -> bool:
        resp = self._request("DELETE", f"/{index}/_doc/{document_id}")
        if resp.status_code == 404:
            return False
        self._raise_for_status(resp, f"Delete document {document_id}")
        return True

    def refresh(self, index: str) -> None:
        resp = self._request("POST", f"/{index}/_refresh")
        self._raise_for_status(resp, f"Refresh of '{index}'")

    def count(self, index: str) -> int:
        resp = self._request("GET", f"/{index}/_count")
        self._raise_for_status(resp, f"Count on '{index}'")
        return int(resp.json().get("count", 0))
