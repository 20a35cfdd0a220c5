"""
Tests for the search index REST client.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from jobindex.config import Settings
from jobindex.errors import SearchIndexError
from jobindex.index.client import (
    JOB_INDEX_MAPPING,
    BulkAction,
    BulkItemResult,
    SearchIndexClient,
    encode_bulk_body,
)


def make_response(status_code=200, payload=None, text=None):
    resp = MagicMock()
    resp.status_code = status_code
    if payload is None:
        resp.json.side_effect = ValueError("no json")
        resp.text = text or ""
    else:
        resp.json.return_value = payload
        resp.text = text if text is not None else json.dumps(payload)
    return resp


def make_client(*responses, **kwargs):
    session = MagicMock()
    session.request.side_effect = list(responses)
    kwargs.setdefault("retry_delay", 0)
    client = SearchIndexClient("http://es:9200/", session=session, **kwargs)
    return client, session


def index_action(job_id, **source):
    return BulkAction("index", str(job_id), {"id": job_id, **source})


class TestEncoding:
    """Test NDJSON encoding of bulk actions."""

    def test_index_and_delete_lines(self):
        body = encode_bulk_body("jobs", [
            index_action(1, title="Dev", industry="Software"),
            BulkAction("delete", "2"),
        ])
        lines = body.decode("utf-8").splitlines()

        assert json.loads(lines[0]) == {"index": {"_index": "jobs", "_id": "1"}}
        assert json.loads(lines[1]) == {"id": 1, "industry": "Software", "title": "Dev"}
        assert json.loads(lines[2]) == {"delete": {"_index": "jobs", "_id": "2"}}
        assert len(lines) == 3
        assert body.endswith(b"\n")

    def test_source_keys_are_sorted(self):
        first = encode_bulk_body("jobs", [BulkAction("index", "1", {"b": 1, "a": 2})])
        second = encode_bulk_body("jobs", [BulkAction("index", "1", {"a": 2, "b": 1})])
        assert first == second


class TestBulkItemResult:
    """Test per-item outcome classification."""

    @pytest.mark.parametrize("action,status,error,ok,retryable", [
        ("index", 201, None, True, False),
        ("index", 200, None, True, False),
        ("delete", 404, None, True, False),
        ("index", 404, None, False, False),
        ("index", 400, "mapper_parsing_exception: bad", False, False),
        ("index", 429, "es_rejected_execution_exception: queue full", False, True),
        ("index", 503, "unavailable_shards_exception: shard", False, True),
    ])
    def test_classification(self, action, status, error, ok, retryable):
        result = BulkItemResult("1", action, status, error)
        assert result.ok is ok
        assert result.retryable is retryable


class TestIndexManagement:
    """Test index creation and deletion."""

    def test_ensure_index_creates_missing_index(self):
        client, session = make_client(make_response(404), make_response(200, {"acknowledged": True}))

        assert client.ensure_index("jobs") is True

        head, put = session.request.call_args_list
        assert head.args == ("HEAD", "http://es:9200/jobs")
        assert put.args == ("PUT", "http://es:9200/jobs")
        assert put.kwargs["json"] == {"mappings": JOB_INDEX_MAPPING}

    def test_ensure_index_existing(self):
        client, session = make_client(make_response(200))

        assert client.ensure_index("jobs") is False
        assert session.request.call_count == 1

    def test_ensure_index_lost_creation_race(self):
        already = make_response(
            400,
            {"error": {"type": "resource_already_exists_exception", "reason": "index [jobs] already exists"}},
        )
        client, _ = make_client(make_response(404), already)

        assert client.ensure_index("jobs") is False

    def test_ensure_index_forbidden(self):
        client, _ = make_client(make_response(403, {"error": {"type": "security_exception", "reason": "denied"}}))

        with pytest.raises(SearchIndexError) as exc_info:
            client.ensure_index("jobs")

        assert exc_info.value.status_code == 403
        assert not exc_info.value.retryable
        assert "security_exception" in str(exc_info.value)

    def test_delete_missing_index(self):
        client, _ = make_client(make_response(404))
        assert client.delete_index("jobs") is False


class TestBulk:
    """Test the _bulk round trip."""

    def test_parses_item_outcomes(self):
        payload = {
            "errors": True,
            "items": [
                {"index": {"_id": "1", "status": 201}},
                {"index": {"_id": "2", "status": 400,
                           "error": {"type": "mapper_parsing_exception", "reason": "failed to parse"}}},
                {"delete": {"_id": "3", "status": 404, "result": "not_found"}},
            ],
        }
        client, session = make_client(make_response(200, payload))

        results = client.bulk("jobs", [index_action(1), index_action(2), BulkAction("delete", "3")])

        assert [r.ok for r in results] == [True, False, True]
        assert results[1].error == "mapper_parsing_exception: failed to parse"
        assert results[1].status == 400

        call = session.request.call_args
        assert call.args == ("POST", "http://es:9200/_bulk")
        assert call.kwargs["headers"]["Content-Type"] == "application/x-ndjson"

    def test_empty_batch_sends_nothing(self):
        client, session = make_client()
        assert client.bulk("jobs", []) == []
        session.request.assert_not_called()

    def test_item_count_mismatch(self):
        client, _ = make_client(make_response(200, {"items": []}))

        with pytest.raises(SearchIndexError, match="0 items for 1 actions"):
            client.bulk("jobs", [index_action(1)])

    def test_rejected_request_is_retryable(self):
        client, _ = make_client(make_response(429, text="Too Many Requests"))

        with pytest.raises(SearchIndexError) as exc_info:
            client.bulk("jobs", [index_action(1)])

        assert exc_info.value.status_code == 429
        assert exc_info.value.retryable


class TestTransport:
    """Test retries on network-level failures."""

    def test_retries_then_succeeds(self):
        client, session = make_client(
            requests.exceptions.ConnectionError("refused"),
            make_response(200, {"count": 3}),
        )

        assert client.count("jobs") == 3
        assert session.request.call_count == 2

    def test_exhausted_retries_are_retryable(self):
        client, session = make_client(
            *[requests.exceptions.Timeout("slow")] * 3,
            max_retries=2,
        )

        with pytest.raises(SearchIndexError, match="unreachable") as exc_info:
            client.search("jobs", {"query": {"match_all": {}}})

        assert exc_info.value.retryable
        assert session.request.call_count == 3

    def test_malformed_request_is_not_retried(self):
        client, session = make_client(requests.exceptions.InvalidURL("bad url"))

        with pytest.raises(SearchIndexError) as exc_info:
            client.get_document("jobs", "1")

        assert not exc_info.value.retryable
        assert session.request.call_count == 1

    def test_ping(self):
        client, _ = make_client(make_response(200, {"version": {"number": "8.11.0"}}))
        assert client.ping() is True

        client, _ = make_client(requests.exceptions.ConnectionError("refused"), max_retries=0)
        assert client.ping() is False


class TestDocuments:
    """Test single-document reads and search."""

    def test_get_document(self):
        client, session = make_client(make_response(200, {"_id": "1", "_source": {"id": 1, "title": "Dev"}}))

        assert client.get_document("jobs", "1") == {"id": 1, "title": "Dev"}
        assert session.request.call_args.args == ("GET", "http://es:9200/jobs/_doc/1")

    def test_get_missing_document(self):
        client, _ = make_client(make_response(404, {"found": False}))
        assert client.get_document("jobs", "1") is None

    def test_search_posts_body(self):
        body = {"query": {"match_all": {}}, "size": 5}
        client, session = make_client(make_response(200, {"hits": {"total": {"value": 0}, "hits": []}}))

        assert client.search("jobs", body)["hits"]["hits"] == []
        assert session.request.call_args.kwargs["json"] == body

    def test_search_on_missing_index(self):
        error = {"error": {"type": "index_not_found_exception", "reason": "no such index [jobs]"}}
        client, _ = make_client(make_response(404, error))

        with pytest.raises(SearchIndexError) as exc_info:
            client.search("jobs", {"query": {"match_all": {}}})

        assert exc_info.value.status_code == 404
        assert not exc_info.value.retryable


class TestConstruction:
    """Test client configuration."""

    def test_from_settings(self):
        settings = Settings(es_url="http://search:9200", es_username="elastic", es_password="secret", timeout=3.0)
        client = SearchIndexClient.from_settings(settings)

        assert client.base_url == "http://search:9200"
        assert client.timeout == 3.0
        assert client.session.auth == ("elastic", "secret")

    def test_timeout_is_passed_per_request(self):
        client, session = make_client(make_response(200), timeout=2.5)
        client.refresh("jobs")
        assert session.request.call_args.kwargs["timeout"] == 2.5
