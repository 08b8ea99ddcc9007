"""Tests for the Firestore store client against a mocked transport."""

import asyncio
import json

import httpx
import pytest

from shared.clients.store.StoreClientManager import StoreClientManager
from shared.clients.store.firestore.StoreClientFirestore import StoreClientFirestore
from shared.errors import StoreRequestError
from shared.models.query import QuerySpec, eq
from shared.core.QueryCompiler import QueryCompiler

BASE = "https://firestore.googleapis.com/v1/projects/demo-project/databases/(default)/documents"


def _doc(doc_id: str, fields: dict) -> dict:
    return {
        "name": f"projects/demo-project/databases/(default)/documents/users/{doc_id}",
        "fields": fields,
        "createTime": "2024-01-01T00:00:00.000000Z",
        "updateTime": "2024-01-02T00:00:00.000000Z",
    }


def _run(client: StoreClientFirestore, handler, coro_factory):
    async def scenario():
        await client.boot(transport=httpx.MockTransport(handler))
        try:
            return await coro_factory()
        finally:
            await client.close()
    return asyncio.run(scenario())


@pytest.fixture
def client(firestore_env, helper_config) -> StoreClientFirestore:
    return StoreClientFirestore(helper_config=helper_config)


class TestConfiguration:
    """Environment driven setup."""

    def test_missing_project_id(self, helper_config):
        with pytest.raises(ValueError):
            StoreClientFirestore(helper_config=helper_config)

    def test_manager_builds_configured_engine(self, firestore_env, helper_config):
        manager = StoreClientManager(helper_config=helper_config)
        assert isinstance(manager.get_client(), StoreClientFirestore)
        assert manager.get_client("firestore").get_engine_name() == "firestore"

    def test_manager_rejects_unknown_engine(self, monkeypatch, firestore_env, helper_config):
        monkeypatch.setenv("STORE_ENGINES", "[mongo]")
        with pytest.raises(ValueError):
            StoreClientManager(helper_config=helper_config)


class TestRequests:
    """Request shapes and response parsing."""

    def test_list_follows_page_tokens(self, client):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            if "pageToken" not in request.url.params:
                return httpx.Response(200, json={"documents": [_doc("a", {"n": {"integerValue": "1"}})], "nextPageToken": "t1"})
            return httpx.Response(200, json={"documents": [_doc("b", {"n": {"integerValue": "2"}})]})

        documents = _run(client, handler, lambda: client.do_list("users"))
        assert [doc.id for doc in documents] == ["a", "b"]
        assert documents[1].fields.to_python() == {"n": 2}
        assert seen[0]["key"] == "secret-key"
        assert seen[1]["pageToken"] == "t1"

    def test_sample_stops_at_max_docs(self, client):
        def handler(request: httpx.Request) -> httpx.Response:
            size = int(request.url.params["pageSize"])
            docs = [_doc(str(i), {}) for i in range(size)]
            return httpx.Response(200, json={"documents": docs, "nextPageToken": "more"})

        sample = _run(client, handler, lambda: client.do_sample("users", 3))
        assert [doc_id for doc_id, _ in sample] == ["0", "1", "2"]

    def test_get_missing_document(self, client):
        handler = lambda request: httpx.Response(404, json={"error": {"code": 404}})
        assert _run(client, handler, lambda: client.do_get("users", "nope")) is None

    def test_get_error_raises(self, client):
        handler = lambda request: httpx.Response(403, json={"error": {"code": 403}})
        with pytest.raises(StoreRequestError) as exc_info:
            _run(client, handler, lambda: client.do_get("users", "a"))
        assert exc_info.value.status_code == 403

    def test_create_sends_wire_fields(self, client):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_doc("new-id", captured["body"]["fields"]))

        new_id = _run(client, handler, lambda: client.do_create("users", {"name": "Ada", "age": 36}, document_id="new-id"))
        assert new_id == "new-id"
        assert captured["method"] == "POST"
        assert captured["url"].startswith(f"{BASE}/users?")
        assert "documentId=new-id" in captured["url"]
        assert captured["body"] == {"fields": {"name": {"stringValue": "Ada"}, "age": {"integerValue": "36"}}}

    def test_update_sends_field_mask(self, client):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["masks"] = request.url.params.get_list("updateMask.fieldPaths")
            return httpx.Response(200, json=_doc("a", {}))

        _run(client, handler, lambda: client.do_update("users", "a", {"age": 37, "name": "Ada"}))
        assert captured["method"] == "PATCH"
        assert captured["masks"] == ["age", "name"]

    def test_apply_runs_structured_query(self, client):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=[
                {"document": _doc("a", {"status": {"stringValue": "active"}}), "readTime": "2024-01-01T00:00:00Z"},
                {"readTime": "2024-01-01T00:00:00Z"},
            ])

        query = QueryCompiler().compile(QuerySpec(collection="users", filter=eq("status", "active")))
        results = _run(client, handler, lambda: client.do_apply(query))
        assert captured["path"].endswith("/documents:runQuery")
        assert captured["body"]["structuredQuery"]["from"] == [{"collectionId": "users"}]
        assert [doc.to_python() for doc in results] == [{"status": "active"}]

    def test_bearer_token(self, monkeypatch, firestore_env, helper_config):
        monkeypatch.setenv("STORE_FIRESTORE_ID_TOKEN", "tok")
        client = StoreClientFirestore(helper_config=helper_config)
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"collectionIds": ["users", "posts"]})

        ids = _run(client, handler, lambda: client.do_list_collection_ids())
        assert ids == ["users", "posts"]
        assert captured["auth"] == "Bearer tok"

    def test_request_before_boot(self, client):
        with pytest.raises(RuntimeError):
            asyncio.run(client.do_list("users"))
