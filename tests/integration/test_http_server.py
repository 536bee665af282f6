"""
Integration tests for the HTTP gateway.

Runs the aiohttp application against the in-memory document store and
checks the full request/response cycle:
- GET query strings and POST JSON bodies
- Status codes, content type and CORS headers
- Body size limit
"""

import json

import pytest
import pytest_asyncio
from aiohttp import test_utils

from ccm.data_server.api import create_http_app
from ccm.data_server.config import ConnectionConfig, HttpConfig
from ccm.data_server.connection import StoreConnection
from ccm.data_server.dispatcher import OperationDispatcher
from ccm.data_server.store import InMemoryDocumentStore

NO_DELAY = ConnectionConfig(connect_attempts=2, retry_delay_ms=0)
MAX_DATA_SIZE = 1024


async def make_client(store):
    connection = StoreConnection(store, NO_DELAY)
    await connection.connect()
    app = create_http_app(
        OperationDispatcher(connection, default_store="default"),
        HttpConfig(max_data_size=MAX_DATA_SIZE),
    )
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    return client


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest_asyncio.fixture
async def client(store):
    client = await make_client(store)
    yield client
    await client.close()


async def assert_forbidden(response):
    assert response.status == 403
    assert await response.read() == b""
    assert response.headers["Access-Control-Allow-Origin"] == "*"


class TestDatasetLifecycle:
    """End-to-end set/get/del scenario."""

    @pytest.mark.asyncio
    async def test_set_get_delete(self, client):
        response = await client.post("/", json={"store": "users", "set": {"key": "u1", "name": "Ann"}})
        assert response.status == 200
        assert await response.text() == "u1"

        response = await client.get("/?store=users&get=u1")
        assert response.status == 200
        dataset = await response.json()
        assert dataset["key"] == "u1"
        assert dataset["name"] == "Ann"
        assert dataset["created_at"] == dataset["updated_at"]

        response = await client.get("/?store=users&del=u1")
        assert response.status == 200
        assert await response.json() is True

        response = await client.get("/?store=users&get=u1")
        assert response.status == 200
        assert await response.json() is None

    @pytest.mark.asyncio
    async def test_set_via_query_string(self, client):
        response = await client.get("/?store=users&set[key]=u2&set[tags][]=a&set[tags][]=b")
        assert await response.text() == "u2"

        response = await client.get("/?store=users&get=u2")
        dataset = await response.json()
        assert dataset["tags"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_composite_key(self, client):
        response = await client.post("/", json={"store": "s", "set": {"key": ["course", "7"]}})
        assert await response.json() == ["course", "7"]

        response = await client.get("/?store=s&get[]=course&get[]=7")
        assert (await response.json())["key"] == ["course", "7"]

    @pytest.mark.asyncio
    async def test_get_by_filter(self, client):
        await client.post("/", json={"store": "users", "set": {"key": "u1", "role": "a"}})
        await client.post("/", json={"store": "users", "set": {"key": "u2", "role": "b"}})

        response = await client.post("/", json={"store": "users", "get": {"role": "a"}})

        datasets = await response.json()
        assert [d["key"] for d in datasets] == ["u1"]

    @pytest.mark.asyncio
    async def test_unset_field(self, client, store):
        await client.post("/", json={"store": "users", "set": {"key": "a", "field": "x"}})
        await client.post("/", json={"store": "users", "set": {"key": "a", "field": ""}})

        assert "field" not in store.get_document("users", "a")

    @pytest.mark.asyncio
    async def test_any_path_is_served(self, client):
        response = await client.get("/some/path?get=missing")
        assert response.status == 200
        assert await response.json() is None


class TestResponseFormat:
    """Headers and encoding of responses."""

    @pytest.mark.asyncio
    async def test_json_content_type(self, client):
        response = await client.get("/?get=u1")
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"

    @pytest.mark.asyncio
    async def test_set_key_is_sent_unquoted(self, client):
        response = await client.post("/", json={"set": {"key": "u1"}})

        assert await response.read() == b"u1"
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"

    @pytest.mark.asyncio
    async def test_composite_set_key_is_json(self, client):
        response = await client.post("/", json={"set": {"key": ["a", "b"]}})

        assert await response.json() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_cors_header(self, client):
        response = await client.get("/?get=u1")
        assert response.headers["Access-Control-Allow-Origin"] == "*"

    @pytest.mark.asyncio
    async def test_preflight(self, client):
        response = await client.options("/", headers={"Origin": "http://example.org"})
        assert response.status == 200
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "POST" in response.headers["Access-Control-Allow-Methods"]

    @pytest.mark.asyncio
    async def test_unicode_round_trip(self, client):
        await client.post("/", json={"set": {"key": "k", "city": "Köln"}})

        response = await client.get("/?get=k")

        assert (await response.json())["city"] == "Köln"


class TestRejectedRequests:
    """Requests answered with 403 or 413."""

    @pytest.mark.asyncio
    async def test_no_operation(self, client):
        await assert_forbidden(await client.get("/"))
        await assert_forbidden(await client.get("/?store=users"))

    @pytest.mark.asyncio
    async def test_two_operations(self, client):
        await assert_forbidden(await client.post("/", json={"get": "u1", "set": {"key": "u1"}}))

    @pytest.mark.asyncio
    async def test_invalid_key(self, client):
        response = await client.post("/", json={"set": {"key": "bad key!"}})
        await assert_forbidden(response)

    @pytest.mark.asyncio
    async def test_invalid_key_in_query_string(self, client):
        await assert_forbidden(await client.get("/?get=bad%20key!"))

    @pytest.mark.asyncio
    async def test_malformed_json(self, client):
        response = await client.post("/", data=b"{not json")
        await assert_forbidden(response)

    @pytest.mark.asyncio
    async def test_json_array_body(self, client):
        await assert_forbidden(await client.post("/", data=json.dumps(["get", "u1"])))

    @pytest.mark.asyncio
    async def test_malformed_query_string(self, client):
        await assert_forbidden(await client.get("/?get[]=a&get[name]=b"))

    @pytest.mark.asyncio
    async def test_huge_array_index(self, client):
        await assert_forbidden(await client.get("/?get[999999999]=x"))

    @pytest.mark.asyncio
    async def test_body_too_large(self, client, store):
        body = json.dumps({"set": {"key": "big", "data": "x" * MAX_DATA_SIZE}})

        response = await client.post("/", data=body)

        assert response.status == 413
        assert store.get_documents("default") == []

    @pytest.mark.asyncio
    async def test_body_at_limit_is_accepted(self, client):
        prefix = '{"get": "u1", "pad": "'
        body = prefix + "x" * (MAX_DATA_SIZE - len(prefix) - 2) + '"}'
        assert len(body) == MAX_DATA_SIZE

        response = await client.post("/", data=body)

        assert response.status == 200

    @pytest.mark.asyncio
    async def test_store_failure(self, client, store):
        store.inject_failure()
        await assert_forbidden(await client.get("/?get=u1"))

    @pytest.mark.asyncio
    async def test_store_unavailable(self):
        client = await make_client(InMemoryDocumentStore(connect_failures=5))
        try:
            await assert_forbidden(await client.get("/?get=u1"))
            await assert_forbidden(await client.post("/", json={"set": {"key": "u1"}}))
            await assert_forbidden(await client.get("/?del=u1"))
        finally:
            await client.close()
