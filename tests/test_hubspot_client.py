"""Tests for HubSpotClient against an httpx.MockTransport.

No network: every request is answered by a handler that records it.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, call, patch

import httpx
import pytest
from tenacity import wait_none

from src.hubsync.config import ConfigurationError
from src.hubsync.crm.field_mapping import CUSTOM_PROPERTIES
from src.hubsync.crm.hubspot import (
    CONTACT_TO_COMPANY_ASSOCIATION_TYPE,
    HubSpotClient,
    HubSpotError,
    HubSpotNotFoundError,
)


class Recorder:
    """Collects requests and answers them through a routing function."""

    def __init__(self, route):
        self.requests: list[httpx.Request] = []
        self._route = route

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._route(request)

    def paths(self, method: str | None = None) -> list[str]:
        return [r.url.path for r in self.requests if method is None or r.method == method]


def _client(recorder: Recorder, rate_limit_delay: float = 0) -> HubSpotClient:
    return HubSpotClient(
        token="test-token",
        base_url="https://api.hubapi.test",
        rate_limit_delay=rate_limit_delay,
        transport=httpx.MockTransport(recorder),
    )


@pytest.fixture
def no_backoff(monkeypatch):
    """Remove the exponential wait between retries."""
    monkeypatch.setattr(HubSpotClient._request.retry, "wait", wait_none())


# ── Construction ─────────────────────────────────────────────────────────────


def test_missing_token_fails_fast():
    with pytest.raises(ConfigurationError):
        HubSpotClient(token="")


async def test_sends_bearer_token():
    recorder = Recorder(lambda r: httpx.Response(200, json={"id": "1", "properties": {}}))
    async with _client(recorder) as client:
        await client.get_by_id("1")

    assert recorder.requests[0].headers["Authorization"] == "Bearer test-token"


# ── Schema bootstrap ─────────────────────────────────────────────────────────


class TestEnsureSchema:
    """ensure_schema verifies access, then creates only missing properties."""

    async def test_creates_missing_properties_on_404(self):
        def route(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/crm/v3/objects/companies":
                return httpx.Response(200, json={"results": []})
            if request.method == "GET" and request.url.path.endswith("/cscart_company_id"):
                return httpx.Response(404, json={"message": "property does not exist"})
            if request.method == "GET":
                return httpx.Response(200, json={"name": request.url.path.rsplit("/", 1)[-1]})
            return httpx.Response(201, json={})

        recorder = Recorder(route)
        async with _client(recorder) as client:
            await client.ensure_schema()

        created = [r for r in recorder.requests if r.method == "POST"]
        assert len(created) == 1
        assert created[0].url.path == "/crm/v3/properties/companies"
        assert json.loads(created[0].content)["name"] == "cscart_company_id"

        total = sum(len(defs) for defs in CUSTOM_PROPERTIES.values())
        assert len(recorder.paths("GET")) == 1 + total

    async def test_access_failure_is_fatal(self):
        recorder = Recorder(lambda r: httpx.Response(401, json={"message": "invalid token"}))
        async with _client(recorder) as client:
            with pytest.raises(HubSpotError) as exc_info:
                await client.ensure_schema()

        assert exc_info.value.status_code == 401
        assert len(recorder.requests) == 1


# ── Search and writes ────────────────────────────────────────────────────────


class TestRequests:
    async def test_search_by_external_id(self):
        recorder = Recorder(
            lambda r: httpx.Response(200, json={"results": [{"id": "77", "properties": {}}]})
        )
        async with _client(recorder) as client:
            found = await client.search("companies", "cscart_company_id", 5)

        assert found["id"] == "77"
        body = json.loads(recorder.requests[0].content)
        assert recorder.requests[0].url.path == "/crm/v3/objects/companies/search"
        assert body["filterGroups"][0]["filters"] == [
            {"propertyName": "cscart_company_id", "operator": "EQ", "value": "5"}
        ]
        assert body["limit"] == 1

    async def test_search_returns_none_when_empty(self):
        recorder = Recorder(lambda r: httpx.Response(200, json={"results": []}))
        async with _client(recorder) as client:
            assert await client.search("contacts", "cscart_user_id", 9) is None

    async def test_search_objects_exposes_paging_cursor(self):
        recorder = Recorder(
            lambda r: httpx.Response(
                200, json={"results": [{"id": "1"}], "paging": {"next": {"after": "100"}}}
            )
        )
        async with _client(recorder) as client:
            page = await client.search_objects("companies", [], ["name"], after="0")

        assert page.after == "100"
        assert json.loads(recorder.requests[0].content)["after"] == "0"

    async def test_upsert_creates_then_updates(self):
        state: dict[str, str] = {}

        def route(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/search"):
                results = [{"id": state["id"], "properties": {}}] if state else []
                return httpx.Response(200, json={"results": results})
            if request.method == "POST":
                state["id"] = "501"
                return httpx.Response(201, json={"id": "501"})
            return httpx.Response(200, json={"id": "501"})

        recorder = Recorder(route)
        props = {"name": "Acme Inc", "cscart_company_id": 5}
        async with _client(recorder) as client:
            first = await client.upsert("companies", props, "cscart_company_id")
            second = await client.upsert("companies", props, "cscart_company_id")

        assert (first.id, first.created) == ("501", True)
        assert (second.id, second.created) == ("501", False)
        assert recorder.paths("POST").count("/crm/v3/objects/companies") == 1
        assert recorder.paths("PATCH") == ["/crm/v3/objects/companies/501"]

    async def test_association_uses_contact_to_company_type(self):
        recorder = Recorder(lambda r: httpx.Response(200, json={}))
        async with _client(recorder) as client:
            assert await client.associate("c1", "co1") is True

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/crm/v4/objects/contacts/c1/associations/companies/co1"
        assert json.loads(request.content) == [
            {"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": CONTACT_TO_COMPANY_ASSOCIATION_TYPE}
        ]

    async def test_archive_sends_delete(self):
        recorder = Recorder(lambda r: httpx.Response(204))
        async with _client(recorder) as client:
            await client.archive("900")

        assert recorder.paths("DELETE") == ["/crm/v3/objects/companies/900"]


# ── Errors and retries ───────────────────────────────────────────────────────


class TestErrors:
    async def test_404_raises_not_found_without_retry(self, no_backoff):
        recorder = Recorder(lambda r: httpx.Response(404, json={"message": "not found"}))
        async with _client(recorder) as client:
            with pytest.raises(HubSpotNotFoundError):
                await client.get_by_id("missing")

        assert len(recorder.requests) == 1

    async def test_validation_error_carries_body(self, no_backoff):
        body = {"message": "Property values were not valid", "category": "VALIDATION_ERROR"}
        recorder = Recorder(lambda r: httpx.Response(400, json=body))
        async with _client(recorder) as client:
            with pytest.raises(HubSpotError) as exc_info:
                await client.create("companies", {"name": "x"})

        assert exc_info.value.status_code == 400
        assert exc_info.value.body == body
        assert len(recorder.requests) == 1

    async def test_rate_limited_request_is_retried(self, no_backoff):
        responses = iter([httpx.Response(429, json={"message": "slow down"}), httpx.Response(200, json={"id": "9"})])
        recorder = Recorder(lambda r: next(responses))
        async with _client(recorder) as client:
            record = await client.get_by_id("9")

        assert record["id"] == "9"
        assert len(recorder.requests) == 2

    async def test_persistent_outage_gives_up_after_three_attempts(self, no_backoff):
        recorder = Recorder(lambda r: httpx.Response(503, text="unavailable"))
        async with _client(recorder) as client:
            with pytest.raises(HubSpotError) as exc_info:
                await client.get_by_id("9")

        assert exc_info.value.status_code == 503
        assert len(recorder.requests) == 3


# ── Rate limiting ────────────────────────────────────────────────────────────


class TestRateLimitDelay:
    """The fixed delay follows every HTTP attempt, successful or not."""

    async def test_delay_after_success(self):
        recorder = Recorder(lambda r: httpx.Response(200, json={"id": "1", "properties": {}}))
        with patch("src.hubsync.crm.hubspot.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(recorder, rate_limit_delay=0.5) as client:
                await client.get_by_id("1")

        assert sleep.await_args_list == [call(0.5)]

    async def test_delay_after_failed_request(self):
        recorder = Recorder(lambda r: httpx.Response(400, json={"message": "bad"}))
        with patch("src.hubsync.crm.hubspot.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(recorder, rate_limit_delay=0.5) as client:
                with pytest.raises(HubSpotError):
                    await client.create("companies", {"name": "x"})

        assert sleep.await_args_list == [call(0.5)]

    async def test_delay_after_each_retried_attempt(self, no_backoff):
        responses = iter([
            httpx.Response(429, json={"message": "slow down"}),
            httpx.Response(429, json={"message": "slow down"}),
            httpx.Response(200, json={"id": "9"}),
        ])
        recorder = Recorder(lambda r: next(responses))
        with patch("src.hubsync.crm.hubspot.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(recorder, rate_limit_delay=0.5) as client:
                await client.get_by_id("9")

        # the retry loop's own zero-length waits go through the same sleep
        delays = [c.args[0] for c in sleep.await_args_list]
        assert delays.count(0.5) == 3
        assert len(recorder.requests) == 3

    async def test_zero_delay_never_sleeps(self):
        recorder = Recorder(lambda r: httpx.Response(200, json={"id": "1", "properties": {}}))
        with patch("src.hubsync.crm.hubspot.asyncio.sleep", new_callable=AsyncMock) as sleep:
            async with _client(recorder) as client:
                await client.get_by_id("1")

        sleep.assert_not_awaited()
