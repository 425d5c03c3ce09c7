"""HubSpot CRM client -- CRMTarget implementation over the HubSpot REST API.

Key implementation details:
- One httpx.AsyncClient per HubSpotClient, bearer-token auth
- Every request sleeps RATE_LIMIT_DELAY after it completes, success or
  failure, to stay under the private-app request ceiling
- Transient failures (429/502/503/504, connection errors) are retried with
  tenacity exponential backoff; 404 and other client errors are not
- Non-2xx responses become HubSpotError / HubSpotNotFoundError
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from src.hubsync.config import ConfigurationError, Settings
from src.hubsync.core.monitoring import crm_request_duration_seconds, crm_requests_total
from src.hubsync.crm.adapter import CRMTarget, SearchPage
from src.hubsync.crm.field_mapping import CUSTOM_PROPERTIES

logger = structlog.get_logger(__name__)

# HubSpot-defined association type: contact -> company (primary)
CONTACT_TO_COMPANY_ASSOCIATION_TYPE = 280

TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})


class HubSpotError(Exception):
    """Non-2xx response from the HubSpot API."""

    def __init__(self, status_code: int, message: str, body: Any = None) -> None:
        super().__init__(f"{message} (HTTP {status_code})")
        self.status_code = status_code
        self.message = message
        self.body = body


class HubSpotNotFoundError(HubSpotError):
    """HubSpot returned 404."""


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, HubSpotError):
        return exc.status_code in TRANSIENT_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout))


_hubspot_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_transient),
    reraise=True,
)


def _error_from_response(response: httpx.Response) -> HubSpotError:
    try:
        body: Any = response.json()
    except ValueError:
        body = response.text
    message = body.get("message") if isinstance(body, dict) else None
    message = message or response.reason_phrase or "HubSpot request failed"
    if response.status_code == 404:
        return HubSpotNotFoundError(404, message, body)
    return HubSpotError(response.status_code, message, body)


class HubSpotClient(CRMTarget):
    """Async client for the HubSpot CRM v3/v4 APIs.

    Args:
        token: Private app access token.
        base_url: API root (default https://api.hubapi.com).
        timeout: Per-request timeout in seconds.
        rate_limit_delay: Seconds slept after every request.
        transport: Optional httpx transport (tests use httpx.MockTransport).

    Raises:
        ConfigurationError: If token is empty.
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.hubapi.com",
        timeout: float = 30.0,
        rate_limit_delay: float = 0.125,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise ConfigurationError("HUBSPOT_PRIVATE_APP_TOKEN is not set")

        self._rate_limit_delay = rate_limit_delay
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> HubSpotClient:
        return cls(
            token=settings.HUBSPOT_PRIVATE_APP_TOKEN,
            base_url=settings.HUBSPOT_BASE_URL,
            timeout=settings.HUBSPOT_TIMEOUT,
            rate_limit_delay=settings.rate_limit_delay_seconds,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Transport ───────────────────────────────────────────────────────────

    @_hubspot_retry
    async def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request; raise HubSpotError on non-2xx, return decoded JSON."""
        status = "error"
        start_time = time.perf_counter()
        try:
            response = await self._http.request(method, path, json=json, params=params)
            status = str(response.status_code)
        finally:
            crm_requests_total.labels(method=method, status_code=status).inc()
            crm_request_duration_seconds.labels(method=method).observe(
                time.perf_counter() - start_time
            )
            if self._rate_limit_delay > 0:
                await asyncio.sleep(self._rate_limit_delay)

        if response.is_error:
            error = _error_from_response(response)
            if not isinstance(error, HubSpotNotFoundError):
                logger.warning(
                    "hubspot.request_failed",
                    method=method,
                    path=path,
                    status_code=error.status_code,
                    error=error.message,
                )
            raise error

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ── Schema ──────────────────────────────────────────────────────────────

    async def ensure_schema(self) -> None:
        """Verify API access, then create any missing custom properties.

        A lookup that returns 404 triggers creation; any other failure propagates.
        """
        try:
            await self._request("GET", "/crm/v3/objects/companies", params={"limit": 1})
        except HubSpotError as exc:
            logger.error("hubspot.access_check_failed", status_code=exc.status_code, error=exc.message)
            raise

        for object_type, definitions in CUSTOM_PROPERTIES.items():
            for definition in definitions:
                await self._ensure_property(object_type, definition)

        logger.info("hubspot.schema_ready")

    async def _ensure_property(self, object_type: str, definition: dict[str, Any]) -> None:
        name = definition["name"]
        try:
            await self._request("GET", f"/crm/v3/properties/{object_type}/{name}")
            logger.debug("hubspot.property_exists", object_type=object_type, property=name)
            return
        except HubSpotNotFoundError:
            pass

        payload = {
            "name": name,
            "label": definition["label"],
            "type": definition.get("type", "number"),
            "fieldType": definition.get("fieldType", "number"),
            "groupName": definition.get("groupName", "companyinformation"),
            "description": definition.get("description", ""),
            "options": definition.get("options", []),
        }
        await self._request("POST", f"/crm/v3/properties/{object_type}", json=payload)
        logger.info("hubspot.property_created", object_type=object_type, property=name)

    # ── Search ──────────────────────────────────────────────────────────────

    async def search_objects(
        self,
        object_type: str,
        filters: list[dict[str, Any]],
        properties: list[str],
        limit: int = 100,
        after: str | None = None,
    ) -> SearchPage:
        body: dict[str, Any] = {
            "filterGroups": [{"filters": filters}],
            "limit": limit,
            "properties": properties,
        }
        if after:
            body["after"] = after

        data = await self._request("POST", f"/crm/v3/objects/{object_type}/search", json=body) or {}
        next_after = (data.get("paging") or {}).get("next", {}).get("after")
        return SearchPage(results=data.get("results", []), after=next_after)

    async def search(self, object_type: str, property_name: str, value: Any) -> dict[str, Any] | None:
        page = await self.search_objects(
            object_type,
            filters=[{"propertyName": property_name, "operator": "EQ", "value": str(value)}],
            properties=["hs_object_id", property_name],
            limit=1,
        )
        return page.results[0] if page.results else None

    # ── Writes ──────────────────────────────────────────────────────────────

    async def create(self, object_type: str, properties: dict[str, Any]) -> str:
        data = await self._request(
            "POST", f"/crm/v3/objects/{object_type}", json={"properties": properties}
        )
        object_id = str(data["id"])
        logger.info("hubspot.object_created", object_type=object_type, object_id=object_id)
        return object_id

    async def update(self, object_type: str, object_id: str, properties: dict[str, Any]) -> None:
        await self._request(
            "PATCH", f"/crm/v3/objects/{object_type}/{object_id}", json={"properties": properties}
        )
        logger.info("hubspot.object_updated", object_type=object_type, object_id=object_id)

    async def create_association(self, contact_id: str, company_id: str) -> None:
        await self._request(
            "PUT",
            f"/crm/v4/objects/contacts/{contact_id}/associations/companies/{company_id}",
            json=[
                {
                    "associationCategory": "HUBSPOT_DEFINED",
                    "associationTypeId": CONTACT_TO_COMPANY_ASSOCIATION_TYPE,
                }
            ],
        )
        logger.debug("hubspot.contact_associated", contact_id=contact_id, company_id=company_id)

    async def archive(self, object_id: str, object_type: str = "companies") -> None:
        await self._request("DELETE", f"/crm/v3/objects/{object_type}/{object_id}")
        logger.info("hubspot.object_archived", object_type=object_type, object_id=object_id)

    async def get_by_id(
        self, object_id: str, object_type: str = "companies", properties: list[str] | None = None
    ) -> dict[str, Any]:
        params = {"properties": ",".join(properties)} if properties else None
        return await self._request("GET", f"/crm/v3/objects/{object_type}/{object_id}", params=params)
