import asyncio
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from app.client.errors import (
    DuplicateEntryError,
    HTTPStatusError,
    NetworkError,
    ParseError,
    RequestTimeout,
)
from app.schemas.goals import Goals
from app.schemas.health_data import HealthRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
USER_AGENT = "HealthTrackerClient/2.1"


class RemoteGateway:
    """Thin async wrapper over the health API.

    Each call is bounded by a timeout enforced through cancellation and every
    failure is raised as a classified :class:`GatewayError`. Nothing is
    retried here; the sync engine decides when to try again.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            transport=transport,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout,
        )

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        timeout: float | None = None,
        params: dict | None = None,
    ) -> Any:
        timeout = self.timeout if timeout is None else timeout
        method = method.upper()
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        logger.debug("Calling %s %s", method, endpoint)
        try:
            response = await asyncio.wait_for(
                self._client.request(method, endpoint, json=body, params=params or None, timeout=timeout),
                timeout=timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("%s %s timed out after %ss", method, endpoint, timeout)
            raise RequestTimeout(f"{method} {endpoint} timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, endpoint, exc)
            raise NetworkError(f"{method} {endpoint} failed: {exc}") from exc

        payload = None
        parse_failed = False
        if response.content:
            try:
                payload = response.json()
            except ValueError:
                parse_failed = True

        if response.status_code == 409:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise DuplicateEntryError(message or "Duplicate entry", payload)
        if response.status_code >= 400:
            message = None
            if isinstance(payload, dict):
                message = payload.get("message") or payload.get("error")
            logger.warning("%s %s returned %s", method, endpoint, response.status_code)
            raise HTTPStatusError(response.status_code, message or f"HTTP {response.status_code}", payload)
        if parse_failed:
            raise ParseError(f"{method} {endpoint} returned a non-JSON body")
        return payload

    async def fetch_records(self, user_id: str, limit: int | None = None, days: int | None = None) -> list[HealthRecord]:
        payload = await self.call(f"/health-data/{user_id}", params={"limit": limit, "days": days})
        if not isinstance(payload, list):
            raise ParseError("Expected a list of health records")
        records = []
        for item in payload:
            try:
                record = HealthRecord.model_validate(item)
            except ValidationError:
                logger.warning("Skipping malformed remote record %s", item.get("id") if isinstance(item, dict) else item)
                continue
            record.synced = True
            records.append(record)
        logger.info("Fetched %s remote records for user %s", len(records), user_id)
        return records

    async def push_record(self, record: HealthRecord, force: bool = False) -> dict:
        body = record.to_payload()
        if force:
            body["forceSubmit"] = True
        payload = await self.call("/health-data", method="POST", body=body)
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or data.get("id") is None:
            raise ParseError("Health data response is missing the stored record id")
        return data

    async def fetch_goals(self, user_id: str) -> Goals:
        payload = await self.call(f"/goals/{user_id}")
        try:
            return Goals.model_validate(payload)
        except ValidationError as exc:
            raise ParseError(f"Malformed goals payload: {exc}") from exc

    async def save_goals(self, user_id: str, goals: Goals) -> Goals:
        body = goals.model_dump(by_alias=True, mode="json", exclude={"created_at", "updated_at"})
        body["userId"] = user_id
        payload = await self.call("/goals", method="POST", body=body)
        data = payload.get("data") if isinstance(payload, dict) else None
        try:
            return Goals.model_validate(data)
        except ValidationError as exc:
            raise ParseError(f"Malformed goals payload: {exc}") from exc

    async def fetch_aggregated(self, user_id: str, days: int | None = None) -> list[dict]:
        payload = await self.call(f"/health-data-aggregated/{user_id}", params={"days": days})
        if not isinstance(payload, list):
            raise ParseError("Expected a list of aggregated days")
        return payload

    async def ping(self) -> bool:
        try:
            await self.call("/health", timeout=min(self.timeout, 5.0))
        except (NetworkError, RequestTimeout, HTTPStatusError, ParseError):
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()
