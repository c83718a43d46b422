"""
Channex ARI Client

Async wrapper for the two Channex endpoints the planning grid pushes to:
- POST /availability for room type availability ranges
- POST /restrictions for rate plan rate ranges

Authentication is the user-api-key header (NOT Bearer token).
Each push is a single request; failures are reported, never retried here.

Channex API Documentation: https://docs.channex.io/
"""

import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import settings
from .grid_assembler import RowKind

logger = logging.getLogger(__name__)


@dataclass
class ChannexResponse:
    """Wrapper for Channex API responses with structured error info"""
    success: bool
    status_code: int
    data: Optional[Dict] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class ChannexError:
    """Structured error from Channex API"""
    code: str
    message: str
    status_code: int


# Error mapping for Channex responses
ERROR_MAP = {
    401: ChannexError("unauthorized", "Invalid or missing API key", 401),
    403: ChannexError("forbidden", "Access denied to this resource", 403),
    404: ChannexError("not_found", "Resource not found", 404),
    422: ChannexError("validation_error", "Invalid request data", 422),
    429: ChannexError("rate_limited", "Too many requests", 429),
    500: ChannexError("server_error", "Channex server error", 500),
    502: ChannexError("bad_gateway", "Channex gateway error", 502),
    503: ChannexError("service_unavailable", "Channex service unavailable", 503),
}


def format_rate(value: Any) -> str:
    """Channex wants rates as strings with exactly 2 decimal places"""
    return f"{Decimal(str(value or 0)):.2f}"


class ChannexClient:
    """
    Pushes compressed ARI ranges to Channex.

    Usage:
        client = ChannexClient(api_key=...)
        response = await client.push_ranges(property_id, room_type_id, RowKind.AVAILABILITY, ranges)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        request_id: Optional[str] = None
    ):
        self.api_key = api_key if api_key is not None else settings.channex_api_key
        self.base_url = (base_url or settings.channex_base_url).rstrip("/")
        self.timeout = timeout or settings.channex_timeout_seconds
        self.request_id = request_id or "no-request-id"
        self._client = client

    def _get_headers(self, request_id: Optional[str] = None) -> Dict[str, str]:
        """
        Get headers for API requests.

        IMPORTANT: Channex uses "user-api-key" header, NOT Bearer token!
        """
        return {
            "Content-Type": "application/json",
            "user-api-key": self.api_key or "",
            "User-Agent": "PMS-Planning/1.0",
            "X-Request-ID": request_id or self.request_id
        }

    def _client_or_new(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _map_error(self, status_code: int, response_data: Optional[Dict]) -> ChannexError:
        """Map HTTP status code to structured error"""
        if status_code in ERROR_MAP:
            error = ERROR_MAP[status_code]
            # Prefer the more specific message from the response body
            if isinstance(response_data, dict):
                nested = response_data.get("errors") or response_data.get("error") or {}
                msg = None
                if isinstance(nested, dict):
                    msg = nested.get("title") or nested.get("message")
                msg = msg or response_data.get("message")
                if msg:
                    return ChannexError(error.code, msg, status_code)
            return error

        if status_code >= 500:
            return ChannexError("server_error", f"Server error: {status_code}", status_code)

        return ChannexError("unknown", f"Unknown error: {status_code}", status_code)

    async def _post(self, endpoint: str, payload: Dict) -> ChannexResponse:
        url = f"{self.base_url}{endpoint}"
        request_id = str(uuid.uuid4())[:8] if self.request_id == "no-request-id" else self.request_id
        start_time = time.time()

        try:
            response = await self._client_or_new().post(url, headers=self._get_headers(request_id), json=payload)
        except httpx.HTTPError as e:
            logger.error(f"[{request_id}] Channex request to {endpoint} failed: {e}")
            return ChannexResponse(
                success=False,
                status_code=0,
                error=f"Could not reach Channex: {e}",
                error_code="network_error",
                request_id=request_id
            )

        duration_ms = int((time.time() - start_time) * 1000)
        try:
            data = response.json()
        except ValueError:
            data = None

        if 200 <= response.status_code < 300:
            logger.info(f"[{request_id}] POST {endpoint} -> {response.status_code} ({duration_ms}ms)")
            return ChannexResponse(
                success=True,
                status_code=response.status_code,
                data=data,
                request_id=request_id
            )

        error = self._map_error(response.status_code, data)
        logger.warning(
            f"[{request_id}] POST {endpoint} -> {response.status_code} "
            f"{error.code}: {error.message} ({duration_ms}ms)"
        )
        return ChannexResponse(
            success=False,
            status_code=response.status_code,
            data=data,
            error=error.message,
            error_code=error.code,
            request_id=request_id
        )

    # ==================
    # ARI Operations (Availability, Rates)
    # ==================

    def build_values(
        self,
        property_external_id: str,
        owner_external_id: str,
        kind: RowKind,
        ranges: Sequence[Any]
    ) -> List[Dict]:
        """
        One Channex value per compressed range:
            {"property_id", "room_type_id", "date_from", "date_to", "availability": 3}
            {"property_id", "rate_plan_id", "date_from", "date_to", "rate": "120.50"}
        """
        values = []
        for r in ranges:
            entry = {
                "property_id": property_external_id,
                "date_from": r.start_date.isoformat(),
                "date_to": r.end_date.isoformat(),
            }
            if kind == RowKind.AVAILABILITY:
                entry["room_type_id"] = owner_external_id
                entry["availability"] = int(r.value or 0)
            else:
                entry["rate_plan_id"] = owner_external_id
                entry["rate"] = format_rate(r.value)
            values.append(entry)
        return values

    async def push_ranges(
        self,
        property_external_id: str,
        owner_external_id: str,
        kind: RowKind,
        ranges: Sequence[Any]
    ) -> ChannexResponse:
        """Send all ranges of one row in a single request"""
        kind = RowKind(kind)
        endpoint = "/availability" if kind == RowKind.AVAILABILITY else "/restrictions"
        payload = {"values": self.build_values(property_external_id, owner_external_id, kind, ranges)}
        return await self._post(endpoint, payload)
