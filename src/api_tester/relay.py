"""Relay client — forwards requests through the backend wrapper server.

The relay receives ``{url, method, headers, body}`` on ``POST /api/wrapper``
and answers ``{success: true, status, statusText, headers, data}`` or
``{success: false, error, message}``. ``GET /health`` reports liveness.
"""

import logging
import time
from typing import Any

import requests

from api_tester.errors import RelayError
from api_tester.models import CapturedResponse, WireModel

logger = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "http://localhost:3001"
DEFAULT_TIMEOUT = 60


class RelayRequest(WireModel):
    url: str
    method: str
    headers: dict[str, str] = {}
    body: Any = None


class RelayClient:
    """Thin ``requests`` client for the relay forwarding contract."""

    def __init__(
        self,
        base_url: str = DEFAULT_RELAY_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def wrapper_url(self) -> str:
        return f"{self.base_url}/api/wrapper"

    def forward(self, request: RelayRequest) -> CapturedResponse:
        """Send one request through the relay and return the target's response.

        Raises :class:`RelayError` when the relay is unreachable, answers with
        something other than JSON, or reports a failure. No retry.
        """
        payload = request.model_dump(exclude_none=True)
        logger.info("Relaying %s %s", request.method, request.url)
        start = time.perf_counter()
        try:
            resp = self.session.post(self.wrapper_url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise RelayError(f"Relay at {self.base_url} is unreachable: {e}") from e
        elapsed = (time.perf_counter() - start) * 1000

        try:
            reply = resp.json()
        except ValueError as e:
            raise RelayError(
                f"Relay returned a non-JSON reply ({resp.status_code} {resp.reason})", status=resp.status_code
            ) from e

        if not isinstance(reply, dict) or reply.get("success") is not True:
            detail = reply if not isinstance(reply, dict) else reply.get("message") or reply.get("error")
            raise RelayError(str(detail or f"Relay request failed with {resp.status_code}"), status=resp.status_code)

        response = CapturedResponse(
            status=reply.get("status", resp.status_code),
            status_text=reply.get("statusText") or "",
            data=reply.get("data"),
            headers=reply.get("headers") or {},
            response_time=round(elapsed, 2),
        )
        logger.debug("Relay answered %s %s in %.0fms", response.status, response.status_text, elapsed)
        return response

    def health(self) -> dict[str, Any]:
        """Return the relay's health payload; raises :class:`RelayError` when it is down."""
        try:
            resp = self.session.get(f"{self.base_url}/health", timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise RelayError(f"Relay health check failed: {e}") from e
        except ValueError as e:
            raise RelayError("Relay health check returned a non-JSON reply") from e

    def is_alive(self) -> bool:
        try:
            self.health()
        except RelayError as e:
            logger.debug("Relay is not alive: %s", e)
            return False
        return True
