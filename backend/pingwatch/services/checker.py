"""Checker service - performs a single bounded HTTP probe and classifies it."""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

# Whole-request budget for one probe, connect through response
PROBE_TIMEOUT_MS = 5000
PROBE_TIMEOUT_SECONDS = PROBE_TIMEOUT_MS / 1000

STATUS_UP = "up"
STATUS_DOWN = "down"
STATUS_BLOCKED = "blocked"

BLOCKED_DETAILS = "forbidden - target may be blocking automated checks"

USER_AGENT = "PingWatch/1.0 (+uptime monitor)"


@dataclass(frozen=True)
class HttpOutcome:
    """What came back from the wire: a status code, or why nothing did."""
    status_code: Optional[int] = None
    failure: Optional[str] = None

    @property
    def responded(self) -> bool:
        return self.status_code is not None


@dataclass(frozen=True)
class ProbeResult:
    """Classified result of one probe."""
    status: str  # up, down, blocked
    http_status_code: int  # 0 when no response arrived
    latency_ms: int
    details: Optional[str] = None


def classify(outcome: HttpOutcome) -> tuple[str, int, Optional[str]]:
    """Map an HTTP outcome to (status, http_status_code, details).

    Rules, first match wins:
    - no response (refused, DNS, timeout, bad URL) = down, code 0
    - 403 = blocked
    - 200-399 = up
    - anything else = down
    """
    if not outcome.responded:
        return (STATUS_DOWN, 0, outcome.failure or "Request failed")

    code = outcome.status_code
    if code == 403:
        return (STATUS_BLOCKED, code, BLOCKED_DETAILS)
    if 200 <= code < 400:
        return (STATUS_UP, code, None)
    return (STATUS_DOWN, code, f"received HTTP {code}")


class CheckerService:
    """Service for probing websites over HTTP."""

    def __init__(
        self,
        timeout: float = PROBE_TIMEOUT_SECONDS,
        verify: Optional[bool] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.verify = settings.probe_verify_tls if verify is None else verify
        # Injected in tests; None means a real network transport
        self._transport = transport

    async def probe(self, url: str) -> ProbeResult:
        """Issue one GET against url and classify it. Never raises for network outcomes."""
        start = time.monotonic()
        outcome = await self._fetch(url)
        latency_ms = max(0, int((time.monotonic() - start) * 1000))

        status, code, details = classify(outcome)
        return ProbeResult(
            status=status,
            http_status_code=code,
            latency_ms=latency_ms,
            details=details,
        )

    async def _fetch(self, url: str) -> HttpOutcome:
        """GET url, folding every transport failure into an HttpOutcome.

        Non-2xx responses are ordinary outcomes here, not errors.
        """
        try:
            # wait_for bounds the whole exchange; httpx timeouts are per phase
            return await asyncio.wait_for(self._get_status(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            return HttpOutcome(failure=f"Request timed out after {int(self.timeout * 1000)}ms")
        except httpx.TimeoutException:
            return HttpOutcome(failure=f"Request timed out after {int(self.timeout * 1000)}ms")
        except httpx.ConnectError as e:
            return HttpOutcome(failure=f"Connection error: {e}" if str(e) else "Connection error")
        except httpx.HTTPError as e:
            return HttpOutcome(failure=str(e) or type(e).__name__)
        except httpx.InvalidURL as e:
            return HttpOutcome(failure=f"Invalid URL: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error probing {url}")
            return HttpOutcome(failure=str(e) or type(e).__name__)

    async def _get_status(self, url: str) -> int:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            verify=self.verify,
            transport=self._transport,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
        return response.status_code


# Global instance
checker_service = CheckerService()
