"""
Timed HTTP probes with deadlines and cooperative cancellation.

Every network operation in netgauge goes through ``ProbeClient``.  Each call
races the request against its deadline *and* the run's ``CancelToken``, so
``SpeedTestEngine.abort()`` makes in-flight probes fail fast instead of
hanging.  Usage::

    token = CancelToken()
    async with ProbeClient(token) as probe:
        result = await probe.request("https://example.com", timeout=1.0)
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import aiohttp

from .constants import CHUNK_SIZE, COMMON_HEADERS
from .errors import ProbeCause, ProbeFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

class CancelToken:
    """One-shot cancellation flag shared by every task of a run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class ProbeResult:
    """Outcome of a successful probe."""

    elapsed_ms: float = 0.0
    status: int = 0
    bytes_received: int = 0


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ProbeClient:
    """Async context-manager issuing single timed requests."""

    def __init__(
        self,
        token: Optional[CancelToken] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.token = token or CancelToken()
        self._session = session
        self._owns_session = session is None

    # -- Context manager ----------------------------------------------------

    async def __aenter__(self) -> ProbeClient:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers=COMMON_HEADERS,
                timeout=aiohttp.ClientTimeout(total=None),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError(
                "ProbeClient must be used as an async context manager "
                "(async with ProbeClient(token) as probe: ...)"
            )
        return self._session

    # -- Public methods -----------------------------------------------------

    async def request(
        self,
        url: str,
        method: str = "HEAD",
        data: Optional[bytes] = None,
        timeout: float = 2.0,
    ) -> ProbeResult:
        """Perform one request and return its wall-clock duration."""
        session = self._ensure_session()

        async def _do() -> ProbeResult:
            start = time.perf_counter()
            async with session.request(method, url, data=data) as resp:
                _check_status(resp, url)
                body = await resp.read()
                return ProbeResult(
                    elapsed_ms=(time.perf_counter() - start) * 1000,
                    status=resp.status,
                    bytes_received=len(body),
                )

        return await self._guarded(_do(), url, timeout)

    async def stream(
        self,
        url: str,
        timeout: float,
        on_chunk: Optional[Callable[[int], None]] = None,
    ) -> ProbeResult:
        """GET *url* and read the body chunk by chunk under one deadline."""
        session = self._ensure_session()

        async def _do() -> ProbeResult:
            start = time.perf_counter()
            total = 0
            async with session.get(url) as resp:
                _check_status(resp, url)
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    total += len(chunk)
                    if on_chunk is not None:
                        on_chunk(len(chunk))
                return ProbeResult(
                    elapsed_ms=(time.perf_counter() - start) * 1000,
                    status=resp.status,
                    bytes_received=total,
                )

        return await self._guarded(_do(), url, timeout)

    async def get_json(self, url: str, timeout: float) -> Dict[str, Any]:
        """GET *url* and decode a JSON object body."""
        session = self._ensure_session()

        async def _do() -> Dict[str, Any]:
            async with session.get(url) as resp:
                _check_status(resp, url)
                raw = await resp.read()
            try:
                data = json.loads(raw)
            except ValueError as exc:
                raise ProbeFailure(ProbeCause.DECODE, f"invalid JSON: {exc}", url) from exc
            if not isinstance(data, dict):
                raise ProbeFailure(ProbeCause.DECODE, "expected a JSON object", url)
            return data

        return await self._guarded(_do(), url, timeout)

    # -- Internals ----------------------------------------------------------

    async def _guarded(self, coro: Awaitable[T], url: str, timeout: float) -> T:
        """Run *coro* until it finishes, the deadline passes, or the token fires."""
        if self.token.cancelled:
            _close(coro)
            raise ProbeFailure(ProbeCause.TIMEOUT, "aborted", url)

        task = asyncio.ensure_future(coro)
        cancel_waiter = asyncio.ensure_future(self.token.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if task not in done:
            task.cancel()
            # Let the request unwind so its connection is released.
            await asyncio.gather(task, return_exceptions=True)
            reason = "aborted" if self.token.cancelled else f"no response within {timeout:.1f}s"
            logger.debug("probe timed out: %s (%s)", url, reason)
            raise ProbeFailure(ProbeCause.TIMEOUT, reason, url)

        try:
            return task.result()
        except ProbeFailure as exc:
            logger.debug("probe failed: %s", exc)
            raise
        except asyncio.TimeoutError as exc:
            logger.debug("probe socket timeout: %s", url)
            raise ProbeFailure(ProbeCause.TIMEOUT, "socket timeout", url) from exc
        except aiohttp.ClientPayloadError as exc:
            logger.debug("probe body unreadable: %s (%s)", url, exc)
            raise ProbeFailure(ProbeCause.DECODE, str(exc), url) from exc
        except (aiohttp.ClientError, OSError) as exc:
            logger.debug("probe transport error: %s (%s)", url, exc)
            raise ProbeFailure(ProbeCause.TRANSPORT, str(exc) or type(exc).__name__, url) from exc


def _check_status(resp: aiohttp.ClientResponse, url: str) -> None:
    if resp.status >= 400:
        raise ProbeFailure(
            ProbeCause.HTTP_STATUS,
            f"HTTP {resp.status}",
            url,
            status=resp.status,
        )


def _close(coro: Awaitable[Any]) -> None:
    close = getattr(coro, "close", None)
    if close is not None:
        close()
