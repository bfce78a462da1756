"""HTTP transport for JSON services with timeout and charset handling."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from fleetsync._constants import USER_AGENT
from fleetsync._redact import redact_for_log
from fleetsync.exceptions import TransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the API modules.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (:class:`JsonTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Any = None,
        headers: Mapping[str, str] | None = None,
        encoding: str | None = None,
    ) -> Any:
        ...


class JsonTransport:
    """aiohttp-backed JSON transport.

    Every call is bounded by ``timeout`` seconds. Timeouts, connection
    failures, non-2xx answers and undecodable bodies are raised as
    :class:`TransportError`; callers decide whether that is transient.
    """

    def __init__(self, http_session: aiohttp.ClientSession, *, timeout: float) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Any = None,
        headers: Mapping[str, str] | None = None,
        encoding: str | None = None,
    ) -> Any:
        """Send a request with an optional JSON body and decode the JSON reply.

        Parameters
        ----------
        encoding
            Charset used to decode the body. ``None`` lets aiohttp use the
            response's declared charset.
        """
        request_headers: dict[str, str] = {
            "accept": "application/json",
            "user-agent": USER_AGENT,
        }
        if headers:
            request_headers.update(headers)

        _logger.debug("%s %s payload=%s", method, url, redact_for_log(payload))

        try:
            async with self._http.request(
                method,
                url,
                json=payload,
                headers=request_headers,
                timeout=self._timeout,
            ) as resp:
                body = await resp.read()
                status = resp.status
                charset = encoding or resp.charset or "utf-8"
        except asyncio.TimeoutError as exc:
            raise TransportError(f"Timeout calling {url}", url=url, timeout=True) from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"Request to {url} failed: {exc}", url=url) from exc

        text = body.decode(charset, errors="replace")
        if not 200 <= status < 300:
            raise TransportError(
                f"HTTP {status} from {url}: {text[:200]}",
                status_code=status,
                url=url,
            )

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise TransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                status_code=status,
                url=url,
            ) from exc
