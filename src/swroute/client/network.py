"""Asynchronous network layer used by every routing strategy.

:class:`Network` wraps :class:`httpx.AsyncClient` and plays the part of the
platform fetch: it sends a prepared :class:`httpx.Request`, reads the whole
body, and hands back the :class:`httpx.Response`.  HTTP error statuses are
returned untouched -- strategies decide what a non-200 means -- while
transport failures are mapped to
:class:`~swroute.exceptions.OriginUnreachableError`.  There is no retry; each
strategy owns its single fallback path.

Requests made with ``credentials=True`` carry a ``Cookie`` header resolved
from :attr:`~swroute.models.RequestConfig.cookie_source`, which stands in for
the browser's ambient credentials.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from swroute.config import resolve_credential
from swroute.exceptions import OriginUnreachableError
from swroute.models import RequestConfig
from swroute.output import debug


class Network:
    """Async fetch transport bound to one origin.

    Must be used as an async context manager so the underlying connection
    pool is opened and closed.

    Args:
        origin: ``scheme://host[:port]`` that relative paths resolve against
            and that defines "same origin" for the router.
        config: Transport settings (timeout, SSL verification, cookie source).
        transport: Optional custom httpx transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with Network("https://poetize.cn") as network:
            response = await network.fetch(network.build_request("/index.html"))
    """

    def __init__(
        self,
        origin: str,
        config: Optional[RequestConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._origin = httpx.URL(origin.rstrip("/") + "/")
        self._config = config or RequestConfig()
        self._transport = transport
        self._cookie: Optional[str] = None
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Network:
        kwargs: dict[str, Any] = {
            "timeout": self._config.timeout,
            "verify": self._config.verify_ssl,
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        self._client = httpx.AsyncClient(**kwargs)
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def origin(self) -> str:
        return str(self._origin).rstrip("/")

    def resolve(self, url: str) -> httpx.URL:
        """Resolve *url* (absolute or origin-relative) to an absolute URL."""
        return self._origin.join(url)

    def build_request(
        self,
        url: str,
        method: str = "GET",
        accept: Optional[str] = None,
        json_body: Optional[Any] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Request:
        """Build a request for *url* resolved against the origin.

        Args:
            url: Path or absolute URL.
            method: HTTP method.
            accept: Optional ``Accept`` header value.
            json_body: Optional JSON-serialisable body.
            headers: Extra request headers.
        """
        merged: dict[str, str] = dict(headers or {})
        if accept:
            merged["Accept"] = accept
        return httpx.Request(
            method.upper(),
            self.resolve(url),
            headers=merged,
            json=json_body,
            extensions={"timeout": httpx.Timeout(self._config.timeout).as_dict()},
        )

    async def fetch(self, request: httpx.Request, credentials: bool = False) -> httpx.Response:
        """Send *request* and return the fully-read response.

        Args:
            request: The request to send.
            credentials: Attach the configured cookie.

        Raises:
            OriginUnreachableError: On connection, timeout, or other network errors.
            ConfigError: If ``credentials`` is set and the cookie source
                cannot be resolved.
        """
        assert self._client is not None, "Network not initialised -- use as async context manager"

        if credentials:
            self._inject_cookie(request)

        debug(f"{request.method} {request.url}")
        try:
            return await self._client.send(request)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
            raise OriginUnreachableError(f"Request to {request.url} failed: {exc}") from exc

    async def request(
        self,
        method: str,
        url: str,
        json_body: Optional[Any] = None,
        credentials: bool = False,
    ) -> httpx.Response:
        """Build and send a request in one step.  See :meth:`fetch`."""
        req = self.build_request(url, method=method, json_body=json_body)
        return await self.fetch(req, credentials=credentials)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _inject_cookie(self, request: httpx.Request) -> None:
        source = self._config.cookie_source
        if not source:
            return
        if self._cookie is None:
            self._cookie = resolve_credential(source)
        existing = request.headers.get("Cookie")
        request.headers["Cookie"] = f"{existing}; {self._cookie}" if existing else self._cookie
