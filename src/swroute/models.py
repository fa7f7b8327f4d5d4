"""Canonical Pydantic models shared across all swroute modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`StrategyRule`, :class:`RouterConfig`, :class:`RequestConfig`,
    :class:`NotificationDefaults`, :class:`SyncConfig`, and
    :class:`GlobalConfig`.

**Runtime models** -- produced and consumed while handling events:
    :class:`CachedResponse`, :class:`NotificationAction`,
    :class:`NotificationOptions`, :class:`Notification`,
    :class:`WorkerMessage`, and :class:`SyncResult`.

:class:`RouterConfig` and :class:`StrategyRule` are frozen: the router
receives one immutable value at construction instead of reading a
process-wide table.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

_DAY = 24 * 60 * 60


# --- Routing ---


class Strategy(str, enum.Enum):
    """Caching strategies a request can be routed to."""

    CACHE_FIRST = "cache_first"
    NETWORK_FIRST = "network_first"
    NETWORK_ONLY = "network_only"


class StrategyRule(BaseModel):
    """One entry of the ordered classification table.

    A rule matches when every filter it declares matches: ``pattern`` is
    searched in the request's URL path and ``accept`` is looked for as a
    substring of the ``Accept`` header.  A rule without filters matches
    everything.

    Example::

        StrategyRule(
            name="image",
            strategy=Strategy.CACHE_FIRST,
            pattern=r"\\.(png|jpg)$",
            max_age=30 * 24 * 60 * 60,
        )
    """

    model_config = ConfigDict(frozen=True)

    name: str
    strategy: Strategy
    pattern: Optional[str] = Field(
        default=None, description="Regex searched in the URL path"
    )
    accept: Optional[str] = Field(
        default=None, description="Substring required in the Accept header"
    )
    max_age: Optional[int] = Field(
        default=None, description="Seconds before a cached entry is stale"
    )
    timeout_ms: Optional[int] = Field(
        default=None, description="Network-first wait before falling back to cache"
    )


def _default_rules() -> tuple[StrategyRule, ...]:
    return (
        StrategyRule(
            name="api",
            strategy=Strategy.NETWORK_FIRST,
            pattern=r"/api/",
            max_age=5 * 60,
            timeout_ms=3000,
        ),
        StrategyRule(
            name="image",
            strategy=Strategy.CACHE_FIRST,
            pattern=r"\.(png|jpg|jpeg|gif|svg|webp|ico)$",
            max_age=30 * _DAY,
        ),
        StrategyRule(
            name="font",
            strategy=Strategy.CACHE_FIRST,
            pattern=r"\.(woff2?|ttf|eot)$",
            max_age=365 * _DAY,
        ),
        StrategyRule(
            name="static",
            strategy=Strategy.CACHE_FIRST,
            pattern=r"\.(js|css|png|jpg|jpeg|gif|svg|woff2?|ttf|eot)$",
            max_age=7 * _DAY,
        ),
        StrategyRule(
            name="document",
            strategy=Strategy.NETWORK_FIRST,
            accept="text/html",
            timeout_ms=2000,
        ),
    )


class RouterConfig(BaseModel):
    """Immutable routing and cache-naming configuration.

    The effective store name is ``<cache_prefix>-<cache_version>``.  Bumping
    ``cache_version`` is the only way to invalidate every cached entry at
    once: the next ``activate`` deletes all stores that share the prefix but
    not the version.
    """

    model_config = ConfigDict(frozen=True)

    cache_prefix: str = "poetize-cache"
    cache_version: str = "v1.1.0"
    precache_urls: tuple[str, ...] = (
        "/",
        "/index.html",
        "/poetize.jpg",
        "/manifest.json",
        "/offline.html",
    )
    rules: tuple[StrategyRule, ...] = Field(default_factory=_default_rules)
    cross_origin_rules: tuple[str, ...] = Field(
        default=("image", "font"),
        description="Rule names that may intercept foreign-origin requests",
    )
    fallback: StrategyRule = StrategyRule(
        name="default", strategy=Strategy.NETWORK_FIRST
    )
    cached_time_header: str = "sw-cached-time"
    await_cache_writes: bool = Field(
        default=False,
        description="Finish cache writes before returning network responses",
    )

    @property
    def cache_name(self) -> str:
        """Name of the store owned by this version."""
        return f"{self.cache_prefix}-{self.cache_version}"

    def owns(self, store_name: str) -> bool:
        """Return True if *store_name* was created by any version of this router."""
        return store_name.startswith(f"{self.cache_prefix}-")


# --- Transport ---


class RequestConfig(BaseModel):
    """HTTP transport settings for every outbound request."""

    timeout: Optional[float] = Field(
        default=None, description="Transport timeout in seconds (null = unbounded)"
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    cookie_source: Optional[str] = Field(
        default=None,
        description="Credential source for the Cookie header: env:VAR, file:/path, prompt",
    )


# --- Notifications ---


class NotificationAction(BaseModel):
    """A button shown on a notification."""

    action: str
    title: str
    icon: Optional[str] = None


class NotificationDefaults(BaseModel):
    """Fallback values for fields a push payload leaves out."""

    title: str = "POETIZE"
    body: str = "您有新的消息"
    icon: str = "/poetize.jpg"
    badge: str = "/poetize.jpg"
    tag: str = "poetize-notification"
    actions: list[NotificationAction] = Field(
        default_factory=lambda: [
            NotificationAction(action="view", title="查看"),
            NotificationAction(action="close", title="关闭"),
        ]
    )
    vibrate: list[int] = Field(default_factory=lambda: [200, 100, 200])
    text_title: str = Field(
        default="新消息", description="Title used when the payload is not JSON"
    )
    dismiss_actions: list[str] = Field(
        default_factory=lambda: ["close", "dismiss"],
        description="Clicked actions that only close the notification",
    )


class NotificationOptions(BaseModel):
    """Display options handed to the host together with a title."""

    body: str
    icon: str
    badge: str
    tag: str
    data: dict[str, Any] = Field(default_factory=dict)
    require_interaction: bool = False
    actions: list[NotificationAction] = Field(default_factory=list)
    vibrate: list[int] = Field(default_factory=list)
    timestamp: int = Field(description="Milliseconds since the epoch")


class Notification(BaseModel):
    """A notification as shown by the host and returned on click/close events."""

    title: str
    options: NotificationOptions

    @property
    def data(self) -> dict[str, Any]:
        return self.options.data


# --- Background sync ---


def _default_article_query() -> dict[str, Any]:
    return {
        "current": 1,
        "size": 20,
        "searchKey": "",
        "articleSearch": "",
        "recommendStatus": None,
        "sortId": None,
        "labelId": None,
    }


class SyncConfig(BaseModel):
    """Endpoints and payloads used by the ``sync-articles`` background sync."""

    tag: str = "sync-articles"
    articles_path: str = "/api/article/listArticle"
    articles_query: dict[str, Any] = Field(default_factory=_default_article_query)
    collections_path: str = "/api/article/getUserCollections?current=1&size=100"
    article_page: str = Field(
        default="/article?id={id}", description="Detail page template, {id} is substituted"
    )


class SyncResult(BaseModel):
    """Outcome of one background sync run.  Failures are collected, never raised."""

    tag: str
    articles_listed: int = 0
    articles_cached: int = 0
    collections_saved: int = 0
    errors: list[str] = Field(default_factory=list)


# --- Messages ---


class MessageType(str, enum.Enum):
    """Message types understood by the worker."""

    SKIP_WAITING = "SKIP_WAITING"
    CLEAR_CACHE = "CLEAR_CACHE"
    CHECK_UPDATE = "CHECK_UPDATE"


class WorkerMessage(BaseModel):
    """A message posted to the worker.  Unknown types are accepted and ignored."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None


# --- Cache entries ---


class CachedResponse(BaseModel):
    """Serialised response snapshot stored in a :class:`~swroute.cache.CacheStore`.

    ``headers`` keeps the raw ordered pairs so repeated headers survive a
    round trip.  The timestamp header injected at write time lives among
    them.
    """

    url: str
    method: str = "GET"
    status_code: int
    reason: str = ""
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""

    def header(self, name: str) -> Optional[str]:
        """Return the first value of header *name* (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


# --- Global config ---


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/swroute/config.json``.

    Loaded and saved by :func:`~swroute.config.load_global_config` and
    :func:`~swroute.config.save_global_config`.  See
    :func:`~swroute.config.resolve_config` for the precedence chain.
    """

    origin: str = Field(
        default="http://localhost:8080",
        description="Origin the router serves (scheme://host[:port])",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    notifications: NotificationDefaults = Field(default_factory=NotificationDefaults)
    sync: SyncConfig = Field(default_factory=SyncConfig)
