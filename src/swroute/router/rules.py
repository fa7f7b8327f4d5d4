"""Request classification: which strategy handles which request.

Classification runs in a fixed order and the first match wins:

1. Non-GET requests pass straight through to the network.
2. Foreign-origin requests are left alone unless one of the
   ``cross_origin_rules`` (images and fonts by default) matches.
3. The ordered :attr:`~swroute.models.RouterConfig.rules` table.
4. The :attr:`~swroute.models.RouterConfig.fallback` rule.

Requests from steps 1 and 2 come back as an un-intercepted
network-only :class:`Route`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import httpx

from swroute.models import RouterConfig, Strategy, StrategyRule


@dataclass(frozen=True)
class Route:
    """Outcome of classifying one request."""

    rule: str
    strategy: Strategy
    max_age: Optional[int] = None
    timeout_ms: Optional[int] = None
    intercepted: bool = True

    @classmethod
    def from_rule(cls, rule: StrategyRule) -> Route:
        return cls(
            rule=rule.name,
            strategy=rule.strategy,
            max_age=rule.max_age,
            timeout_ms=rule.timeout_ms,
        )


PASS_THROUGH = Route(rule="pass-through", strategy=Strategy.NETWORK_ONLY, intercepted=False)
FOREIGN_ORIGIN = Route(rule="foreign-origin", strategy=Strategy.NETWORK_ONLY, intercepted=False)


def same_origin(a: httpx.URL, b: httpx.URL) -> bool:
    return a.scheme == b.scheme and a.host == b.host and a.port == b.port


class RuleTable:
    """Compiled classification table for one :class:`RouterConfig`.

    Args:
        config: Router configuration holding the rules.
        origin: The origin this router serves.

    Example::

        table = RuleTable(RouterConfig(), "https://poetize.cn")
        route = table.classify(httpx.Request("GET", "https://poetize.cn/static/app.js"))
        assert route.rule == "static"
    """

    def __init__(self, config: RouterConfig, origin: str) -> None:
        self._config = config
        self._origin = httpx.URL(origin)
        self._rules = [(rule, _compile(rule)) for rule in config.rules]
        self._cross_origin = [
            (rule, pattern)
            for rule, pattern in self._rules
            if rule.name in config.cross_origin_rules
        ]

    def classify(self, request: httpx.Request) -> Route:
        """Return the :class:`Route` for *request*."""
        if request.method.upper() != "GET":
            return PASS_THROUGH

        url = request.url
        if not same_origin(url, self._origin):
            if not any(_matches(r, p, request) for r, p in self._cross_origin):
                return FOREIGN_ORIGIN

        for rule, pattern in self._rules:
            if _matches(rule, pattern, request):
                return Route.from_rule(rule)
        return Route.from_rule(self._config.fallback)


def _compile(rule: StrategyRule) -> Optional[re.Pattern[str]]:
    return re.compile(rule.pattern) if rule.pattern else None


def _matches(rule: StrategyRule, pattern: Optional[re.Pattern[str]], request: httpx.Request) -> bool:
    if pattern is not None and not pattern.search(request.url.path):
        return False
    if rule.accept is not None and rule.accept not in request.headers.get("accept", ""):
        return False
    return True
