"""Request classification and caching strategies.

:class:`RequestCacheRouter` is the entry point; :class:`RuleTable` and
:class:`Route` expose the classification step on its own.
"""

from swroute.router.router import RequestCacheRouter
from swroute.router.rules import Route, RuleTable

__all__ = ["RequestCacheRouter", "Route", "RuleTable"]
