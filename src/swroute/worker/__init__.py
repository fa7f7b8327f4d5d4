"""Lifecycle handling: install, activate, fetch, messages, push and sync.

:class:`ServiceWorker` is the single handler the host dispatches events to;
:class:`WorkerHost` is the interface the host implements for it.
"""

from swroute.worker.handler import ServiceWorker
from swroute.worker.host import ConsoleHost, WindowClient, WorkerHost

__all__ = ["ConsoleHost", "ServiceWorker", "WindowClient", "WorkerHost"]
