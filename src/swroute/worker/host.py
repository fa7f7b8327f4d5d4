"""Interfaces to the environment hosting the worker.

The worker never talks to a browser, a window manager or a notification
centre directly.  Everything platform-specific sits behind
:class:`WorkerHost`, which the hosting program implements.  The command line
ships :class:`ConsoleHost`; tests use an in-memory fake.

Every method is async, even where the console implementation completes
immediately, because real hosts answer these calls asynchronously.
"""

from __future__ import annotations

import asyncio
import webbrowser
from abc import ABC, abstractmethod
from typing import Optional

from swroute.models import Notification
from swroute.output import debug, info


class WindowClient(ABC):
    """An open page controlled by the worker."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Absolute URL the window is showing."""
        ...

    @abstractmethod
    async def focus(self) -> None:
        """Bring the window to the front."""
        ...


class WorkerHost(ABC):
    """Platform services the worker depends on.

    Subclasses implement every method.  The worker calls them from its
    lifecycle handlers:

    * ``install`` -> :meth:`skip_waiting`
    * ``activate`` -> :meth:`claim_clients`
    * ``message`` -> :meth:`skip_waiting`, :meth:`update_registration`
    * ``push`` -> :meth:`show_notification`
    * ``notificationclick`` -> :meth:`match_windows`, :meth:`open_window`
    """

    @abstractmethod
    async def skip_waiting(self) -> None:
        """Replace any previously active worker immediately."""
        ...

    @abstractmethod
    async def claim_clients(self) -> None:
        """Take control of all open pages without waiting for a reload."""
        ...

    @abstractmethod
    async def update_registration(self) -> None:
        """Ask the platform to check for a newer worker version."""
        ...

    @abstractmethod
    async def show_notification(self, notification: Notification) -> None:
        """Display *notification* to the user."""
        ...

    @abstractmethod
    async def match_windows(self) -> list[WindowClient]:
        """Return every open window, controlled or not."""
        ...

    @abstractmethod
    async def open_window(self, url: str) -> Optional[WindowClient]:
        """Open a new window at *url*."""
        ...


class BrowserWindow(WindowClient):
    """A URL handed to the system browser.  Focusing re-opens it."""

    def __init__(self, url: str) -> None:
        self._url = url

    @property
    def url(self) -> str:
        return self._url

    async def focus(self) -> None:
        await asyncio.to_thread(webbrowser.open, self._url)


class ConsoleHost(WorkerHost):
    """Host used by the ``swroute`` command line.

    Notifications are printed to stderr and windows are opened in the
    system browser via :mod:`webbrowser`.  The console has no notion of
    controlled pages, so :meth:`match_windows` only returns windows this
    host opened itself.

    Args:
        open_browser: Actually launch the browser in :meth:`open_window`.
    """

    def __init__(self, open_browser: bool = True) -> None:
        self._open_browser = open_browser
        self._windows: list[BrowserWindow] = []
        self.shown: list[Notification] = []

    async def skip_waiting(self) -> None:
        debug("skipWaiting: new worker takes over immediately")

    async def claim_clients(self) -> None:
        debug("clients.claim: worker now controls all open pages")

    async def update_registration(self) -> None:
        debug("registration.update requested")

    async def show_notification(self, notification: Notification) -> None:
        self.shown.append(notification)
        info(f"[notification] {notification.title}: {notification.options.body}")

    async def match_windows(self) -> list[WindowClient]:
        return list(self._windows)

    async def open_window(self, url: str) -> Optional[WindowClient]:
        window = BrowserWindow(url)
        self._windows.append(window)
        if self._open_browser:
            await window.focus()
        else:
            info(f"Open {url}")
        return window
