"""Built-in CLI sub-commands for swroute.

This package groups the Typer command modules that form the CLI's
top-level command tree:

* :mod:`~swroute.commands.fetch` -- route one request through the worker.
* :mod:`~swroute.commands.lifecycle` -- fire ``install``, ``activate``,
  ``push``, ``notificationclick``, ``sync`` and ``message`` events.
* :mod:`~swroute.commands.cache` -- list, inspect and clear cache stores.
* :mod:`~swroute.commands.config` -- view and modify global settings.

Single commands are plain callbacks registered directly on the root app;
multi-command groups (``cache``, ``config``) export a :class:`typer.Typer`
sub-application.
"""
