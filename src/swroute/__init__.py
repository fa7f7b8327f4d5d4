"""swroute -- request cache router with service-worker lifecycle events.

swroute decides, for every outgoing request of a web front end, whether to
answer from a local cache, from the network, or from the network with a
cache fallback after a timeout.  It also implements the worker lifecycle
around that router: pre-caching the app shell on install, deleting stale
cache versions on activate, showing push notifications, and running
background sync.

Typical workflow::

    swroute --origin https://poetize.cn install
    swroute --origin https://poetize.cn activate
    swroute --origin https://poetize.cn fetch /static/app.js

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    cache: Named response stores and the synced collection store.
    client: Async network layer over httpx.
    router: Request classification and caching strategies.
    worker: Lifecycle event handlers and the host interface.
    runtime: Wiring a worker to configuration, storage and network.
"""

__version__ = "1.1.0"
