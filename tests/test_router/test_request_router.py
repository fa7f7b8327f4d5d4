"""End-to-end tests for RequestCacheRouter.intercept against a mock origin."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from swroute.exceptions import NetworkTimeoutError
from swroute.models import RouterConfig, Strategy, StrategyRule
from swroute.output import OutputFormat, OutputManager, set_output
from swroute.router import RequestCacheRouter


class TestIntercept:
    async def test_static_asset_served_from_cache_within_max_age(
        self, router: RequestCacheRouter, backend, network, clock
    ) -> None:
        """Fetched once, then answered from the store an hour later."""
        backend.add("/static/app.js", "bundle-v1")
        request = network.build_request("/static/app.js")

        first = await router.intercept(request)
        await router.drain()
        assert not router.is_from_cache(first)

        clock.advance(hours=1)
        second = await router.intercept(network.build_request("/static/app.js"))

        assert second.text == "bundle-v1"
        assert router.is_from_cache(second)
        assert backend.calls_to("/static/app.js") == 1

    async def test_static_asset_refetched_after_max_age(
        self, router: RequestCacheRouter, backend, network, clock
    ) -> None:
        backend.add("/static/app.js", "bundle-v1")
        await router.intercept(network.build_request("/static/app.js"))
        await router.drain()

        clock.advance(days=7, seconds=1)
        backend.add("/static/app.js", "bundle-v2")
        response = await router.intercept(network.build_request("/static/app.js"))

        assert response.text == "bundle-v2"
        assert backend.calls_to("/static/app.js") == 2

    async def test_entries_go_to_the_versioned_store(
        self, router: RequestCacheRouter, backend, network, storage
    ) -> None:
        backend.add("/poetize.jpg", b"\x89PNG")
        await router.intercept(network.build_request("/poetize.jpg"))
        await router.drain()

        assert await storage.keys() == ["poetize-cache-v1.1.0"]
        store = await router.open_store()
        assert await store.keys() == ["https://poetize.test/poetize.jpg"]

    async def test_non_get_never_touches_the_store(
        self, router: RequestCacheRouter, backend, network, storage
    ) -> None:
        backend.add("/api/article/saveArticle", '{"code": 200}', method="POST")
        request = network.build_request("/api/article/saveArticle", method="POST", json_body={})

        response = await router.intercept(request)
        await router.drain()

        assert response.status_code == 200
        assert router.classify(request).intercepted is False
        assert await storage.keys() == []

    async def test_foreign_script_goes_to_network(
        self, router: RequestCacheRouter, backend, network, storage
    ) -> None:
        request = httpx.Request("GET", "https://cdn.example.com/lib.js")
        response = await router.intercept(request)
        await router.drain()

        assert response.status_code == 404
        assert await storage.keys() == []

    async def test_concurrent_requests_are_independent(
        self, router: RequestCacheRouter, backend, network
    ) -> None:
        for i in range(5):
            backend.add(f"/static/{i}.js", f"file-{i}", delay=0.01 * (5 - i))

        responses = await asyncio.gather(
            *(router.intercept(network.build_request(f"/static/{i}.js")) for i in range(5))
        )
        await router.drain()

        assert [r.text for r in responses] == [f"file-{i}" for i in range(5)]
        store = await router.open_store()
        assert len(await store.keys()) == 5

    async def test_document_uses_html_accept(
        self, router: RequestCacheRouter, backend, network
    ) -> None:
        backend.add("/", "<html>home</html>", headers={"Content-Type": "text/html"})
        request = network.build_request("/", accept="text/html")

        assert router.classify(request).rule == "document"
        response = await router.intercept(request)
        assert response.text == "<html>home</html>"


class TestTimeouts:
    @pytest.fixture
    def router_config(self) -> RouterConfig:
        """Default table with the API timeout scaled down to 50 ms."""
        api = StrategyRule(
            name="api",
            strategy=Strategy.NETWORK_FIRST,
            pattern=r"/api/",
            max_age=300,
            timeout_ms=50,
        )
        defaults = RouterConfig().rules
        return RouterConfig(rules=(api,) + defaults[1:])

    async def test_slow_api_without_cache_fails_then_warms(
        self, router: RequestCacheRouter, backend, network
    ) -> None:
        backend.add("/api/article/listArticle", '{"code": 200}', delay=0.3)
        request = network.build_request("/api/article/listArticle")

        with pytest.raises(NetworkTimeoutError):
            await router.intercept(request)

        await router.drain()
        store = await router.open_store()
        assert await store.match(request) is not None

        backend.add("/api/article/listArticle", '{"code": 201}', delay=0.3)
        response = await router.intercept(network.build_request("/api/article/listArticle"))
        assert response.json() == {"code": 200}
        assert router.is_from_cache(response)

    async def test_drain_reports_and_finishes_the_late_fetch(
        self, router: RequestCacheRouter, backend, network, capfd
    ) -> None:
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True))
        backend.add("/api/article/listArticle", '{"code": 200}', delay=0.3)

        with pytest.raises(NetworkTimeoutError):
            await router.intercept(network.build_request("/api/article/listArticle"))
        assert router.pending_writes == 1

        await router.drain()

        assert router.pending_writes == 0
        assert "Waiting for 1 background cache write(s)" in capfd.readouterr().err

    async def test_fast_api_updates_cache(
        self, router: RequestCacheRouter, backend, network
    ) -> None:
        backend.add("/api/user", '{"id": 1}')
        response = await router.intercept(network.build_request("/api/user"))
        await router.drain()

        assert response.json() == {"id": 1}
        assert not router.is_from_cache(response)


class TestStrictWrites:
    @pytest.fixture
    def router_config(self) -> RouterConfig:
        return RouterConfig(await_cache_writes=True)

    async def test_write_lands_before_response(
        self, router: RequestCacheRouter, backend, network
    ) -> None:
        backend.add("/static/app.css", "body{}")
        request = network.build_request("/static/app.css")

        await router.intercept(request)

        assert router.pending_writes == 0
        store = await router.open_store()
        assert (await store.match(request)).body == b"body{}"


class TestRemember:
    async def test_remember_stores_stamped_copy(
        self, router: RequestCacheRouter, network
    ) -> None:
        request = network.build_request("/article?id=7")
        page = httpx.Response(200, headers={"Content-Type": "text/html"}, text="<p>7</p>", request=request)

        await router.remember(request, page)

        store = await router.open_store()
        entry = await store.match(request)
        assert entry.body == b"<p>7</p>"
        assert entry.header("sw-cached-time") == "2025-01-01T12:00:00.000Z"
        assert entry.header("content-type") == "text/html"

    async def test_custom_version_changes_store_name(self, storage, network, clock) -> None:
        config = RouterConfig(cache_version="v2.0.0")
        router = RequestCacheRouter(config, storage, network, clock=clock)
        store = await router.open_store()
        assert store.name == "poetize-cache-v2.0.0"
