import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from harvester.cancellation import CancelToken
from harvester.config import FetchConfig
from harvester.errors import HarvestCancelled, TransportError
from harvester.fetcher import Fetcher

FAST = dict(delay=0.0, timeout=5, max_retries=3)


def _app(hits):
    async def ok(request):
        hits.append(("ok", request.headers.get("User-Agent")))
        return web.Response(body=b"<html>ok</html>", content_type="text/html")

    async def missing(request):
        hits.append(("missing", None))
        return web.Response(status=404)

    async def throttled(request):
        hits.append(("throttled", None))
        if sum(1 for name, _ in hits if name == "throttled") < 2:
            return web.Response(status=429, headers={"Retry-After": "0"})
        return web.Response(body=b"finally")

    async def always_throttled(request):
        hits.append(("always", None))
        return web.Response(status=429, headers={"Retry-After": "0"})

    async def redirect(request):
        raise web.HTTPFound("/ok")

    app = web.Application()
    app.router.add_get("/ok", ok)
    app.router.add_get("/missing", missing)
    app.router.add_get("/throttled", throttled)
    app.router.add_get("/always", always_throttled)
    app.router.add_get("/redirect", redirect)
    return app


def _run(path, config, repeat=1):
    hits = []

    async def scenario():
        async with test_utils.TestServer(_app(hits)) as server:
            url = str(server.make_url(path))
            async with Fetcher(config) as fetcher:
                results = [await fetcher.fetch(url) for _ in range(repeat)]
            return results

    return asyncio.run(scenario()), hits


def test_fetch_returns_body_and_sends_user_agent():
    (result,), hits = _run("/ok", FetchConfig(user_agent="harvester-test", **FAST))
    assert result.status == 200
    assert result.body == b"<html>ok</html>"
    assert result.content_type.startswith("text/html")
    assert hits == [("ok", "harvester-test")]


def test_redirect_reports_final_url():
    (result,), _ = _run("/redirect", FetchConfig(**FAST))
    assert result.url.endswith("/ok")


def test_non_success_status_raises_transport_error():
    with pytest.raises(TransportError) as excinfo:
        _run("/missing", FetchConfig(**FAST))
    assert excinfo.value.status == 404
    assert excinfo.value.url.endswith("/missing")


def test_429_is_retried():
    (result,), hits = _run("/throttled", FetchConfig(**FAST))
    assert result.body == b"finally"
    assert [name for name, _ in hits] == ["throttled", "throttled"]


def test_429_gives_up_after_max_retries():
    with pytest.raises(TransportError) as excinfo:
        _run("/always", FetchConfig(**dict(FAST, max_retries=2)))
    assert excinfo.value.status == 429


def test_cached_pages_are_not_refetched():
    results, hits = _run("/ok", FetchConfig(cache=True, **FAST), repeat=2)
    assert results[0] is results[1]
    assert len(hits) == 1


def test_cache_can_be_disabled():
    _, hits = _run("/ok", FetchConfig(cache=False, **FAST), repeat=2)
    assert len(hits) == 2


def test_connection_failure_raises_transport_error():
    async def scenario():
        async with Fetcher(FetchConfig(delay=0.0, timeout=2, max_retries=1)) as fetcher:
            await fetcher.fetch("http://127.0.0.1:9/unreachable")

    with pytest.raises(TransportError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.status is None


def test_fetch_outside_context_is_an_error():
    async def scenario():
        await Fetcher(FetchConfig(**FAST)).fetch("http://127.0.0.1/")

    with pytest.raises(RuntimeError):
        asyncio.run(scenario())


def test_cancelled_request_skips_the_politeness_delay():
    async def scenario():
        release = asyncio.Event()

        async def slow(request):
            await release.wait()
            return web.Response(body=b"late")

        app = web.Application()
        app.router.add_get("/slow", slow)
        async with test_utils.TestServer(app) as server:
            async with Fetcher(FetchConfig(delay=5.0, timeout=30, max_retries=1)) as fetcher:
                token = CancelToken()
                loop = asyncio.get_running_loop()
                loop.call_later(0.1, token.cancel)
                start = loop.time()
                with pytest.raises(HarvestCancelled):
                    await token.guard(fetcher.fetch(str(server.make_url("/slow"))))
                elapsed = loop.time() - start
            release.set()
        return elapsed

    assert asyncio.run(scenario()) < 1
