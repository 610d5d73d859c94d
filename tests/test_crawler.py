# File: tests/test_crawler.py
# End-to-end crawls against local aiohttp servers
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from aiohttp import web
from conftest import html, serve_app

from linkcheck.config import CheckerConfig
from linkcheck.crawler import pool as pool_module
from linkcheck.crawler.crawler import crawl
from linkcheck.crawler.pool import DEFAULT_WORKERS, LOCALHOST_ONLY_WORKERS, pick_concurrency

#: number of pages linked from the stress server's root
STRESS_PAGES: int = 150


def by_url(links):
    """First link per destination URL (with fragment)."""
    out = {}
    for link in links:
        key = link.destination.url + (f"#{link.fragment}" if link.fragment else "")
        out.setdefault(key, link)
    return out


async def run_crawl(base: str, *, check_external: bool = False, hosts=None, **cfg):
    cfg.setdefault("timeout", 2.0)
    cfg.setdefault("retry_times", 0)
    config = CheckerConfig(seeds=[f"{base}/"], retry_backoff=0, **cfg)
    return await asyncio.wait_for(
        crawl(config.seeds, hosts or config.effective_hosts(), check_external, False, config=config),
        timeout=20,
    )


# --------------------------------------------------------------------------- #
#                            Test-server fixtures                             #
# --------------------------------------------------------------------------- #


@pytest_asyncio.fixture
async def site(unused_tcp_port: int) -> AsyncIterator[str]:
    app = web.Application()

    async def root(_):
        return html(
            '<a href="/page1">P1</a>'
            '<a href="/page1#sec">P1 section</a>'
            '<a href="/page1#nope">P1 bad anchor</a>'
            '<a href="/missing">Missing</a>'
            '<a href="/moved">Moved</a>'
            '<a href="mailto:team@example.com">Mail</a>'
            '<a href="http://external.invalid/">Elsewhere</a>'
        )

    async def page1(_):
        return html('<h2 id="sec">Section</h2><a href="/">Home</a><a href="/page2">P2</a>')

    async def page2(_):
        return html('<a href="/page1#sec">Back</a><img src="/logo.png">')

    async def logo(_):
        return web.Response(body=b"\x89PNG", content_type="image/png")

    async def moved(_):
        raise web.HTTPMovedPermanently("/page2")

    app.router.add_get("/", root)
    app.router.add_get("/page1", page1)
    app.router.add_get("/page2", page2)
    app.router.add_get("/logo.png", logo)
    app.router.add_get("/moved", moved)

    async for url in serve_app(app, unused_tcp_port):
        yield url


@pytest_asyncio.fixture
async def external_site(unused_tcp_port_factory) -> AsyncIterator[str]:
    app = web.Application()

    async def ok(_):
        return html("<p>fine</p>")

    # HEAD is rejected here, so the checker has to fall back to GET
    app.router.add_get("/no-head", ok, allow_head=False)
    app.router.add_get("/ok", ok)

    async for url in serve_app(app, unused_tcp_port_factory()):
        yield url


# --------------------------------------------------------------------------- #
#                                   Tests                                     #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_basic_crawl(site: str):
    links = await run_crawl(site)
    found = by_url(links)

    assert not found[f"{site}/page1"].destination.is_broken
    assert found[f"{site}/page2"].destination.was_tried
    assert found[f"{site}/logo.png"].destination.content_type == "image/png"

    missing = found[f"{site}/missing"].destination
    assert missing.is_broken and missing.status_code == 404

    external = found["http://external.invalid/"].destination
    assert external.is_external and not external.was_tried

    mail = found["mailto:team@example.com"].destination
    assert mail.is_unsupported_scheme and not mail.was_tried

    tried = {l.destination.url for l in links if l.destination.was_tried}
    assert tried == {
        f"{site}/", f"{site}/page1", f"{site}/page2", f"{site}/missing", f"{site}/moved", f"{site}/logo.png",
    }


@pytest.mark.asyncio()
async def test_anchors_and_redirects(site: str):
    found = by_url(await run_crawl(site))

    assert not found[f"{site}/page1#sec"].breaks_anchor
    assert found[f"{site}/page1#nope"].breaks_anchor
    assert found[f"{site}/page1#nope"].has_warning

    moved = found[f"{site}/moved"]
    assert moved.destination.status_code == 200
    assert moved.destination.redirects[0][0] == 301
    assert moved.destination.final_url == f"{site}/page2"
    assert moved.has_warning and not moved.destination.is_broken


@pytest.mark.asyncio()
async def test_links_share_destinations(site: str):
    links = await run_crawl(site)
    to_page1 = [l for l in links if l.destination.url == f"{site}/page1"]

    # three from the root, one from page2 and one more from page2 reached through /moved
    assert len(to_page1) == 5
    assert len({id(l.destination) for l in to_page1}) == 1


@pytest.mark.asyncio()
async def test_host_globs_limit_crawl(site: str):
    links = await run_crawl(site, hosts=[f"{site}/", f"{site}/page1"])
    found = by_url(links)

    assert found[f"{site}/page1"].destination.was_tried
    assert f"{site}/page2" in found
    page2 = found[f"{site}/page2"].destination
    assert page2.is_external and not page2.was_tried


@pytest.mark.asyncio()
async def test_external_links_checked_when_enabled(unused_tcp_port_factory, external_site: str):
    app = web.Application()

    async def root(_):
        return html(
            f'<a href="{external_site}/ok">ok</a>'
            f'<a href="{external_site}/no-head">no head</a>'
            f'<a href="{external_site}/gone">gone</a>'
        )

    app.router.add_get("/", root)

    async for base in serve_app(app, unused_tcp_port_factory()):
        links = await run_crawl(base, check_external=True)

    found = by_url(links)
    assert not found[f"{external_site}/ok"].destination.is_broken
    assert not found[f"{external_site}/no-head"].destination.is_broken
    gone = found[f"{external_site}/gone"].destination
    assert gone.is_external and gone.is_broken and gone.status_code == 404


@pytest.mark.asyncio()
async def test_retry_on_server_error(unused_tcp_port: int):
    app = web.Application()
    call_count = {"n": 0}

    async def flaky(_):
        call_count["n"] += 1
        if call_count["n"] <= 2:
            return web.Response(status=500)
        return html("<h1>Recover</h1>")

    async def root(_):
        return html('<a href="/flaky">Flaky</a>')

    app.router.add_get("/", root)
    app.router.add_get("/flaky", flaky)

    async for base in serve_app(app, unused_tcp_port):
        links = await run_crawl(base, retry_times=3)

    assert links[0].destination.status_code == 200
    assert call_count["n"] == 3


@pytest.mark.asyncio()
async def test_timeout_is_broken_not_fatal(unused_tcp_port: int):
    app = web.Application()

    async def slow(_):
        await asyncio.sleep(2)
        return html("<p>late</p>")

    async def root(_):
        return html('<a href="/slow">Slow</a><a href="/fast">Fast</a>')

    async def fast(_):
        return html("<p>fast</p>")

    app.router.add_get("/", root)
    app.router.add_get("/slow", slow)
    app.router.add_get("/fast", fast)

    async for base in serve_app(app, unused_tcp_port):
        found = by_url(await run_crawl(base, timeout=0.5))

    slow_dest = found[f"{base}/slow"].destination
    assert slow_dest.is_broken and slow_dest.status_code is None
    assert slow_dest.error == "timeout"
    assert not found[f"{base}/fast"].destination.is_broken


@pytest.mark.asyncio()
async def test_connection_refused_is_broken(unused_tcp_port_factory):
    dead_port = unused_tcp_port_factory()
    app = web.Application()

    async def root(_):
        return html(f'<a href="http://localhost:{dead_port}/x">dead</a>')

    app.router.add_get("/", root)

    async for base in serve_app(app, unused_tcp_port_factory()):
        links = await run_crawl(base, check_external=True)

    dead = links[0].destination
    assert dead.is_broken and dead.error is not None


@pytest.mark.asyncio()
async def test_malformed_href_does_not_abort_crawl(unused_tcp_port: int):
    app = web.Application()

    async def root(_):
        return html('<a href="/ok">ok</a><a href="http://[oops/">bad</a><a href="/gone">gone</a>')

    async def ok(_):
        return html("<p>ok</p>")

    app.router.add_get("/", root)
    app.router.add_get("/ok", ok)

    async for base in serve_app(app, unused_tcp_port):
        links = await run_crawl(base)

    assert sorted(l.destination.url for l in links) == [f"{base}/gone", f"{base}/ok"]
    found = by_url(links)
    assert not found[f"{base}/ok"].destination.is_broken
    assert found[f"{base}/gone"].destination.is_broken


@pytest.mark.asyncio()
async def test_worker_crash_aborts_crawl(monkeypatch):
    async def boom(self, request):
        raise RuntimeError("fetcher bug")

    monkeypatch.setattr(pool_module.Fetcher, "fetch", boom)
    config = CheckerConfig(seeds=["http://localhost:1/"])

    with pytest.raises(RuntimeError, match="fetcher bug"):
        await asyncio.wait_for(crawl(config.seeds, ["http://localhost:1/**"], False, False, config=config), 5)


@pytest.mark.asyncio()
@pytest.mark.slow()
async def test_stress_crawl(unused_tcp_port: int):
    app = web.Application()
    body = "".join(f'<a href="/page{i}">Page{i}</a><a href="/page{(i + 1) % STRESS_PAGES}#x">n</a>'
                   for i in range(STRESS_PAGES))

    async def handle_root(_):
        return html(body)

    async def handle_page(request):
        return html(f'<p id="x">{request.path}</p><a href="/">home</a>')

    app.router.add_get("/", handle_root)
    for i in range(STRESS_PAGES):
        app.router.add_get(f"/page{i}", handle_page)

    async for base in serve_app(app, unused_tcp_port):
        links = await run_crawl(base, concurrency=16)

    assert len(links) == 2 * STRESS_PAGES + STRESS_PAGES
    destinations = {id(l.destination): l.destination for l in links}
    assert len(destinations) == STRESS_PAGES + 1
    assert all(d.was_tried and not d.is_broken for d in destinations.values())
    assert not any(l.breaks_anchor for l in links)


def test_pick_concurrency():
    assert pick_concurrency(["http://localhost:8080/"], False) == LOCALHOST_ONLY_WORKERS
    assert pick_concurrency(["http://127.0.0.1/", "http://localhost/"], False) == LOCALHOST_ONLY_WORKERS
    assert pick_concurrency(["http://localhost:8080/"], True) == DEFAULT_WORKERS
    assert pick_concurrency(["http://localhost/", "https://example.com/"], False) == DEFAULT_WORKERS
    assert pick_concurrency(["https://example.com/"], False, override=3) == 3
