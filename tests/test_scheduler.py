"""End-to-end crawls against a local aiohttp server."""

import asyncio
import socket
from collections import Counter

from aiohttp import web
from aiohttp.test_utils import TestServer

from bytecrawl.crawler.scheduler import CrawlerScheduler, WorkerState
from bytecrawl.utils.config import Config, CrawlerConfig


ROOT_PAGE = """<html><body>
<a href="/a">a</a>
<a href="/a#frag1">a again</a>
<a href="/a#frag2">a once more</a>
<a href="/b">b</a>
<a href="http://notgoogle.com/x">elsewhere</a>
<a href="mailto:someone@example.com">mail</a>
<a href="/image.png">image</a>
<a href="/missing">missing</a>
</body></html>"""


def make_app(hits: Counter) -> web.Application:
    async def root(request):
        return web.Response(text=ROOT_PAGE, content_type="text/html")

    async def page_a(request):
        return web.Response(text='<a href="/">home</a><a href="/b">b</a>',
                            content_type="text/html")

    async def page_b(request):
        return web.Response(text='<a href="/c?x=1">c</a>', content_type="text/html")

    async def page_c(request):
        return web.Response(text='<a href="/never">not html</a>', content_type="text/plain")

    async def image(request):
        return web.Response(body=b"\x89PNG\r\n\x1a\n", content_type="image/png")

    async def moved(request):
        raise web.HTTPFound("/dir/page")

    async def dir_page(request):
        return web.Response(text='<a href="rel">relative</a>', content_type="text/html")

    async def dir_rel(request):
        return web.Response(text="<p>leaf</p>", content_type="text/html")

    async def missing(request):
        return web.Response(status=404, text='<a href="/never">gone</a>',
                            content_type="text/html")

    @web.middleware
    async def count_hits(request, handler):
        hits[request.path_qs] += 1
        return await handler(request)

    app = web.Application(middlewares=[count_hits])
    app.router.add_get("/", root)
    app.router.add_get("/a", page_a)
    app.router.add_get("/b", page_b)
    app.router.add_get("/c", page_c)
    app.router.add_get("/image.png", image)
    app.router.add_get("/missing", missing)
    app.router.add_get("/moved", moved)
    app.router.add_get("/dir/page", dir_page)
    app.router.add_get("/dir/rel", dir_rel)
    return app


def make_config(seed: str, **crawler) -> Config:
    crawler.setdefault('worker_count', 3)
    return Config(crawler=CrawlerConfig(seed_urls=[seed], **crawler))


async def crawl(config: Config, max_pages=None):
    scheduler = CrawlerScheduler(config)
    await scheduler.initialize()
    try:
        stats = await scheduler.start_crawling(max_pages)
    finally:
        await scheduler.close()
    return scheduler, stats


def unused_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestCrawl:

    def run_against_site(self, max_pages=None, seed_path="/", **crawler):
        hits = Counter()

        async def scenario():
            server = TestServer(make_app(hits), host="127.0.0.1")
            await server.start_server()
            try:
                config = make_config(str(server.make_url(seed_path)), **crawler)
                return await crawl(config, max_pages)
            finally:
                await server.close()

        scheduler, stats = asyncio.run(scenario())
        return scheduler, stats, hits

    def test_crawls_every_reachable_page_once(self):
        scheduler, stats, hits = self.run_against_site()

        assert hits == Counter({
            "/": 1, "/a": 1, "/b": 1, "/c?x=1": 1, "/image.png": 1, "/missing": 1
        })
        assert stats.urls_fetched == 6
        assert stats.html_pages == 3
        assert stats.non_html_skipped == 3
        assert stats.transport_errors == 0
        assert stats.errors == 0

    def test_traffic_is_counted(self):
        scheduler, stats, hits = self.run_against_site()

        assert scheduler.byte_counter.bytes_written() > 0
        assert scheduler.byte_counter.bytes_read() > 0
        assert scheduler.get_stats()['bytes_read'] == scheduler.byte_counter.bytes_read()

    def test_workers_stop_when_frontier_drains(self):
        scheduler, stats, hits = self.run_against_site(worker_count=4)

        assert scheduler.worker_states
        assert set(scheduler.worker_states.values()) == {WorkerState.STOPPED}
        assert not scheduler.is_running
        assert scheduler.url_frontier.is_empty()

    def test_host_fetch_limit(self):
        scheduler, stats, hits = self.run_against_site(worker_count=1, host_fetch_limit=2)

        assert stats.urls_fetched == 2
        assert sum(hits.values()) == 2
        assert stats.throttled >= 1
        assert scheduler.host_throttle.count("127.0.0.1") > 2

    def test_max_pages(self):
        scheduler, stats, hits = self.run_against_site(max_pages=1, worker_count=1)

        assert stats.urls_fetched == 1
        assert hits == Counter({"/": 1})
        assert stats.policy_skipped >= 1

    def test_max_pages_holds_with_concurrent_workers(self):
        scheduler, stats, hits = self.run_against_site(max_pages=2, worker_count=3)

        assert stats.urls_fetched == 2
        assert stats.fetches_started == 2
        assert sum(hits.values()) == 2
        assert stats.policy_skipped >= 1

    def test_links_resolve_against_redirect_target(self):
        scheduler, stats, hits = self.run_against_site(seed_path="/moved")

        assert hits == Counter({"/moved": 1, "/dir/page": 1, "/dir/rel": 1})
        assert "/rel" not in hits
        assert stats.urls_fetched == 2
        assert stats.html_pages == 2


class TestTransportErrors:

    def test_refused_connection_ends_the_crawl(self):
        config = make_config(f"http://127.0.0.1:{unused_port()}/", worker_count=2)

        scheduler, stats = asyncio.run(crawl(config))

        assert stats.urls_fetched == 1
        assert stats.transport_errors == 1
        assert stats.html_pages == 0
        assert set(scheduler.worker_states.values()) == {WorkerState.STOPPED}


class TestStop:

    def test_stop_crawling_ends_a_hung_crawl(self):
        async def scenario():
            hang = asyncio.Event()

            async def slow(request):
                await hang.wait()
                return web.Response(text="late", content_type="text/html")

            app = web.Application()
            app.router.add_get("/", slow)
            server = TestServer(app, host="127.0.0.1")
            await server.start_server()
            try:
                scheduler = CrawlerScheduler(make_config(str(server.make_url("/"))))
                await scheduler.initialize()
                crawl_task = asyncio.create_task(scheduler.start_crawling())
                await asyncio.sleep(0.2)
                assert scheduler.active_workers == 1

                scheduler.stop_crawling()
                stats = await asyncio.wait_for(crawl_task, timeout=5)
                await scheduler.close()
                hang.set()
                return stats
            finally:
                await server.close()

        stats = asyncio.run(scenario())
        assert stats.urls_fetched == 0
        assert stats.end_time is not None
