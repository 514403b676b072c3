"""
Scheduler Tests

End-to-end crawls over an in-memory site graph.
"""

import asyncio
import random
from collections import Counter

import pytest

from helpers import FakeFetcher, html_page, make_config
from silent_crawler.crawler.parser import ContentParser
from silent_crawler.crawler.scheduler import CrawlerScheduler


async def run_crawl(config, fetcher, **kwargs):
    scheduler = CrawlerScheduler(config, fetcher=fetcher, **kwargs)
    await scheduler.initialize()
    results = await scheduler.start_crawling()
    await scheduler.close()
    return scheduler, results


def page_calls(fetcher):
    return [url for url in fetcher.calls if not url.endswith('/robots.txt')]


# ==========================================
# End-to-end scenario
# ==========================================


@pytest.mark.asyncio
async def test_end_to_end_depth_one(fake_fetcher, crawler_config):
    _, results = await run_crawl(crawler_config, fake_fetcher)

    assert set(results.urls) == {
        'https://example.com/',
        'https://example.com/about/',
        'https://sub1.example.com/',
    }
    assert results.urls[0] == 'https://example.com/'
    # Directories of accepted links are recorded even when they are not crawled
    assert set(results.directories) == {'/', '/about/', '/about/team/', '/docs/'}
    assert results.directories[0] == '/'
    assert results.subdomains == ['sub1.example.com']

    # Non-HTML resources are fetched but not recorded by default
    assert 'https://example.com/logo.png' in fake_fetcher.calls
    assert 'https://example.com/logo.png' not in results.urls

    # External hosts are never fetched or recorded
    assert not any('other.com' in url for url in fake_fetcher.calls)
    assert results.external == []


@pytest.mark.asyncio
async def test_record_non_html_policy(fake_fetcher):
    config = make_config(max_depth=1, record_non_html=True)
    _, results = await run_crawl(config, fake_fetcher)

    assert 'https://example.com/logo.png' in results.urls


@pytest.mark.asyncio
async def test_record_external_policy(fake_fetcher):
    config = make_config(max_depth=1, record_external=True)
    _, results = await run_crawl(config, fake_fetcher)

    assert results.external == ['http://other.com/']
    assert 'http://other.com/' not in results.urls
    assert not any('other.com' in url for url in fake_fetcher.calls)


@pytest.mark.asyncio
async def test_subdomain_recorded_without_fetch(fake_fetcher):
    config = make_config(max_depth=0)
    _, results = await run_crawl(config, fake_fetcher)

    assert results.urls == ['https://example.com/']
    assert results.subdomains == ['sub1.example.com']
    assert page_calls(fake_fetcher) == ['https://example.com/']


# ==========================================
# Robots policy
# ==========================================


def robots_graph():
    return {
        'https://example.com/robots.txt': (200, 'text/plain', "User-agent: *\nDisallow: /private/\n"),
        'https://example.com/': html_page('/private/secret.html', '/public/'),
        'https://example.com/private/secret.html': html_page('/private/more/'),
        'https://example.com/public/': html_page(),
    }


@pytest.mark.asyncio
async def test_robots_disallowed_path_is_never_fetched():
    fetcher = FakeFetcher(robots_graph())
    scheduler, results = await run_crawl(make_config(max_depth=2), fetcher)

    assert results.urls == ['https://example.com/', 'https://example.com/public/']
    assert '/private/' not in results.directories
    assert 'https://example.com/private/secret.html' not in fetcher.calls
    assert fetcher.robots_calls() == ['https://example.com/robots.txt']


@pytest.mark.asyncio
async def test_robots_disallowed_seed():
    graph = robots_graph()
    graph['https://example.com/robots.txt'] = (200, 'text/plain', "User-agent: *\nDisallow: /\n")
    fetcher = FakeFetcher(graph)

    scheduler, results = await run_crawl(make_config(), fetcher)

    assert results.urls == []
    assert page_calls(fetcher) == []
    assert scheduler.stats.robots_blocked == 1
    assert scheduler.monitor.get_value('crawler_robots_blocked_total') == 1


@pytest.mark.asyncio
async def test_ignore_robots():
    fetcher = FakeFetcher(robots_graph())
    config = make_config(max_depth=2, respect_robots_txt=False)
    _, results = await run_crawl(config, fetcher)

    assert 'https://example.com/private/secret.html' in results.urls
    assert '/private/' in results.directories
    assert fetcher.robots_calls() == []


# ==========================================
# Traversal invariants
# ==========================================


def cyclic_graph():
    return {
        'https://example.com/': html_page('/a/', '/b/', '/c.html', 'https://sub.example.com/', '/'),
        'https://example.com/a/': html_page('/a/x/', '/b/', '/', '/a/y.html', '#top'),
        'https://example.com/b/': html_page('/b/z/', '../a/x/', '/a/', '/missing/'),
        'https://example.com/c.html': html_page('/a/x/', 'mailto:me@example.com'),
        'https://example.com/a/x/': html_page('/deep/1/', '/a/'),
        'https://example.com/a/y.html': html_page('/deep/2/'),
        'https://example.com/b/z/': html_page('/deep/3/', 'http://other.org/'),
        'https://example.com/deep/1/': html_page('/deeper/'),
        'https://example.com/deep/2/': (200, 'application/pdf', None),
        'https://example.com/missing/': (500, 'text/html', 'error'),
        'https://sub.example.com/': html_page('/s/', 'https://example.com/b/'),
        'https://sub.example.com/s/': html_page('/s/t/'),
    }


@pytest.mark.asyncio
async def test_no_duplicate_fetches_in_cyclic_graph():
    fetcher = FakeFetcher(cyclic_graph())
    _, results = await run_crawl(make_config(max_depth=5, concurrency=8), fetcher)

    duplicates = [url for url, count in Counter(page_calls(fetcher)).items() if count > 1]
    assert duplicates == []
    assert len(results.urls) == len(set(results.urls))
    assert 'https://example.com/deeper/' in fetcher.calls


@pytest.mark.asyncio
async def test_depth_limit():
    fetcher = FakeFetcher(cyclic_graph())
    scheduler, results = await run_crawl(make_config(max_depth=1), fetcher)

    assert set(page_calls(fetcher)) == {
        'https://example.com/',
        'https://example.com/a/',
        'https://example.com/b/',
        'https://example.com/c.html',
        'https://sub.example.com/',
    }
    assert 'https://example.com/a/x/' not in results.urls


@pytest.mark.asyncio
async def test_concurrency_does_not_change_results():
    serial_fetcher = FakeFetcher(cyclic_graph())
    _, serial = await run_crawl(make_config(max_depth=2, concurrency=1), serial_fetcher)

    parallel_fetcher = FakeFetcher(cyclic_graph())
    _, parallel = await run_crawl(make_config(max_depth=2, concurrency=10), parallel_fetcher)

    assert set(serial.urls) == set(parallel.urls)
    assert set(serial.directories) == set(parallel.directories)
    assert set(serial.subdomains) == set(parallel.subdomains)
    assert sorted(page_calls(serial_fetcher)) == sorted(page_calls(parallel_fetcher))


@pytest.mark.asyncio
async def test_fetch_failures_do_not_abort_run():
    fetcher = FakeFetcher(cyclic_graph())
    scheduler, results = await run_crawl(make_config(max_depth=2), fetcher)

    assert 'https://example.com/missing/' in fetcher.calls
    assert 'https://example.com/missing/' not in results.urls
    assert 'https://example.com/b/z/' in results.urls
    assert scheduler.stats.errors >= 1

    stats = scheduler.get_stats()
    assert stats['urls'] == len(results.urls)
    assert stats['errors'] == scheduler.stats.errors
    assert stats['is_running'] is False


@pytest.mark.asyncio
async def test_parser_exception_is_contained():
    class BrokenParser(ContentParser):
        def parse(self, url, html_content):
            if url.endswith('/a/'):
                raise RuntimeError("boom")
            return super().parse(url, html_content)

    fetcher = FakeFetcher(cyclic_graph())
    scheduler, results = await run_crawl(make_config(max_depth=1), fetcher, parser=BrokenParser())

    assert 'https://example.com/a/' in results.urls
    assert 'https://example.com/b/' in results.urls
    assert scheduler.stats.errors == 1


# ==========================================
# Pacing and shutdown
# ==========================================


@pytest.mark.asyncio
async def test_delay_plus_jitter_before_each_fetch(monkeypatch):
    jitter_calls = []
    sleeps = []
    original_sleep = asyncio.sleep

    def fake_uniform(low, high):
        jitter_calls.append((low, high))
        return 0.1

    async def fake_sleep(delay, *args, **kwargs):
        sleeps.append(delay)
        # Let the periodic stats reporter block as usual
        await original_sleep(delay if delay > 1 else 0)

    monkeypatch.setattr(random, 'uniform', fake_uniform)
    monkeypatch.setattr(asyncio, 'sleep', fake_sleep)

    fetcher = FakeFetcher({
        'https://example.com/': html_page('/a/'),
        'https://example.com/a/': html_page(),
    })
    config = make_config(max_depth=1, delay=0.25, jitter=0.5)
    await run_crawl(config, fetcher)

    assert jitter_calls == [(0, 0.5), (0, 0.5)]
    assert sleeps.count(pytest.approx(0.35)) == 2


@pytest.mark.asyncio
async def test_jitter_applies_with_zero_delay(monkeypatch):
    jitter_calls = []
    monkeypatch.setattr(random, 'uniform', lambda low, high: jitter_calls.append(high) or 0.0)

    fetcher = FakeFetcher({'https://example.com/': html_page()})
    await run_crawl(make_config(max_depth=0, delay=0.0, jitter=0.5), fetcher)

    assert jitter_calls == [0.5]


@pytest.mark.asyncio
async def test_stop_crawling_keeps_partial_results():
    class HangingFetcher(FakeFetcher):
        async def fetch(self, url, force_text=False):
            if url.endswith('/slow/'):
                self.calls.append(url)
                await asyncio.Event().wait()
            return await super().fetch(url, force_text)

    fetcher = HangingFetcher({
        'https://example.com/': html_page('/slow/'),
    })
    scheduler = CrawlerScheduler(make_config(max_depth=1), fetcher=fetcher)
    await scheduler.initialize()
    crawl_task = asyncio.create_task(scheduler.start_crawling())

    async def wait_for_slow():
        while 'https://example.com/slow/' not in fetcher.calls:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(wait_for_slow(), timeout=2)
    crawl_task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await crawl_task
    await scheduler.stop_crawling()

    assert scheduler.results.snapshot().urls == ['https://example.com/']
    assert scheduler.workers == []
    assert not scheduler.is_running


def test_invalid_seed_rejected():
    with pytest.raises(ValueError):
        CrawlerScheduler(make_config(seed_url='ftp://example.com/'), fetcher=FakeFetcher({}))


# ==========================================
# Redirects
# ==========================================


@pytest.mark.asyncio
async def test_links_resolve_against_redirect_target():
    fetcher = FakeFetcher(
        {
            'https://example.com/': html_page('/old/'),
            'https://example.com/new/': html_page('child/'),
            'https://example.com/new/child/': html_page(),
        },
        redirects={'https://example.com/old/': 'https://example.com/new/'},
    )
    _, results = await run_crawl(make_config(max_depth=2), fetcher)

    assert 'https://example.com/new/child/' in results.urls
    assert 'https://example.com/old/child/' not in fetcher.calls
    assert '/new/child/' in results.directories


@pytest.mark.asyncio
async def test_offsite_redirect_is_not_parsed_for_links():
    fetcher = FakeFetcher(
        {
            'https://example.com/': html_page('/leave/'),
            'https://elsewhere.org/landing/': html_page('/their/page/'),
        },
        redirects={'https://example.com/leave/': 'https://elsewhere.org/landing/'},
    )
    _, results = await run_crawl(make_config(max_depth=2), fetcher)

    assert 'https://example.com/their/page/' not in fetcher.calls
    assert '/their/page/' not in results.directories
