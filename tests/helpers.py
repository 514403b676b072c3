"""
Shared helpers for crawler tests: fake fetcher and config builders
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from silent_crawler.crawler.fetcher import FetchResult
from silent_crawler.utils.config import CrawlerConfig


HTML = 'text/html; charset=utf-8'


class FakeFetcher:
    """In-memory stand-in for WebFetcher serving a fixed site graph."""

    def __init__(self, pages: Dict[str, Tuple[int, str, Optional[str]]],
                 redirects: Optional[Dict[str, str]] = None):
        self.pages = pages
        self.redirects = redirects or {}
        self.calls: List[str] = []

    async def fetch(self, url: str, force_text: bool = False) -> FetchResult:
        self.calls.append(url)
        await asyncio.sleep(0)
        final_url = url
        while final_url in self.redirects:
            final_url = self.redirects[final_url]

        if final_url not in self.pages:
            return FetchResult(url=url, status_code=404, error="HTTP 404")

        status, content_type, body = self.pages[final_url]
        if not 200 <= status < 300:
            return FetchResult(url=url, status_code=status, content_type=content_type,
                               error=f"HTTP {status}")
        return FetchResult(url=url, status_code=status, content=body, content_type=content_type,
                           final_url=final_url)

    def get_stats(self):
        return {'total_requests': len(self.calls)}

    def robots_calls(self) -> List[str]:
        return [url for url in self.calls if url.endswith('/robots.txt')]


def html_page(*hrefs: str) -> Tuple[int, str, str]:
    links = ''.join(f'<a href="{href}">link</a>' for href in hrefs)
    return 200, HTML, f'<html><head><title>Test</title></head><body>{links}</body></html>'


def make_config(**kwargs) -> CrawlerConfig:
    values = {
        'seed_url': 'https://example.com',
        'max_depth': 3,
        'delay': 0.0,
        'jitter': 0.0,
        'concurrency': 4,
    }
    values.update(kwargs)
    return CrawlerConfig(**values)


