"""
Web page fetcher built on aiohttp.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout


DEFAULT_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml',
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept-Encoding': 'gzip, deflate',
    'Upgrade-Insecure-Requests': '1',
}

TEXT_CONTENT_TYPES = (
    'text/html',
    'text/plain',
    'text/xml',
    'application/xml',
    'application/xhtml+xml',
)


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    status_code: int
    content: Optional[str] = None
    content_type: Optional[str] = None
    error: Optional[str] = None
    fetch_time: float = 0.0
    final_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and 200 <= self.status_code < 300

    @property
    def is_html(self) -> bool:
        return self.ok and 'text/html' in (self.content_type or '')


class WebFetcher:
    """
    Fetches URLs with a shared session, a total request timeout and a
    bound on concurrent requests. Failures are returned, never raised.
    """

    def __init__(self, user_agent: str, request_timeout: float = 10.0,
                 max_concurrent_requests: int = 10,
                 max_content_size: int = 10 * 1024 * 1024):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_concurrent_requests = max_concurrent_requests
        self.max_content_size = max_content_size

        self.logger = logging.getLogger(__name__)

        self.session: Optional[ClientSession] = None
        self.semaphore = asyncio.Semaphore(max_concurrent_requests)

        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0,
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            headers = dict(DEFAULT_HEADERS)
            headers['User-Agent'] = self.user_agent

            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.request_timeout),
                headers=headers,
                connector=aiohttp.TCPConnector(
                    limit=self.max_concurrent_requests * 2,
                    ttl_dns_cache=300,
                ),
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str, force_text: bool = False) -> FetchResult:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch
            force_text: Read the body even if the content type is not text

        Returns:
            FetchResult with the response data or error information
        """
        start_time = time.time()

        async with self.semaphore:
            try:
                self.stats['total_requests'] += 1

                async with self.session.get(url) as response:
                    content_type = response.headers.get('Content-Type', '').lower()

                    if not 200 <= response.status < 300:
                        self.stats['failed_requests'] += 1
                        self.logger.debug(f"HTTP {response.status} for {url}")
                        return FetchResult(
                            url=url,
                            status_code=response.status,
                            content_type=content_type,
                            error=f"HTTP {response.status}",
                            fetch_time=time.time() - start_time,
                        )

                    content = None
                    if force_text or self._is_text_content(content_type):
                        content = await self._read_content_safely(response)

                    self.stats['successful_requests'] += 1
                    if content:
                        self.stats['total_bytes_downloaded'] += len(content)

                    self.logger.debug(f"Fetched {url}: {response.status} ({content_type})")
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        content=content,
                        content_type=content_type,
                        fetch_time=time.time() - start_time,
                        final_url=str(response.url),
                    )

            except asyncio.TimeoutError:
                error_msg = "Request timeout"
                self.logger.warning(f"Timeout fetching {url}")

            except ClientError as e:
                error_msg = f"Client error: {e}"
                self.logger.warning(f"Client error fetching {url}: {e}")

            except ValueError as e:
                error_msg = f"Invalid URL: {e}"
                self.logger.warning(f"Invalid URL {url}: {e}")

            self.stats['failed_requests'] += 1
            return FetchResult(
                url=url,
                status_code=0,
                error=error_msg,
                fetch_time=time.time() - start_time,
            )

    def _is_text_content(self, content_type: str) -> bool:
        return any(text_type in content_type for text_type in TEXT_CONTENT_TYPES)

    async def _read_content_safely(self, response) -> Optional[str]:
        """
        Read a response body, giving up past ``max_content_size`` bytes.

        Returns:
            Decoded content, or None if the body is too large
        """
        content_length = response.headers.get('Content-Length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = b''
        async for chunk in response.content.iter_chunked(8192):
            content_bytes += chunk
            if len(content_bytes) > self.max_content_size:
                self.logger.warning(f"Content exceeded size limit during reading: {response.url}")
                return None

        encoding = response.charset or 'utf-8'
        try:
            return content_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            return content_bytes.decode('utf-8', errors='ignore')

    def get_stats(self) -> Dict[str, int]:
        """Get fetcher statistics."""
        return self.stats.copy()
