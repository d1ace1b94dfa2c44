"""
Web page fetcher that retrieves a URL and returns the links found on it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout

from .parser import LinkExtractor


@dataclass
class FetchResult:
    """Result of a fetch operation."""
    url: str
    links: List[str] = field(default_factory=list)
    error: Optional[str] = None
    status_code: int = 0
    body: Optional[str] = None
    content_type: Optional[str] = None
    fetch_time: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


class Fetcher(Protocol):
    """Anything that can retrieve a URL and report the links found on it."""

    async def fetch(self, url: str) -> FetchResult:
        ...


class WebFetcher:
    """
    Fetches web pages over HTTP and extracts their outbound links.
    """

    HTML_CONTENT_TYPES = ('text/html', 'application/xhtml+xml')

    def __init__(self, user_agent: str = "minicrawl/1.0", request_timeout: int = 30,
                 max_content_size: int = 10 * 1024 * 1024,
                 link_extractor: Optional[LinkExtractor] = None):
        self.user_agent = user_agent
        self.request_timeout = request_timeout
        self.max_content_size = max_content_size
        self.link_extractor = link_extractor or LinkExtractor()

        self.logger = logging.getLogger(__name__)
        self.session: Optional[ClientSession] = None

        # Statistics
        self.stats = {
            'total_requests': 0,
            'successful_requests': 0,
            'failed_requests': 0,
            'total_bytes_downloaded': 0
        }

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Initialize the fetcher session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.request_timeout),
                headers={'User-Agent': self.user_agent}
            )
            self.logger.info("WebFetcher session started")

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.info("WebFetcher session closed")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a single URL.

        Args:
            url: The URL to fetch

        Returns:
            FetchResult with the discovered links, or an error description
        """
        if self.session is None:
            await self.start()

        start_time = time.time()
        self.stats['total_requests'] += 1

        try:
            async with self.session.get(url) as response:
                content_type = response.headers.get('content-type', '').lower()

                if response.status >= 400:
                    self.stats['failed_requests'] += 1
                    self.logger.warning(f"HTTP {response.status} fetching {url}")
                    return FetchResult(
                        url=url,
                        error=f"not found: {url} (HTTP {response.status})",
                        status_code=response.status,
                        content_type=content_type,
                        fetch_time=time.time() - start_time
                    )

                if not self._is_html(content_type):
                    self.stats['successful_requests'] += 1
                    self.logger.debug(f"Skipping link extraction for non-HTML content: {url} ({content_type})")
                    return FetchResult(
                        url=url,
                        status_code=response.status,
                        content_type=content_type,
                        fetch_time=time.time() - start_time
                    )

                body = await self._read_content_safely(response)
                if body is None:
                    self.stats['failed_requests'] += 1
                    return FetchResult(
                        url=url,
                        error=f"content too large: {url}",
                        status_code=response.status,
                        content_type=content_type,
                        fetch_time=time.time() - start_time
                    )

                self.stats['total_bytes_downloaded'] += len(body)
                links = self.link_extractor.extract(str(response.url), body)
                self.stats['successful_requests'] += 1

                self.logger.debug(f"Fetched {url}: {response.status} ({len(body)} bytes, {len(links)} links)")
                return FetchResult(
                    url=url,
                    links=links,
                    status_code=response.status,
                    body=body,
                    content_type=content_type,
                    fetch_time=time.time() - start_time
                )

        except asyncio.TimeoutError:
            error_msg = f"not found: {url} (request timeout)"
            self.logger.warning(f"Timeout fetching {url}")

        except (ClientError, ValueError) as e:
            error_msg = f"not found: {url} ({e})"
            self.logger.warning(f"Client error fetching {url}: {e}")

        except Exception as e:
            error_msg = f"unexpected error fetching {url}: {e}"
            self.logger.error(f"Unexpected error fetching {url}: {e}", exc_info=True)

        self.stats['failed_requests'] += 1
        return FetchResult(
            url=url,
            error=error_msg,
            fetch_time=time.time() - start_time
        )

    def _is_html(self, content_type: str) -> bool:
        return any(html_type in content_type for html_type in self.HTML_CONTENT_TYPES)

    async def _read_content_safely(self, response: aiohttp.ClientResponse) -> Optional[str]:
        """
        Read the response body, giving up once it exceeds max_content_size.

        Returns:
            Decoded body or None if the body is too large
        """
        content_length = response.headers.get('content-length')
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_size:
            self.logger.warning(f"Content too large ({content_length} bytes): {response.url}")
            return None

        content_bytes = bytearray()
        async for chunk in response.content.iter_chunked(8192):
            content_bytes.extend(chunk)
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
