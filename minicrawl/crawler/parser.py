"""
HTML link extraction for fetched pages.
"""

import logging
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup


class LinkExtractor:
    """
    Extracts outbound links from HTML content.

    Links are returned in document order. Duplicates are kept and URLs are not
    normalised beyond resolving them against the page URL.
    """

    def __init__(self, allowed_schemes: Optional[List[str]] = None, parser: str = 'lxml'):
        self.allowed_schemes = set(allowed_schemes or ['http', 'https'])
        self.parser = parser
        self.logger = logging.getLogger(__name__)

    def extract(self, base_url: str, html_content: str) -> List[str]:
        """
        Extract links from an HTML document.

        Args:
            base_url: URL the document was fetched from
            html_content: Raw HTML content

        Returns:
            Absolute URLs of every anchor, in document order
        """
        if not html_content:
            return []

        try:
            soup = BeautifulSoup(html_content, self.parser)
        except Exception as e:
            self.logger.error(f"Error parsing content from {base_url}: {e}")
            return []

        links = []
        for anchor in soup.find_all('a', href=True):
            href = anchor['href'].strip()
            if not href or href.startswith('#'):
                continue

            absolute_url = urljoin(base_url, href)
            if self._is_crawlable(absolute_url):
                links.append(absolute_url)

        self.logger.debug(f"Extracted {len(links)} links from {base_url}")
        return links

    def _is_crawlable(self, url: str) -> bool:
        """Check that a URL has an allowed scheme and a host."""
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in self.allowed_schemes and bool(parsed.netloc)
