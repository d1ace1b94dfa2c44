"""
Shared fixtures and stub fetchers for the crawler tests.
"""

import asyncio
from collections import Counter
from typing import Dict, List, Optional

import pytest

from minicrawl.crawler.fetcher import FetchResult
from minicrawl.utils.config import Config, LoggingConfig


SEED = "https://x.test/seed"
A = "https://x.test/a"
B = "https://x.test/b"
C = "https://x.test/c"


class StubFetcher:
    """In-memory fetcher driven by a link graph."""

    def __init__(self, graph: Dict[str, List[str]], failures: Optional[Dict[str, str]] = None,
                 delay: float = 0.0, delays: Optional[Dict[str, float]] = None):
        self.graph = graph
        self.failures = failures or {}
        self.delay = delay
        self.delays = delays or {}

        self.calls: List[str] = []
        self.call_counts: Counter = Counter()
        self.completed: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        self.call_counts[url] += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, self.delay))
        finally:
            self.in_flight -= 1
        self.completed.append(url)

        if url in self.failures:
            return FetchResult(url=url, error=self.failures[url])
        if url not in self.graph:
            return FetchResult(url=url, error=f"not found: {url}")
        return FetchResult(url=url, links=list(self.graph[url]))


class RaisingFetcher(StubFetcher):
    """Raises instead of returning an error for the configured URLs."""

    async def fetch(self, url: str) -> FetchResult:
        if url in self.failures:
            self.call_counts[url] += 1
            raise RuntimeError(self.failures[url])
        return await super().fetch(url)


@pytest.fixture
def example_graph():
    return {
        SEED: [A, B],
        A: [B, C],
        B: [],
        C: [A],
    }


@pytest.fixture
def stub_fetcher(example_graph):
    return StubFetcher(example_graph)


@pytest.fixture
def quiet_config():
    """Configuration that logs to the console only."""
    return Config(logging=LoggingConfig(level="ERROR", file=None))
