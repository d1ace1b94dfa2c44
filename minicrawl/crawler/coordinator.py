"""
Crawl coordinator that recursively explores links with one task per child.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .fetcher import Fetcher, FetchResult
from .visit_state import VisitState
from ..utils.logger import get_crawler_logger
from ..utils.monitoring import CrawlerMonitor


@dataclass
class CrawlStats:
    """Statistics for a crawl run."""
    start_time: float = field(default_factory=time.time)
    fetched: int = 0
    failed: int = 0
    already_visited: int = 0
    depth_pruned: int = 0
    tasks_spawned: int = 0
    max_in_flight: int = 0

    @property
    def elapsed_time(self) -> float:
        return time.time() - self.start_time

    def to_dict(self) -> Dict[str, float]:
        return {
            'fetched': self.fetched,
            'failed': self.failed,
            'already_visited': self.already_visited,
            'depth_pruned': self.depth_pruned,
            'tasks_spawned': self.tasks_spawned,
            'max_in_flight': self.max_in_flight,
            'elapsed_time': self.elapsed_time
        }


class CrawlCoordinator:
    """
    Recursively crawls pages up to a depth bound, fetching each URL at most once.

    Every discovered link gets its own asyncio task, and a page's crawl only
    returns once all of its children have returned. The visit state is the
    only shared structure; it is consulted under its lock, and the lock is never
    held while a fetch is awaited.
    """

    def __init__(self, fetcher: Fetcher, state: Optional[VisitState] = None,
                 max_concurrency: Optional[int] = None,
                 monitor: Optional[CrawlerMonitor] = None):
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.fetcher = fetcher
        self.state = state if state is not None else VisitState()
        self.max_concurrency = max_concurrency
        self.monitor = monitor
        self.logger = get_crawler_logger(__name__, component='coordinator')

        self.stats = CrawlStats()
        self._in_flight = 0
        # Gates the fetch call only, never the wait on children.
        self._fetch_slots = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def run(self, url: str, depth: int) -> VisitState:
        """
        Crawl from a start URL and log a summary once everything has finished.

        Returns:
            The visit state, complete for the whole run
        """
        self.stats = CrawlStats()
        self.logger.info(f"Starting crawl of {url} to depth {depth}")

        await self.crawl(url, depth)

        self.logger.info(
            f"Crawl completed: "
            f"Fetched={self.stats.fetched}, "
            f"Failed={self.stats.failed}, "
            f"AlreadyVisited={self.stats.already_visited}, "
            f"DepthPruned={self.stats.depth_pruned}, "
            f"Tasks={self.stats.tasks_spawned}, "
            f"Time={self.stats.elapsed_time:.2f}s"
        )
        return self.state

    async def crawl(self, url: str, depth: int):
        """
        Crawl url and, concurrently, every link found on it with depth - 1.

        Returns after the whole subtree below url has been fetched or pruned.
        Fetch failures are recorded in the visit state and never raised.
        """
        if depth <= 0:
            self.stats.depth_pruned += 1
            self._record_skip(url, 'depth')
            self.logger.log_url_event(logging.DEBUG, url, f"<- Done with {url}, depth 0.")
            return

        if not await self.state.claim(url):
            self.stats.already_visited += 1
            self._record_skip(url, 'visited')
            self.logger.log_url_event(logging.DEBUG, url, f"<- Done with {url}, already fetched.")
            return

        result = await self._fetch(url)

        await self.state.resolve(url, result.error)

        if not result.ok:
            self.stats.failed += 1
            self.logger.log_url_event(logging.WARNING, url, f"<- Error on {url}: {result.error}")
            return

        self.stats.fetched += 1
        self.logger.log_url_event(logging.DEBUG, url, f"Found: {url} ({len(result.links)} links)")

        children: List[asyncio.Task] = []
        total = len(result.links)
        for i, link in enumerate(result.links):
            self.logger.log_url_event(
                logging.DEBUG, link, f"-> Crawling child {i + 1}/{total} of {url} : {link}."
            )
            children.append(asyncio.create_task(self.crawl(link, depth - 1)))
        self.stats.tasks_spawned += len(children)

        if children:
            self.logger.log_url_event(logging.DEBUG, url, f"<- [{url}] Waiting for {total} children.")
            outcomes = await asyncio.gather(*children, return_exceptions=True)
            errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
            if errors:
                raise errors[0]

        self.logger.log_url_event(logging.DEBUG, url, f"<- Done with {url}")

    async def _fetch(self, url: str) -> FetchResult:
        if self._fetch_slots is None:
            return await self._fetch_once(url)
        async with self._fetch_slots:
            return await self._fetch_once(url)

    async def _fetch_once(self, url: str) -> FetchResult:
        """Call the fetcher, folding anything it raises into a failed result."""
        self._in_flight += 1
        self.stats.max_in_flight = max(self.stats.max_in_flight, self._in_flight)
        if self.monitor:
            self.monitor.update_in_flight(self._in_flight)

        start_time = time.time()
        try:
            result = await self.fetcher.fetch(url)
        except Exception as e:
            self.logger.log_url_event(logging.ERROR, url, f"Fetcher raised for {url}: {e}", exc_info=True)
            result = FetchResult(url=url, error=str(e) or e.__class__.__name__)
        finally:
            self._in_flight -= 1
            if self.monitor:
                self.monitor.update_in_flight(self._in_flight)

        fetch_time = result.fetch_time or (time.time() - start_time)
        if self.monitor:
            if result.ok:
                self.monitor.record_fetch(url, fetch_time)
            else:
                self.monitor.record_failure(url, fetch_time)

        return result

    def _record_skip(self, url: str, reason: str):
        if self.monitor:
            self.monitor.record_skip(url, reason)

    def get_stats(self) -> Dict[str, float]:
        """Get current crawl statistics."""
        stats = self.stats.to_dict()
        stats['urls_known'] = len(self.state)
        stats['in_flight'] = self._in_flight
        return stats


def crawl(url: str, depth: int, fetcher: Fetcher, state: Optional[VisitState] = None,
          max_concurrency: Optional[int] = None,
          monitor: Optional[CrawlerMonitor] = None) -> VisitState:
    """
    Run a complete crawl on a fresh event loop and return the visit state.

    Blocks until the whole subtree rooted at url has been explored.
    """
    async def _run() -> VisitState:
        coordinator = CrawlCoordinator(
            fetcher,
            state=state,
            max_concurrency=max_concurrency,
            monitor=monitor
        )
        return await coordinator.run(url, depth)

    return asyncio.run(_run())
