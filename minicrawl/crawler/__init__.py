"""
Web crawler core components.
"""

from .visit_state import VisitState, VisitStatus, VisitRecord
from .fetcher import Fetcher, WebFetcher, FetchResult
from .parser import LinkExtractor
from .coordinator import CrawlCoordinator, CrawlStats, crawl
from .report import CrawlReport

__all__ = [
    'VisitState', 'VisitStatus', 'VisitRecord',
    'Fetcher', 'WebFetcher', 'FetchResult',
    'LinkExtractor',
    'CrawlCoordinator', 'CrawlStats', 'crawl',
    'CrawlReport'
]
