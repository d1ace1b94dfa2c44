"""
Shared visit-state map that records which URLs have been claimed, fetched or failed.
"""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


class VisitStatus(Enum):
    """Outcome markers for a visited URL."""
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class VisitRecord:
    """State of a single URL in the visit map."""
    url: str
    status: VisitStatus = VisitStatus.IN_PROGRESS
    error: Optional[str] = None
    claimed_time: float = field(default_factory=time.time)
    resolved_time: Optional[float] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not VisitStatus.IN_PROGRESS

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'url': self.url,
            'status': self.status.value,
            'error': self.error,
            'claimed_time': self.claimed_time,
            'resolved_time': self.resolved_time
        }


class VisitState:
    """
    Visit map shared by every crawl task of a run.

    All reads and writes made while a crawl is running go through one
    asyncio lock. Entries are only ever inserted or overwritten, never removed,
    so a URL that has been claimed once can never be claimed again.
    """

    def __init__(self):
        self._records: Dict[str, VisitRecord] = {}
        self._lock = asyncio.Lock()

    @property
    def lock(self) -> asyncio.Lock:
        return self._lock

    async def claim(self, url: str) -> bool:
        """
        Mark a URL as in progress unless it is already known.

        Returns True only for the single caller that inserted the entry.
        """
        async with self._lock:
            if url in self._records:
                return False
            self._records[url] = VisitRecord(url=url)
            return True

    async def resolve(self, url: str, error: Optional[str] = None):
        """Replace the in-progress marker with the final outcome of a fetch."""
        async with self._lock:
            record = self._records.get(url)
            if record is None:
                record = VisitRecord(url=url)
                self._records[url] = record
            record.status = VisitStatus.SUCCESS if error is None else VisitStatus.FAILURE
            record.error = error
            record.resolved_time = time.time()

    async def get(self, url: str) -> Optional[VisitRecord]:
        async with self._lock:
            return self._records.get(url)

    def records(self) -> List[VisitRecord]:
        """
        Read every record without locking.

        Only valid once all crawl tasks have finished.
        """
        return list(self._records.values())

    def counts(self) -> Dict[str, int]:
        """Number of records per status."""
        counts = {status.value: 0 for status in VisitStatus}
        for record in self._records.values():
            counts[record.status.value] += 1
        return counts

    def __contains__(self, url: str) -> bool:
        return url in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))
