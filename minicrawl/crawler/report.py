"""
Summary report built from the visit state after a crawl has finished.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .visit_state import VisitRecord, VisitState, VisitStatus


@dataclass
class CrawlReport:
    """Per-URL outcomes of a finished crawl."""
    records: List[VisitRecord] = field(default_factory=list)
    stats: Optional[Dict[str, Any]] = None

    @classmethod
    def from_state(cls, state: VisitState, stats: Optional[Dict[str, Any]] = None) -> 'CrawlReport':
        """Read the visit state once. All crawl tasks must have joined."""
        return cls(records=state.records(), stats=stats)

    @property
    def fetched(self) -> List[str]:
        return [r.url for r in self.records if r.status is VisitStatus.SUCCESS]

    @property
    def failed(self) -> Dict[str, str]:
        return {r.url: r.error for r in self.records if r.status is VisitStatus.FAILURE}

    def lines(self, sort: bool = False) -> List[str]:
        """
        One line per URL.

        Without sort the order follows the visit map and is not meaningful.
        """
        records = sorted(self.records, key=lambda r: r.url) if sort else self.records
        return [self._format_record(record) for record in records]

    def render(self, sort: bool = False) -> str:
        return "\n".join(["Fetching stats", "--------------"] + self.lines(sort=sort))

    def to_dict(self) -> Dict[str, Any]:
        counts = {status.value: 0 for status in VisitStatus}
        for record in self.records:
            counts[record.status.value] += 1

        return {
            'generated_at': datetime.now(timezone.utc).isoformat(),
            'counts': counts,
            'stats': self.stats or {},
            'urls': [record.to_dict() for record in sorted(self.records, key=lambda r: r.url)]
        }

    def export_json(self, file_path: str):
        """Write the report as JSON."""
        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2)

        logging.getLogger(__name__).info(f"Crawl report exported to {file_path}")

    @staticmethod
    def _format_record(record: VisitRecord) -> str:
        if record.status is VisitStatus.SUCCESS:
            return f"{record.url} was fetched"
        if record.status is VisitStatus.FAILURE:
            return f"{record.url} failed: {record.error}"
        return f"{record.url} is in progress"
