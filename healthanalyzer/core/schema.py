"""
Entity records persisted by the store.

Records are plain dataclasses. Ids and creation timestamps may be left
empty on write; the store fills them in and returns the stored record.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional


@dataclass
class Entry:
    """A single dated, categorized health submission and its analysis."""
    date: date
    category: str
    input_text: str
    analysis_text: str = ""
    id: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Finding:
    """A cross-category insight."""
    date: date
    finding_text: str
    categories: List[str] = field(default_factory=list)
    id: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Summary:
    """A periodic rollup of analyses for one category. period_end is inclusive."""
    period_start: date
    period_end: date
    category: str
    summary_text: str
    id: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Metric:
    """A single extracted numeric measurement belonging to an entry."""
    key: str
    value: float
    entry_id: str = ""
    id: str = ""
    created_at: Optional[datetime] = None


@dataclass
class SimilarResult:
    """A stored entry paired with its distance from a search query."""
    entry: Entry
    distance: float
