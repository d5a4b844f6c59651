from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

TIER_SOURCES = ("exact-id", "keyword", "sponsor", "committee")
SEMANTIC = "semantic"
FULL_TEXT = "full-text"
LIVE_API = "live-api"
DOMAIN_PREFIX = "domain:"


@dataclass(frozen=True)
class RetrievedRecord:
    """One record plus its render-ready fragment."""

    identifier: str
    text: str
    data: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class RetrievalResult:
    source: str
    records: tuple[RetrievedRecord, ...] = ()
    label: Optional[str] = None
    summary: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def identifiers(self) -> list[str]:
        return [record.identifier for record in self.records]

    @classmethod
    def empty(cls, source: str) -> "RetrievalResult":
        return cls(source=source)
