"""Merge retrieval results into ordered, labeled context sections."""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..retrieval.types import (
    DOMAIN_PREFIX,
    FULL_TEXT,
    LIVE_API,
    SEMANTIC,
    TIER_SOURCES,
    RetrievalResult,
    RetrievedRecord,
)

logger = logging.getLogger(__name__)

STRUCTURED_HEADER = "NYSGPT DATABASE - BILLS FROM SUPABASE:"
LIVE_HEADER = "COMPREHENSIVE NYS LEGISLATIVE DATABASE INFORMATION:"
SEMANTIC_HEADER = "SEMANTIC SEARCH - RELEVANT BILL TEXT FROM NYSGPT DATABASE:"
FULL_TEXT_HEADER = "FULL BILL TEXT FROM NYSGPT DATABASE:"


@dataclass(frozen=True)
class ContextSection:
    source: str
    header: str
    body: str
    identifiers: tuple[str, ...]

    @property
    def text(self) -> str:
        return f"{self.header}\n\n{self.body}"


@dataclass(frozen=True)
class ContextBlock:
    sections: tuple[ContextSection, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.sections

    @property
    def text(self) -> str:
        return "\n\n".join(section.text for section in self.sections)

    @property
    def sources(self) -> list[str]:
        return [section.source for section in self.sections]

    def identifiers_for(self, source: str) -> list[str]:
        found = []
        for section in self.sections:
            if section.source == source:
                found.extend(section.identifiers)
        return found


def precedence(source: str) -> int:
    if source in TIER_SOURCES:
        return 0
    if source == LIVE_API:
        return 1
    if source == SEMANTIC:
        return 2
    if source == FULL_TEXT:
        return 3
    if source.startswith(DOMAIN_PREFIX):
        return 4
    return 5


class ContextComposer:
    def __init__(
        self,
        max_sections: int = 10,
        per_source_limit: Optional[dict[str, int]] = None,
        per_record_limit: Optional[dict[str, int]] = None,
    ):
        self.max_sections = max_sections
        self.per_source_limit = {
            "structured": 10,
            LIVE_API: 15,
            SEMANTIC: 15,
            FULL_TEXT: 5,
            "domain": 25,
            **(per_source_limit or {}),
        }
        self.per_record_limit = {
            "structured": 1,
            LIVE_API: 1,
            SEMANTIC: 2,
            FULL_TEXT: 1,
            **(per_record_limit or {}),
        }

    @staticmethod
    def _kind(source: str) -> str:
        if source in TIER_SOURCES:
            return "structured"
        if source.startswith(DOMAIN_PREFIX):
            return "domain"
        return source

    def _select(self, result: RetrievalResult) -> list[RetrievedRecord]:
        kind = self._kind(result.source)
        limit = self.per_source_limit.get(kind)
        per_record = self.per_record_limit.get(kind)

        seen: set[tuple[str, str]] = set()
        counts: dict[str, int] = {}
        kept = []
        for record in result.records:
            key = (record.identifier, record.text)
            if key in seen:
                continue
            if per_record is not None and counts.get(record.identifier, 0) >= per_record:
                continue
            if limit is not None and len(kept) >= limit:
                break
            seen.add(key)
            counts[record.identifier] = counts.get(record.identifier, 0) + 1
            kept.append(record)
        return kept

    @staticmethod
    def _numbered(records: list[RetrievedRecord]) -> str:
        return "\n\n".join(f"{i}. {record.text}" for i, record in enumerate(records, start=1))

    @staticmethod
    def _grouped(records: list[RetrievedRecord]) -> dict[str, list[str]]:
        groups: dict[str, list[str]] = {}
        for record in records:
            groups.setdefault(record.identifier, []).append(record.text)
        return groups

    def _render(self, result: RetrievalResult, records: list[RetrievedRecord]) -> ContextSection:
        kind = self._kind(result.source)
        identifiers = tuple(r.identifier for r in records)

        if kind == "structured":
            return ContextSection(result.source, STRUCTURED_HEADER, self._numbered(records), identifiers)

        if kind == LIVE_API:
            return ContextSection(result.source, LIVE_HEADER, self._numbered(records), identifiers)

        if kind == SEMANTIC:
            parts = []
            for i, (number, fragments) in enumerate(self._grouped(records).items(), start=1):
                lines = "\n".join(f"   {fragment}" for fragment in fragments)
                parts.append(f"{i}. BILL {number} (semantic match):\n{lines}")
            return ContextSection(result.source, SEMANTIC_HEADER, "\n\n".join(parts), identifiers)

        if kind == FULL_TEXT:
            parts = [
                f"=== BILL {number} - VERBATIM TEXT ===\n" + "\n".join(texts)
                for number, texts in self._grouped(records).items()
            ]
            return ContextSection(result.source, FULL_TEXT_HEADER, "\n\n".join(parts), identifiers)

        header = f"{result.label or result.source.upper()}:"
        body = "\n".join(f"- {record.text}" for record in records)
        if result.summary:
            body += f"\n\n{result.summary}"
        return ContextSection(result.source, header, body, identifiers)

    def compose(self, results: Iterable[RetrievalResult]) -> ContextBlock:
        ordered = sorted(
            (r for r in results if r is not None and not r.is_empty),
            key=lambda r: precedence(r.source),
        )

        sections = []
        for result in ordered:
            if len(sections) >= self.max_sections:
                logger.info(f"Context section cap reached, dropping {result.source}")
                continue
            records = self._select(result)
            if records:
                sections.append(self._render(result, records))

        block = ContextBlock(tuple(sections))
        if block.is_empty:
            logger.info("No retrieval data found; answering ungrounded")
        else:
            logger.info(f"Composed context from sources: {', '.join(block.sources)}")
        return block
