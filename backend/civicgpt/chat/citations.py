"""Post-processing of a finalized answer: bill citations, reasoning, web sources."""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from ..models.schemas import BillCitation, Message, NumberedCitation
from ..retrieval.bill_numbers import CITATION_BILL_PATTERN, extract_bill_numbers
from ..retrieval.store import LegislativeStore

logger = logging.getLogger(__name__)

THINK_START = "<think>"
THINK_END = "</think>"
WEB_CITATION_MARKER = re.compile(r"\[(\d+)\]")

_SLUG_STRIP = re.compile(r"[^a-z0-9\s-]")
_SLUG_SPACES = re.compile(r"\s+")


@dataclass(frozen=True)
class ReasoningSplit:
    content: str
    reasoning: Optional[str] = None
    in_progress: bool = False


def extract_reasoning(text: str) -> ReasoningSplit:
    """Split a ``<think>...</think>`` segment out of the visible answer.

    A start marker with no end marker means the stream stopped mid-thought:
    everything after it is returned as in-progress reasoning.
    """
    if not text:
        return ReasoningSplit(content="")
    start = text.find(THINK_START)
    if start == -1:
        return ReasoningSplit(content=text)

    body_start = start + len(THINK_START)
    end = text.find(THINK_END, body_start)
    if end == -1:
        return ReasoningSplit(
            content=text[:start].strip(),
            reasoning=text[body_start:].strip() or None,
            in_progress=True,
        )

    visible = (text[:start] + text[end + len(THINK_END):]).strip()
    return ReasoningSplit(content=visible, reasoning=text[body_start:end].strip() or None)


def web_citation_numbers(text: str) -> list[int]:
    return sorted({int(n) for n in WEB_CITATION_MARKER.findall(text or "")})


def web_citations_from_markers(text: str) -> list[NumberedCitation]:
    return [NumberedCitation(number=n, title=f"Source {n}") for n in web_citation_numbers(text)]


def committee_slug(committee: Optional[str]) -> Optional[str]:
    if not committee:
        return None
    slug = _SLUG_STRIP.sub("", committee.lower())
    return _SLUG_SPACES.sub("-", slug)


def cited_bill_numbers(query: str, answer: str) -> list[str]:
    return extract_bill_numbers(f"{query or ''}\n{answer or ''}", CITATION_BILL_PATTERN)


def citation_from_row(row: dict) -> BillCitation:
    sponsor = row.get("primary_sponsor") or {}
    return BillCitation(
        identifier=row.get("bill_number") or "",
        title=row.get("title"),
        status=row.get("status_desc"),
        committee=row.get("committee"),
        description=row.get("description"),
        session_id=row.get("session_id"),
        sponsor_name=sponsor.get("name"),
        sponsor_party=sponsor.get("party"),
        sponsor_district=str(sponsor["district"]) if sponsor.get("district") is not None else None,
        sponsor_chamber=sponsor.get("chamber"),
        committee_slug=committee_slug(row.get("committee")),
    )


class BillLookup(Protocol):
    async def find(self, numbers: Sequence[str], limit: int) -> list[dict]: ...

    async def related(self, committee: str, exclude_number: str, limit: int) -> list[dict]: ...


class StoreBillLookup:
    def __init__(self, store: Optional[LegislativeStore] = None):
        self.store = store or LegislativeStore()

    async def find(self, numbers: Sequence[str], limit: int = 10) -> list[dict]:
        bills = await self.store.bills_by_numbers(numbers, limit=limit)
        if not bills:
            return []
        try:
            return await self.store.enrich_with_sponsors(bills)
        except Exception as e:
            logger.warning(f"Sponsor lookup for citations failed: {e}")
            return bills

    async def related(self, committee: str, exclude_number: str, limit: int = 5) -> list[dict]:
        return await self.store.related_bills(committee, exclude_number, limit=limit)


class CitationExtractor:
    def __init__(self, lookup: Optional[BillLookup] = None, limit: int = 10, related_limit: int = 5):
        self.lookup = lookup or StoreBillLookup()
        self.limit = limit
        self.related_limit = related_limit

    async def bill_citations(self, query: str, answer: str) -> list[BillCitation]:
        numbers = cited_bill_numbers(query, answer)
        if not numbers:
            return []
        try:
            rows = await self.lookup.find(numbers, self.limit)
        except Exception as e:
            logger.error(f"Error resolving cited bills {numbers}: {e}")
            return []
        logger.info(f"Found {len(rows)} bills mentioned in query/response")
        return [citation_from_row(row) for row in rows[: self.limit]]

    async def related_bills(self, citations: Sequence[BillCitation]) -> list[BillCitation]:
        if not citations or not citations[0].committee:
            return []
        first = citations[0]
        try:
            rows = await self.lookup.related(first.committee, first.identifier, self.related_limit)
        except Exception as e:
            logger.error(f"Error fetching related bills: {e}")
            return []
        if rows:
            logger.info(f"Found {len(rows)} related bills from committee: {first.committee}")
        return [citation_from_row(row) for row in rows]

    async def apply(
        self,
        message: Message,
        query: str,
        streamed: bool = True,
        provider_citations: Sequence[NumberedCitation] = (),
        web_markers: bool = False,
    ) -> Message:
        """Run both extractions on the frozen answer and update ``message`` in place."""
        answer = message.content
        split = extract_reasoning(answer)
        message.content = split.content
        message.reasoning = split.reasoning
        message.reasoning_in_progress = split.in_progress

        if not streamed and provider_citations:
            message.web_citations = list(provider_citations)
        elif web_markers:
            message.web_citations = web_citations_from_markers(split.content) or None

        message.citations = await self.bill_citations(query, split.content)
        return message
