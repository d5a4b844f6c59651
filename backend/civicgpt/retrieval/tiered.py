import logging
from typing import Awaitable, Callable, Optional

from .bill_numbers import QueryTerms
from .store import LegislativeStore
from .types import RetrievalResult, RetrievedRecord

logger = logging.getLogger(__name__)

TierLookup = Callable[[QueryTerms, Optional[int]], Awaitable[list[dict]]]


def format_bill(bill: dict) -> str:
    lines = [
        f"BILL {bill.get('bill_number')}: {bill.get('title') or 'No title'}",
        f"   Session: {bill.get('session_id') or 'Unknown'}",
        f"   Status: {bill.get('status_desc') or 'Unknown'}",
    ]
    sponsor = bill.get("primary_sponsor")
    if sponsor:
        lines.append(
            f"   Primary Sponsor: {sponsor.get('name')} "
            f"({sponsor.get('party') or 'Unknown Party'}, {sponsor.get('chamber') or 'Unknown Chamber'})"
        )
    co_sponsors = bill.get("co_sponsor_count") or 0
    if co_sponsors:
        plural = "s" if co_sponsors > 1 else ""
        lines.append(f"   Co-Sponsors: {co_sponsors} additional legislator{plural}")
    if bill.get("committee"):
        lines.append(f"   Committee: {bill['committee']}")
    description = bill.get("description")
    if description:
        suffix = "..." if len(description) > 200 else ""
        lines.append(f"   Description: {description[:200]}{suffix}")
    if bill.get("state_link"):
        lines.append(f"   Link: {bill['state_link']}")
    return "\n".join(lines)


class TieredRetriever:
    """Exact id, then keyword, then sponsor name, then committee name.

    The first tier that yields bills wins; later tiers never run. A tier that
    raises is logged and treated as empty.
    """

    def __init__(self, store: LegislativeStore, limit: int = 10):
        self.store = store
        self.limit = limit
        self.tiers: list[tuple[str, TierLookup]] = [
            ("exact-id", self._exact_id),
            ("keyword", self._keyword),
            ("sponsor", self._sponsor),
            ("committee", self._committee),
        ]

    async def _exact_id(self, terms: QueryTerms, session_id: Optional[int]) -> list[dict]:
        return await self.store.bills_by_numbers(terms.bill_numbers, limit=self.limit, session_id=session_id)

    async def _keyword(self, terms: QueryTerms, session_id: Optional[int]) -> list[dict]:
        return await self.store.bills_by_keywords(terms.keywords, limit=self.limit, session_id=session_id)

    async def _sponsor(self, terms: QueryTerms, session_id: Optional[int]) -> list[dict]:
        people = await self.store.people_by_name(terms.keywords)
        if not people:
            return []
        logger.info(f"Found {len(people)} members matching keywords, fetching their bills")
        bill_ids = await self.store.sponsored_bill_ids(p["people_id"] for p in people)
        return await self.store.bills_by_ids(bill_ids, limit=self.limit, session_id=session_id)

    async def _committee(self, terms: QueryTerms, session_id: Optional[int]) -> list[dict]:
        return await self.store.bills_by_committee(terms.keywords, limit=self.limit, session_id=session_id)

    async def retrieve(self, terms: QueryTerms, session_id: Optional[int] = None) -> RetrievalResult:
        for name, lookup in self.tiers:
            if name == "exact-id" and not terms.bill_numbers:
                continue
            if name != "exact-id" and not terms.keywords:
                continue

            try:
                bills = await lookup(terms, session_id)
            except Exception as e:
                logger.warning(f"Tier {name} lookup failed, falling through: {e}")
                continue
            if not bills:
                continue

            logger.info(f"Tier {name} found {len(bills)} bills")
            try:
                bills = await self.store.enrich_with_sponsors(bills)
            except Exception as e:
                logger.warning(f"Sponsor enrichment failed for tier {name}: {e}")

            records = tuple(
                RetrievedRecord(identifier=bill.get("bill_number") or "", text=format_bill(bill), data=bill)
                for bill in bills
            )
            return RetrievalResult(source=name, records=records)

        return RetrievalResult.empty("tiered")
