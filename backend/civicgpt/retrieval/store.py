"""Typed lookups against the legislative relational store.

Every method returns plain row dicts as PostgREST hands them back; callers
decide how to render them. Errors (``APIError``/``RateLimitError``) propagate
so each retriever can decide whether a failure means "empty".
"""
import logging
from typing import Iterable, Optional, Sequence

from ..clients.supabase import SupabaseClient, ilike_any, quote_column

logger = logging.getLogger(__name__)

BILL_COLUMNS = (
    "bill_id,bill_number,title,description,status_desc,committee,"
    "last_action,last_action_date,session_id,state_link"
)

BUDGET_APROPS_TABLE = "budget_2027-aprops"
BUDGET_CAPITAL_TABLE = "budget_2027_capital_aprops"
BUDGET_SPENDING_TABLE = "budget_2027_spending"

SPENDING_YEARS = (
    "2016-17 Actuals", "2017-18 Actuals", "2018-19 Actuals", "2019-20 Actuals",
    "2020-21 Actuals", "2021-22 Actuals", "2022-23 Actuals", "2023-24 Actuals",
    "2024-25 Actuals", "2025-26 Estimates", "2026-27 Estimates",
)
SPENDING_COLUMNS = ",".join(
    quote_column(c) for c in ("Agency", "Function", "FP Category", "Fund", "Fund Type", *SPENDING_YEARS)
)

CONTRACT_COLUMNS = (
    "contract_number,vendor_name,department_facility,contract_type,"
    "current_contract_amount,spending_to_date,contract_start_date,"
    "contract_end_date,contract_description"
)


def _session(session_id: Optional[int]) -> Optional[dict]:
    return {"session_id": session_id} if session_id else None


class LegislativeStore:
    def __init__(self, client: Optional[SupabaseClient] = None):
        self.client = client or SupabaseClient()

    @property
    def configured(self) -> bool:
        return self.client.configured

    # Bills

    async def bills_by_numbers(
        self, numbers: Sequence[str], limit: int = 10, session_id: Optional[int] = None
    ) -> list[dict]:
        if not numbers:
            return []
        return await self.client.select(
            "Bills",
            BILL_COLUMNS,
            in_={"bill_number": list(numbers)},
            eq=_session(session_id),
            limit=limit,
        )

    async def bills_by_keywords(
        self, keywords: Sequence[str], limit: int = 10, session_id: Optional[int] = None
    ) -> list[dict]:
        if not keywords:
            return []
        return await self.client.select(
            "Bills",
            BILL_COLUMNS,
            or_=ilike_any(("title", "description"), keywords),
            eq=_session(session_id),
            order=[("session_id", False)],
            limit=limit,
        )

    async def bills_by_ids(
        self, bill_ids: Iterable[int], limit: int = 10, session_id: Optional[int] = None
    ) -> list[dict]:
        ids = list(bill_ids)
        if not ids:
            return []
        return await self.client.select(
            "Bills",
            BILL_COLUMNS,
            in_={"bill_id": ids},
            eq=_session(session_id),
            order=[("session_id", False)],
            limit=limit,
        )

    async def bills_by_committee(
        self, keywords: Sequence[str], limit: int = 10, session_id: Optional[int] = None
    ) -> list[dict]:
        if not keywords:
            return []
        return await self.client.select(
            "Bills",
            BILL_COLUMNS,
            or_=ilike_any(("committee",), keywords),
            eq=_session(session_id),
            order=[("session_id", False)],
            limit=limit,
        )

    async def related_bills(self, committee: str, exclude_number: str, limit: int = 5) -> list[dict]:
        return await self.client.select(
            "Bills",
            BILL_COLUMNS,
            eq={"committee": committee},
            neq={"bill_number": exclude_number},
            order=[("session_id", False)],
            limit=limit,
        )

    # People and sponsorship

    async def people_by_name(self, keywords: Sequence[str], limit: int = 5) -> list[dict]:
        if not keywords:
            return []
        return await self.client.select(
            "People",
            "people_id,name,party,district,chamber",
            or_=ilike_any(("name",), keywords),
            limit=limit,
        )

    async def sponsored_bill_ids(self, people_ids: Iterable[int], limit: int = 30) -> list[int]:
        ids = list(people_ids)
        if not ids:
            return []
        rows = await self.client.select(
            "Sponsors",
            "bill_id",
            in_={"people_id": ids},
            eq={"position": 1},
            limit=limit,
        )
        return list(dict.fromkeys(row["bill_id"] for row in rows if row.get("bill_id") is not None))

    async def sponsors_for_bills(self, bill_ids: Iterable[int]) -> list[dict]:
        ids = list(bill_ids)
        if not ids:
            return []
        return await self.client.select(
            "Sponsors", "bill_id,people_id,position", in_={"bill_id": ids}
        )

    async def people_by_ids(self, people_ids: Iterable[int]) -> list[dict]:
        ids = list(people_ids)
        if not ids:
            return []
        return await self.client.select(
            "People", "people_id,name,party,district,chamber", in_={"people_id": ids}
        )

    async def enrich_with_sponsors(self, bills: list[dict]) -> list[dict]:
        """Attach ``primary_sponsor`` and ``co_sponsor_count`` to each bill row."""
        bill_ids = [b["bill_id"] for b in bills if b.get("bill_id") is not None]
        if not bill_ids:
            return bills

        sponsors = await self.sponsors_for_bills(bill_ids)
        primary_ids = {s["people_id"] for s in sponsors if s.get("position") == 1}
        people = {p["people_id"]: p for p in await self.people_by_ids(primary_ids)}
        logger.debug("Enriching %s bills from %s sponsor rows", len(bills), len(sponsors))

        enriched = []
        for bill in bills:
            rows = [s for s in sponsors if s.get("bill_id") == bill.get("bill_id")]
            primary = next((s for s in rows if s.get("position") == 1), None)
            enriched.append({
                **bill,
                "primary_sponsor": people.get(primary["people_id"]) if primary else None,
                "co_sponsor_count": sum(1 for s in rows if (s.get("position") or 0) > 1),
            })
        return enriched

    # Bill text

    async def bill_chunks_by_number(self, numbers: Sequence[str]) -> list[dict]:
        if not numbers:
            return []
        return await self.client.select(
            "bill_chunks",
            "bill_number,chunk_type,chunk_index,content",
            in_={"bill_number": list(numbers)},
            order=[("bill_number", True), ("chunk_index", True)],
        )

    # Budget

    async def budget_appropriations(self, keywords: Sequence[str], limit: int = 25) -> list[dict]:
        return await self.client.select(
            BUDGET_APROPS_TABLE,
            or_=ilike_any(("Agency Name",), keywords),
            limit=limit,
        )

    async def budget_capital(self, keywords: Sequence[str], limit: int = 20) -> list[dict]:
        return await self.client.select(
            BUDGET_CAPITAL_TABLE,
            or_=ilike_any(("Agency Name",), keywords),
            limit=limit,
        )

    async def budget_spending(self, keywords: Sequence[str], limit: int = 25) -> list[dict]:
        return await self.client.select(
            BUDGET_SPENDING_TABLE,
            SPENDING_COLUMNS,
            or_=ilike_any(("Agency",), keywords),
            limit=limit,
        )

    # Contracts

    async def contracts_by_department(self, keywords: Sequence[str], limit: int = 15) -> list[dict]:
        return await self.client.select(
            "Contracts",
            CONTRACT_COLUMNS,
            or_=ilike_any(("department_facility",), keywords),
            order=[("current_contract_amount", False)],
            nulls_last=True,
            limit=limit,
        )

    async def contracts_by_vendor(self, keywords: Sequence[str], limit: int = 10) -> list[dict]:
        return await self.client.select(
            "Contracts",
            CONTRACT_COLUMNS,
            or_=ilike_any(("vendor_name",), keywords),
            order=[("current_contract_amount", False)],
            nulls_last=True,
            limit=limit,
        )
