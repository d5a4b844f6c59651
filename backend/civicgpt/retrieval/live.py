import logging
from typing import Optional

from ..clients.base import APIError
from ..clients.nys_legislation import (
    SEARCH_TYPES,
    NYSLegislationClient,
    format_live_bill,
    format_live_law,
    format_live_member,
)
from ..models.schemas import EntityContext
from .types import LIVE_API, RetrievalResult, RetrievedRecord

logger = logging.getLogger(__name__)

# Entity pages narrow the live search to their own record type.
ENTITY_SEARCH_TYPES = {"bill": "bills", "member": "members"}


def search_types_for(entity: Optional[EntityContext]) -> tuple[str, ...]:
    search_type = ENTITY_SEARCH_TYPES.get(entity.kind) if entity else None
    return (search_type,) if search_type else SEARCH_TYPES


class LiveLegislationRetriever:
    """Current bills, members and laws from the Open Legislation API."""

    def __init__(self, client: NYSLegislationClient):
        self.client = client

    @property
    def configured(self) -> bool:
        return self.client.configured

    async def _direct(self, entity: Optional[EntityContext]) -> dict[str, list[dict]]:
        if entity is None:
            return {}
        try:
            if entity.bill and entity.bill.bill_number:
                bill = await self.client.get_bill(entity.bill.bill_number)
                return {"bills": [bill]} if bill else {}
            if entity.member and entity.member.people_id is not None:
                member = await self.client.get_member(entity.member.people_id)
                return {"members": [member]} if member else {}
        except APIError as e:
            logger.warning(f"Live {entity.kind} lookup failed: {e}")
        return {}

    async def retrieve(self, term: str, entity: Optional[EntityContext] = None) -> RetrievalResult:
        if not self.client.configured:
            return RetrievalResult.empty(LIVE_API)

        found = await self._direct(entity)
        if not found:
            found = await self.client.search_all(term, search_types_for(entity))

        records = []
        for bill in found.get("bills", []):
            number = bill.get("printNo") or bill.get("basePrintNo") or ""
            records.append(RetrievedRecord(identifier=number, text=format_live_bill(bill), data=bill))
        for member in found.get("members", []):
            ident = str(member.get("memberId") or member.get("shortName") or "")
            records.append(RetrievedRecord(identifier=ident, text=format_live_member(member), data=member))
        for law in found.get("laws", []):
            records.append(RetrievedRecord(identifier=str(law.get("lawId") or ""), text=format_live_law(law), data=law))

        logger.info(f"Live legislature lookup returned {len(records)} records")
        return RetrievalResult(source=LIVE_API, records=tuple(records))
