import logging
from typing import Optional

from .base import BaseAPIClient, APIError
from ..config import get_settings
from ..retrieval.bill_numbers import current_session_year, normalize_session_year

logger = logging.getLogger(__name__)

SEARCH_TYPES = ("bills", "members", "laws")


class NYSLegislationClient(BaseAPIClient):
    """Client for the NY Senate Open Legislation API (v3)."""

    def __init__(self, api_key: Optional[str] = None):
        settings = get_settings()
        super().__init__(base_url=settings.nys_base_url, timeout=15.0)
        self.api_key = api_key if api_key is not None else settings.nys_api_key

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_headers(self) -> dict:
        return {"Accept": "application/json"}

    @staticmethod
    def _unwrap(data: Optional[dict], keep: int) -> list[dict]:
        if not data or not data.get("success"):
            return []
        result = data.get("result") or {}
        items = result.get("items")
        if items is None:
            # Single-entity responses put the record directly under ``result``.
            return [result] if result else []
        return [item.get("result", item) for item in items[:keep] if isinstance(item, dict)]

    async def search(self, search_type: str, term: str, limit: int = 10, keep: int = 5) -> list[dict]:
        url = f"{self.base_url}/{search_type}/search"
        params = {"term": term, "limit": limit, "key": self.api_key}

        logger.info(f"Searching NYS {search_type}: {term!r}")

        data = await self._request_with_retry(
            method="GET",
            url=url,
            headers=self._get_headers(),
            params=params,
        )
        return self._unwrap(data, keep)

    async def get_bill(
        self, print_no: str, session_year: Optional[int] = None, full_text: bool = False
    ) -> Optional[dict]:
        year = normalize_session_year(session_year) if session_year else current_session_year()
        url = f"{self.base_url}/bills/{year}/{print_no}"
        params = {"key": self.api_key}
        if full_text:
            params.update({"view": "default", "fullTextFormat": "html"})

        data = await self._request_with_retry(
            method="GET",
            url=url,
            headers=self._get_headers(),
            params=params,
        )
        found = self._unwrap(data, keep=1)
        return found[0] if found else None

    async def get_member(self, member_id: int, session_year: Optional[int] = None) -> Optional[dict]:
        year = session_year or current_session_year()
        url = f"{self.base_url}/members/{year}/{member_id}"

        data = await self._request_with_retry(
            method="GET",
            url=url,
            headers=self._get_headers(),
            params={"key": self.api_key},
        )
        found = self._unwrap(data, keep=1)
        return found[0] if found else None

    async def search_all(
        self,
        term: str,
        search_types: tuple[str, ...] = SEARCH_TYPES,
    ) -> dict[str, list[dict]]:
        """Search each record type, skipping types whose request fails."""
        if not self.configured:
            logger.info("NYS API key not available, skipping legislative data search")
            return {}

        results: dict[str, list[dict]] = {}
        for search_type in search_types:
            try:
                items = await self.search(search_type, term)
            except APIError as e:
                logger.warning(f"NYS {search_type} search failed: {e}")
                continue
            if items:
                results[search_type] = items
        return results


def format_live_bill(bill: dict) -> str:
    status = bill.get("status") or {}
    sponsor = (bill.get("sponsor") or {}).get("member") or {}
    lines = [
        f"BILL {bill.get('printNo') or bill.get('basePrintNo')}: {bill.get('title') or 'No title'}",
        f"   Current Status: {status.get('statusDesc') or 'Unknown'}",
        f"   Primary Sponsor: {sponsor.get('shortName') or 'Unknown'} ({sponsor.get('chamber') or 'Unknown Chamber'})",
    ]
    if status.get("committeeName"):
        lines.append(f"   Committee: {status['committeeName']}")
    if status.get("actionDate"):
        lines.append(f"   Last Action Date: {status['actionDate']}")

    versions = ((bill.get("amendments") or {}).get("items")) or {}
    if versions:
        keys = list(versions)
        lines.append(f"   Amendments: {', '.join(k or 'original' for k in keys)}")
        same_as = ((versions[keys[-1]] or {}).get("sameAs") or {}).get("items") or []
        if same_as:
            companions = ", ".join(s.get("printNo") or s.get("basePrintNo") or "" for s in same_as)
            lines.append(f"   Companion Bill(s) (Same-As): {companions}")
    return "\n".join(lines)


def format_live_member(member: dict) -> str:
    name = member.get("shortName") or member.get("fullName") or "Unknown"
    return (
        f"MEMBER {name} ({member.get('chamber') or 'Unknown Chamber'})\n"
        f"   District: {member.get('districtCode') or 'N/A'}"
    )


def format_live_law(law: dict) -> str:
    text = f"LAW {law.get('lawId')}: {law.get('name') or law.get('title') or 'No name available'}"
    if law.get("lawType"):
        text += f"\n   Type: {law['lawType']}"
    return text
