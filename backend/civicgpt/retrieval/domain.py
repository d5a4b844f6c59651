"""Keyword-gated retrievers for budget and contract records."""
import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from ..config import get_settings
from .bill_numbers import BUDGET_STOPWORDS, CONTRACT_STOPWORDS, extract_keywords
from .store import SPENDING_YEARS, LegislativeStore
from .types import DOMAIN_PREFIX, RetrievalResult, RetrievedRecord

logger = logging.getLogger(__name__)

BUDGET_GATE = re.compile(
    r"budget|appropriat|spending|fiscal|funding|agency|department|capital.*project|"
    r"allocation|expenditure|revenue|state\s*operations|reappropriation",
    re.IGNORECASE,
)

CONTRACT_GATE = re.compile(
    r"contract|vendor|procurement|grant|awarded|bidder|rfp|request\s*for\s*proposal|"
    r"service\s*agreement|purchase\s*order|state\s*comptroller",
    re.IGNORECASE,
)

DOMAIN_KEYWORD_LIMIT = 4


def parse_amount(value: Any) -> float:
    """Parse store amounts, which may be numbers or comma-formatted text."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace(",", "").replace("$", "").strip())
    except ValueError:
        return 0.0


def format_money(value: Any) -> str:
    amount = parse_amount(value)
    if amount.is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


class DomainRetriever(ABC):
    """Base for gated retrievers; subclasses set the gate, stopwords and queries."""

    name = "domain"
    gate: re.Pattern = BUDGET_GATE
    stopwords: frozenset = frozenset()

    def __init__(self, store: LegislativeStore):
        self.store = store
        self.settings = get_settings()

    @property
    def source(self) -> str:
        return f"{DOMAIN_PREFIX}{self.name}"

    def matches(self, text: str) -> bool:
        return bool(text) and self.gate.search(text) is not None

    def keywords(self, text: str) -> list[str]:
        return extract_keywords(text, self.stopwords, DOMAIN_KEYWORD_LIMIT)

    async def retrieve(self, text: str) -> list[RetrievalResult]:
        if not self.matches(text):
            return []
        keywords = self.keywords(text)
        if not keywords:
            return []
        try:
            return await self._retrieve(keywords)
        except Exception as e:
            logger.warning(f"{self.name} retriever failed: {e}")
            return []

    @abstractmethod
    async def _retrieve(self, keywords: list[str]) -> list[RetrievalResult]:
        ...


class BudgetRetriever(DomainRetriever):
    name = "budget"
    gate = BUDGET_GATE
    stopwords = BUDGET_STOPWORDS

    @staticmethod
    def _appropriation(row: dict) -> str:
        program = f" - {row['Program Name']}" if row.get("Program Name") else ""
        return (
            f"{row.get('Agency Name')}{program} | {row.get('Appropriation Category') or ''} | "
            f"Fund: {row.get('Fund Name') or ''} ({row.get('Fund Type') or ''}) | "
            f"Available 2025-26: {format_money(row.get('Appropriations Available 2025-26'))} | "
            f"Recommended 2026-27: {format_money(row.get('Appropriations Recommended 2026-27'))} | "
            f"Reappropriations: {format_money(row.get('Reappropriations Recommended 2026-27'))}"
        )

    @staticmethod
    def _capital(row: dict) -> str:
        return (
            f"{row.get('Program Name') or ''}: {row.get('Description') or 'No description'} | "
            f"Recommended: {format_money(row.get('Appropriations Recommended 2026-27'))} | "
            f"Reappropriations: {format_money(row.get('Reappropriations Recommended 2026-27'))} | "
            f"Encumbrance: {format_money(row.get('Encumbrance as of 1/16/2026'))} | "
            f"Source: {row.get('Financing Source') or ''}"
        )

    @staticmethod
    def _spending(row: dict) -> str:
        years = " | ".join(
            f"{year.replace(' Actuals', '').replace(' Estimates', ' Est')}: {format_money(row.get(year))}"
            for year in SPENDING_YEARS
        )
        return (
            f"{row.get('Agency')} | {row.get('Function') or ''} | {row.get('FP Category') or ''} | "
            f"{row.get('Fund') or ''} | {years}"
        )

    @staticmethod
    def _record(row: dict, key: str, text: str) -> RetrievedRecord:
        return RetrievedRecord(identifier=str(row.get(key) or ""), text=text, data=row)

    async def _retrieve(self, keywords: list[str]) -> list[RetrievalResult]:
        aprops, capital, spending = await asyncio.gather(
            self.store.budget_appropriations(keywords, limit=self.settings.budget_aprops_limit),
            self.store.budget_capital(keywords, limit=self.settings.budget_capital_limit),
            self.store.budget_spending(keywords, limit=self.settings.budget_spending_limit),
        )
        logger.info(
            f"Budget search found {len(aprops)} appropriations, {len(capital)} capital, "
            f"{len(spending)} spending records"
        )

        results = []
        if aprops:
            recommended = sum(parse_amount(r.get("Appropriations Recommended 2026-27")) for r in aprops)
            results.append(RetrievalResult(
                source=self.source,
                label=f"BUDGET APPROPRIATIONS DATA ({len(aprops)} records from NYSgpt database)",
                records=tuple(self._record(r, "Agency Name", self._appropriation(r)) for r in aprops),
                summary=f"TOTAL: {len(aprops)} appropriations, {format_money(recommended)} recommended for 2026-27",
            ))
        if capital:
            results.append(RetrievalResult(
                source=self.source,
                label=f"CAPITAL BUDGET APPROPRIATIONS ({len(capital)} records)",
                records=tuple(self._record(r, "Program Name", self._capital(r)) for r in capital),
            ))
        if spending:
            results.append(RetrievalResult(
                source=self.source,
                label=f"BUDGET SPENDING HISTORY ({len(spending)} records, 10-year actuals + estimates)",
                records=tuple(self._record(r, "Agency", self._spending(r)) for r in spending),
            ))
        return results


class ContractRetriever(DomainRetriever):
    name = "contracts"
    gate = CONTRACT_GATE
    stopwords = CONTRACT_STOPWORDS

    @staticmethod
    def _contract(row: dict) -> str:
        amount = parse_amount(row.get("current_contract_amount"))
        spent = parse_amount(row.get("spending_to_date"))
        pct = f"{spent / amount * 100:.1f}" if amount > 0 else "0.0"
        return (
            f"{row.get('contract_number')}: {row.get('vendor_name')} | "
            f"Dept: {row.get('department_facility')} | Type: {row.get('contract_type') or ''} | "
            f"Amount: {format_money(amount)} | Spent: {format_money(spent)} ({pct}%) | "
            f"{row.get('contract_start_date') or ''} to {row.get('contract_end_date') or ''} | "
            f"{row.get('contract_description') or ''}"
        )

    async def _retrieve(self, keywords: list[str]) -> list[RetrievalResult]:
        by_department, by_vendor = await asyncio.gather(
            self.store.contracts_by_department(keywords, limit=self.settings.contracts_department_limit),
            self.store.contracts_by_vendor(keywords, limit=self.settings.contracts_vendor_limit),
        )

        seen: set[str] = set()
        merged = []
        for row in [*by_department, *by_vendor]:
            number = row.get("contract_number")
            if number and number not in seen:
                seen.add(number)
                merged.append(row)

        merged.sort(key=lambda r: parse_amount(r.get("current_contract_amount")), reverse=True)
        contracts = merged[:self.settings.contracts_total_limit]
        if not contracts:
            return []

        total_amount = sum(parse_amount(c.get("current_contract_amount")) for c in contracts)
        total_spent = sum(parse_amount(c.get("spending_to_date")) for c in contracts)
        logger.info(f"Contract search found {len(contracts)} contracts worth {format_money(total_amount)}")

        return [RetrievalResult(
            source=self.source,
            label=f"STATE CONTRACTS DATA ({len(contracts)} contracts from NYSgpt database)",
            records=tuple(
                RetrievedRecord(identifier=c["contract_number"], text=self._contract(c), data=c)
                for c in contracts
            ),
            summary=(
                f"TOTAL: {len(contracts)} contracts worth {format_money(total_amount)}, "
                f"{format_money(total_spent)} spent to date"
            ),
        )]
