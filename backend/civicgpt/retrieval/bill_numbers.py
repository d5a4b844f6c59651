"""Pure parsing helpers for legislative identifiers and query keywords.

Nothing in here touches the network; retrievers and the citation extractor
consume the typed output (``QueryTerms``) instead of running their own regexes.
"""
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

# Identifier-shaped tokens used for retrieval (Assembly, Senate, K resolutions).
BILL_NUMBER_PATTERN = re.compile(r"\b[ASK]\d+", re.IGNORECASE)

# Looser pattern used when scanning finished answers for citations.
CITATION_BILL_PATTERN = re.compile(r"\b[ASJK]\d{3,}[A-Z]?", re.IGNORECASE)

_CANONICAL = re.compile(r"^([A-Z])(\d+)([A-Z]?)$")

TIER_STOPWORDS = frozenset({
    "the", "a", "an", "in", "on", "at", "for", "to", "of", "and", "or", "but",
    "bills", "bill", "legislation", "about", "tell", "me", "any", "introduced",
    "great", "now", "what", "does", "their", "this", "that", "with", "from",
    "have", "been", "they", "member", "assembly", "senate", "senator",
    "legislator", "representative",
})

BUDGET_STOPWORDS = frozenset({
    "tell", "about", "budget", "appropriation", "spending", "what", "this",
    "funding", "used", "from", "prior", "year", "recent", "years", "changed",
    "trends", "capital", "project", "allocation", "expenditure", "revenue",
    "fiscal", "department", "agency",
})

CONTRACT_STOPWORDS = frozenset({
    "tell", "about", "contract", "contracts", "vendor", "what", "this", "does",
    "have", "grant", "procurement", "with", "related", "their", "them", "show",
})


def normalize_bill_number(raw: Optional[str]) -> str:
    """Canonicalize a bill number: ``"S00256" -> "S256"``, ``"a12b" -> "A12B"``.

    Input that does not look like a bill number comes back uppercased.
    """
    if not raw:
        return ""
    candidate = raw.strip().upper()
    match = _CANONICAL.match(candidate)
    if not match:
        return raw.upper()
    prefix, digits, suffix = match.groups()
    return f"{prefix}{digits.lstrip('0') or '0'}{suffix}"


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


def extract_bill_numbers(text: Optional[str], pattern: re.Pattern = BILL_NUMBER_PATTERN) -> list[str]:
    if not text:
        return []
    return _unique(normalize_bill_number(m) for m in pattern.findall(text))


def has_bill_number(text: Optional[str]) -> bool:
    return bool(text) and BILL_NUMBER_PATTERN.search(text) is not None


def extract_keywords(
    text: Optional[str],
    stopwords: frozenset = TIER_STOPWORDS,
    limit: int = 3,
) -> list[str]:
    if not text:
        return []
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    return [w for w in words if len(w) > 3 and w not in stopwords][:limit]


@dataclass(frozen=True)
class QueryTerms:
    bill_numbers: tuple[str, ...]
    keywords: tuple[str, ...]


def parse_query(text: str, keyword_limit: int = 3) -> QueryTerms:
    return QueryTerms(
        bill_numbers=tuple(extract_bill_numbers(text)),
        keywords=tuple(extract_keywords(text, TIER_STOPWORDS, keyword_limit)),
    )


def normalize_session_year(year: int) -> int:
    # NYS sessions run two years and start in odd years.
    return year if year % 2 == 1 else year - 1


def current_session_year(today: Optional[date] = None) -> int:
    return normalize_session_year((today or date.today()).year)
