from collections import Counter

import pytest

CLEAN_WATER_ACT = {
    "bill_id": 1001,
    "bill_number": "S256",
    "title": "Clean Water Act",
    "description": "Establishes drinking water quality standards for public water systems.",
    "status_desc": "In Committee",
    "committee": "Environmental Conservation",
    "session_id": 2025,
    "state_link": "https://www.nysenate.gov/legislation/bills/2025/S256",
}

SPONSOR = {"people_id": 7, "name": "Pete Harckham", "party": "D", "district": "40", "chamber": "Senate"}


class FakeStore:
    """In-memory stand-in for ``LegislativeStore`` that counts every call."""

    def __init__(self, bills=(), people=(), sponsors=(), budget=(), contracts=()):
        self.bills = [dict(b) for b in bills]
        self.people = [dict(p) for p in people]
        self.sponsors = [dict(s) for s in sponsors]
        self.budget = [dict(r) for r in budget]
        self.contracts = [dict(c) for c in contracts]
        self.calls = Counter()

    async def bills_by_numbers(self, numbers, limit=10, session_id=None):
        self.calls["bills_by_numbers"] += 1
        return [b for b in self.bills if b["bill_number"] in numbers][:limit]

    async def bills_by_keywords(self, keywords, limit=10, session_id=None):
        self.calls["bills_by_keywords"] += 1
        return [
            b for b in self.bills
            if any(k.lower() in (b.get("title") or "").lower() for k in keywords)
        ][:limit]

    async def people_by_name(self, keywords, limit=5):
        self.calls["people_by_name"] += 1
        return [p for p in self.people if any(k.lower() in p["name"].lower() for k in keywords)][:limit]

    async def sponsored_bill_ids(self, people_ids, limit=30):
        self.calls["sponsored_bill_ids"] += 1
        ids = set(people_ids)
        return [s["bill_id"] for s in self.sponsors if s["people_id"] in ids and s["position"] == 1]

    async def bills_by_ids(self, bill_ids, limit=10, session_id=None):
        self.calls["bills_by_ids"] += 1
        return [b for b in self.bills if b["bill_id"] in bill_ids][:limit]

    async def bills_by_committee(self, keywords, limit=10, session_id=None):
        self.calls["bills_by_committee"] += 1
        return [
            b for b in self.bills
            if any(k.lower() in (b.get("committee") or "").lower() for k in keywords)
        ][:limit]

    async def enrich_with_sponsors(self, bills):
        self.calls["enrich_with_sponsors"] += 1
        people = {p["people_id"]: p for p in self.people}
        enriched = []
        for bill in bills:
            primary = next(
                (s for s in self.sponsors if s["bill_id"] == bill["bill_id"] and s["position"] == 1),
                None,
            )
            enriched.append({
                **bill,
                "primary_sponsor": people.get(primary["people_id"]) if primary else None,
                "co_sponsor_count": 0,
            })
        return enriched

    async def related_bills(self, committee, exclude_number, limit=5):
        self.calls["related_bills"] += 1
        related = [
            b for b in self.bills
            if b.get("committee") == committee and b["bill_number"] != exclude_number
        ]
        related.sort(key=lambda b: b.get("session_id") or 0, reverse=True)
        return related[:limit]

    async def budget_appropriations(self, keywords, limit=25):
        self.calls["budget_appropriations"] += 1
        return self.budget[:limit]

    async def budget_capital(self, keywords, limit=20):
        self.calls["budget_capital"] += 1
        return []

    async def budget_spending(self, keywords, limit=25):
        self.calls["budget_spending"] += 1
        return []

    async def contracts_by_department(self, keywords, limit=15):
        self.calls["contracts_by_department"] += 1
        return self.contracts[:limit]

    async def contracts_by_vendor(self, keywords, limit=10):
        self.calls["contracts_by_vendor"] += 1
        return self.contracts[:limit]


class FakeEmbedder:
    def __init__(self, vector=(0.1, 0.2, 0.3), error=None):
        self.vector = list(vector)
        self.error = error
        self.calls = 0

    async def embed(self, texts):
        self.calls += 1
        if self.error:
            raise self.error
        return [list(self.vector) for _ in texts]

    async def embed_one(self, text):
        return (await self.embed([text]))[0]


class FakeChunkIndex:
    def __init__(self, matches=(), chunks=()):
        self.matches = [dict(m) for m in matches]
        self.chunks = [dict(c) for c in chunks]
        self.match_calls = 0
        self.last_filters = None
        self.chunk_calls = 0

    async def match(self, embedding, threshold, count, session_id=None, bill_number=None):
        self.match_calls += 1
        self.last_filters = {"session_id": session_id, "bill_number": bill_number}
        return [
            m for m in self.matches
            if m["similarity"] >= threshold and bill_number in (None, m["bill_number"])
        ][:count]

    async def chunks_for_bills(self, numbers):
        self.chunk_calls += 1
        return [c for c in self.chunks if c["bill_number"] in numbers]


@pytest.fixture
def clean_water_store():
    return FakeStore(
        bills=[
            CLEAN_WATER_ACT,
            {**CLEAN_WATER_ACT, "bill_id": 1002, "bill_number": "S300", "title": "Wetlands Protection", "session_id": 2023},
            {**CLEAN_WATER_ACT, "bill_id": 1003, "bill_number": "A512", "title": "Lead Pipe Replacement", "session_id": 2025},
        ],
        people=[SPONSOR],
        sponsors=[{"bill_id": 1001, "people_id": 7, "position": 1}],
    )
