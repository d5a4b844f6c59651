import pytest

from civicgpt.clients.nys_legislation import SEARCH_TYPES
from civicgpt.models.schemas import BillEntity, CommitteeEntity, EntityContext, MemberEntity
from civicgpt.retrieval.bill_numbers import parse_query
from civicgpt.retrieval.domain import (
    BudgetRetriever,
    ContractRetriever,
    DomainRetriever,
    format_money,
    parse_amount,
)
from civicgpt.retrieval.embeddings import EmbeddingError
from civicgpt.retrieval.live import LiveLegislationRetriever, search_types_for
from civicgpt.retrieval.semantic import FullTextRetriever, SemanticRetriever, cap_per_bill
from civicgpt.retrieval.tiered import TieredRetriever

from conftest import CLEAN_WATER_ACT, SPONSOR, FakeChunkIndex, FakeEmbedder, FakeStore


def _chunk(bill_number, similarity, content="text", chunk_type="body"):
    return {
        "bill_number": bill_number,
        "chunk_type": chunk_type,
        "content": content,
        "similarity": similarity,
    }


@pytest.mark.asyncio
async def test_exact_id_short_circuits_other_tiers(clean_water_store):
    retriever = TieredRetriever(clean_water_store)

    result = await retriever.retrieve(parse_query("Tell me about housing bills like S256"))

    assert result.source == "exact-id"
    assert result.identifiers == ["S256"]
    assert clean_water_store.calls["bills_by_numbers"] == 1
    assert clean_water_store.calls["bills_by_keywords"] == 0
    assert clean_water_store.calls["people_by_name"] == 0
    assert clean_water_store.calls["bills_by_committee"] == 0


@pytest.mark.asyncio
async def test_tiers_fall_through_to_sponsor():
    store = FakeStore(
        bills=[CLEAN_WATER_ACT],
        people=[SPONSOR],
        sponsors=[{"bill_id": 1001, "people_id": 7, "position": 1}],
    )
    retriever = TieredRetriever(store)

    result = await retriever.retrieve(parse_query("What has Harckham introduced?"))

    assert result.source == "sponsor"
    assert result.identifiers == ["S256"]
    assert "Primary Sponsor: Pete Harckham (D, Senate)" in result.records[0].text
    assert store.calls["bills_by_keywords"] == 1
    assert store.calls["bills_by_committee"] == 0


@pytest.mark.asyncio
async def test_failing_tier_is_treated_as_empty(clean_water_store):
    async def broken(*args, **kwargs):
        raise RuntimeError("connection reset")

    clean_water_store.bills_by_keywords = broken
    retriever = TieredRetriever(clean_water_store)

    result = await retriever.retrieve(parse_query("environmental conservation"))

    assert result.source == "committee"
    assert "S256" in result.identifiers


@pytest.mark.asyncio
async def test_no_tier_match_returns_empty(clean_water_store):
    result = await TieredRetriever(clean_water_store).retrieve(parse_query("zebra migration"))
    assert result.is_empty


def test_cap_per_bill_keeps_best_two():
    chunks = [_chunk("S256", 0.9, "a"), _chunk("S256", 0.8, "b"), _chunk("A512", 0.7), _chunk("S256", 0.6, "c")]
    kept, bills = cap_per_bill(chunks, 2)
    assert [c["content"] for c in kept if c["bill_number"] == "S256"] == ["a", "b"]
    assert bills == 2


@pytest.mark.asyncio
async def test_semantic_dedup_cap():
    index = FakeChunkIndex(matches=[_chunk("S256", 0.9 - i * 0.05, f"fragment {i}") for i in range(5)])
    retriever = SemanticRetriever(FakeEmbedder(), index, threshold=0.55, match_count=15, per_bill=2)

    result = await retriever.retrieve("clean water standards")

    assert result.source == "semantic"
    assert len(result.records) == 2
    assert result.records[0].text.startswith("[BODY] (90% relevance): fragment 0")


@pytest.mark.asyncio
async def test_semantic_degrades_on_embedding_failure():
    index = FakeChunkIndex(matches=[_chunk("S256", 0.9)])
    retriever = SemanticRetriever(FakeEmbedder(error=EmbeddingError("no key")), index)

    result = await retriever.retrieve("clean water")

    assert result.is_empty
    assert index.match_calls == 0


@pytest.mark.asyncio
async def test_full_text_groups_chunks_per_bill():
    index = FakeChunkIndex(chunks=[
        {"bill_number": "S256", "chunk_index": 0, "content": "Title: Clean Water Act"},
        {"bill_number": "S256", "chunk_index": 1, "content": "Section 1. Short title."},
    ])

    result = await FullTextRetriever(index).retrieve(["S256"])

    assert result.identifiers == ["S256"]
    assert result.records[0].text == "Title: Clean Water Act\nSection 1. Short title."


@pytest.mark.asyncio
async def test_budget_retriever_never_runs_without_financial_terms():
    store = FakeStore(budget=[{"Agency Name": "Department of Health"}])
    retriever = BudgetRetriever(store)

    assert not retriever.matches("Tell me about S256")
    assert await retriever.retrieve("Tell me about S256") == []
    assert store.calls["budget_appropriations"] == 0


@pytest.mark.asyncio
async def test_budget_retriever_labels_and_totals():
    store = FakeStore(budget=[
        {"Agency Name": "Department of Health", "Appropriations Recommended 2026-27": "1,000,000"},
        {"Agency Name": "Department of Health", "Appropriations Recommended 2026-27": 250000.5},
    ])

    results = await BudgetRetriever(store).retrieve("What is the health budget?")

    assert len(results) == 1
    assert results[0].source == "domain:budget"
    assert results[0].label.startswith("BUDGET APPROPRIATIONS DATA (2 records")
    assert results[0].summary == "TOTAL: 2 appropriations, $1,250,000.50 recommended for 2026-27"
    assert store.calls["budget_capital"] == 1


@pytest.mark.asyncio
async def test_contract_retriever_dedupes_and_sorts_by_amount():
    store = FakeStore(contracts=[
        {"contract_number": "C1", "vendor_name": "Acme", "current_contract_amount": "100", "spending_to_date": "50"},
        {"contract_number": "C2", "vendor_name": "Bolt", "current_contract_amount": "900", "spending_to_date": "0"},
    ])

    results = await ContractRetriever(store).retrieve("Which vendor contracts does Acme hold?")

    assert [r.identifier for r in results[0].records] == ["C2", "C1"]
    assert results[0].summary == "TOTAL: 2 contracts worth $1,000, $50 spent to date"


def test_money_helpers():
    assert parse_amount("$1,234.50") == 1234.5
    assert parse_amount("n/a") == 0.0
    assert format_money(1234) == "$1,234"


def test_domain_retriever_base_cannot_be_instantiated(clean_water_store):
    with pytest.raises(TypeError):
        DomainRetriever(clean_water_store)


class _FakeLiveClient:
    configured = True

    def __init__(self, bill=None, member=None, search=None):
        self.bill = bill
        self.member = member
        self.search = search or {}
        self.searched_types = []
        self.member_ids = []

    async def get_bill(self, print_no, session_year=None):
        return self.bill

    async def get_member(self, member_id, session_year=None):
        self.member_ids.append(member_id)
        return self.member

    async def search_all(self, term, search_types=("bills", "members", "laws")):
        self.searched_types.append(tuple(search_types))
        return self.search


@pytest.mark.asyncio
async def test_live_retriever_prefers_direct_bill_lookup():
    client = _FakeLiveClient(bill={"printNo": "S256", "title": "Clean Water Act"})
    entity = EntityContext(bill=BillEntity(bill_number="S256"))

    result = await LiveLegislationRetriever(client).retrieve("S256", entity)

    assert result.source == "live-api"
    assert result.identifiers == ["S256"]
    assert client.searched_types == []


@pytest.mark.asyncio
async def test_live_retriever_looks_up_member_entity_by_id():
    client = _FakeLiveClient(member={"memberId": 7, "shortName": "HARCKHAM", "chamber": "SENATE"})
    entity = EntityContext(member=MemberEntity(people_id=7, name="Pete Harckham"))

    result = await LiveLegislationRetriever(client).retrieve("Pete Harckham", entity)

    assert client.member_ids == [7]
    assert result.identifiers == ["7"]
    assert client.searched_types == []


@pytest.mark.asyncio
async def test_live_retriever_restricts_search_to_entity_type():
    client = _FakeLiveClient(search={"members": [{"memberId": 42, "fullName": "Pete Harckham"}]})
    entity = EntityContext(member=MemberEntity(name="Pete Harckham"))

    result = await LiveLegislationRetriever(client).retrieve("Pete Harckham", entity)

    assert client.searched_types == [("members",)]
    assert result.identifiers == ["42"]


@pytest.mark.asyncio
async def test_live_retriever_falls_back_to_search():
    client = _FakeLiveClient(search={"members": [{"memberId": 42, "fullName": "Pete Harckham"}]})

    result = await LiveLegislationRetriever(client).retrieve("Harckham")

    assert result.identifiers == ["42"]
    assert client.searched_types == [("bills", "members", "laws")]


def test_committee_entities_search_every_type():
    assert search_types_for(EntityContext(committee=CommitteeEntity(committee_name="Codes"))) == SEARCH_TYPES
    assert search_types_for(None) == SEARCH_TYPES
