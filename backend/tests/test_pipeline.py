import pytest

from civicgpt.chat.citations import CitationExtractor, StoreBillLookup
from civicgpt.chat.stream import StreamConsumer, StreamSession, StreamState
from civicgpt.models.schemas import (
    BillEntity,
    EntityContext,
    GenerateRequest,
    Message,
    PreviousMessage,
)
from civicgpt.pipeline.assembler import PromptAssembler, format_history
from civicgpt.pipeline.composer import STRUCTURED_HEADER, ContextComposer
from civicgpt.pipeline.orchestrator import GroundingPipeline, full_text_targets, gate_text_for
from civicgpt.pipeline.prompts import CONTEXT_HEADER, DEFAULT_PERSONA, GROUNDING_RULES
from civicgpt.pipeline.system_prompts import (
    BUDGET_PROMPT,
    DATA_GROUNDING_INSTRUCTION,
    INTERNAL_LINKING_INSTRUCTION,
    LOBBYING_PROMPT,
    NOTE_PROMPT,
    SCHOOL_FUNDING_PROMPT,
    STANDALONE_PROMPT,
    VOTES_PROMPT,
    compose_system_prompt,
)
from civicgpt.retrieval.domain import BudgetRetriever, ContractRetriever
from civicgpt.retrieval.semantic import FullTextRetriever, SemanticRetriever
from civicgpt.retrieval.tiered import TieredRetriever
from civicgpt.retrieval.types import RetrievalResult, RetrievedRecord

from conftest import FakeChunkIndex, FakeEmbedder


def _result(source, *identifiers, label=None):
    return RetrievalResult(
        source=source,
        records=tuple(RetrievedRecord(identifier=i, text=f"{source} record {n} for {i}") for n, i in enumerate(identifiers)),
        label=label,
    )


class _FakeLive:
    configured = True

    def __init__(self):
        self.calls = 0
        self.entities = []

    async def retrieve(self, term, entity=None):
        self.calls += 1
        self.entities.append(entity)
        return RetrievalResult(
            source="live-api",
            records=(RetrievedRecord(identifier="S256", text="BILL S256: Clean Water Act"),),
        )


def _pipeline(store, index=None, live=None):
    index = index or FakeChunkIndex()
    return GroundingPipeline(
        tiered=TieredRetriever(store),
        semantic=SemanticRetriever(FakeEmbedder(), index),
        full_text=FullTextRetriever(index),
        live=live,
        domain=[BudgetRetriever(store), ContractRetriever(store)],
    )


def test_composer_orders_sources_by_precedence():
    block = ContextComposer().compose([
        _result("domain:budget", "Department of Health", label="BUDGET APPROPRIATIONS DATA"),
        _result("semantic", "A512"),
        RetrievalResult.empty("full-text"),
        _result("exact-id", "S256"),
        _result("full-text", "S256"),
        _result("live-api", "S256"),
    ])

    assert block.sources == ["exact-id", "live-api", "semantic", "full-text", "domain:budget"]
    assert block.text.startswith(STRUCTURED_HEADER)
    assert "=== BILL S256 - VERBATIM TEXT ===" in block.text
    assert "BUDGET APPROPRIATIONS DATA:" in block.text


def test_composer_caps_semantic_fragments_per_record():
    block = ContextComposer().compose([_result("semantic", "S256", "S256", "S256", "A512")])

    assert block.identifiers_for("semantic") == ["S256", "S256", "A512"]
    assert "1. BILL S256 (semantic match):" in block.text
    assert "2. BILL A512 (semantic match):" in block.text


def test_composer_returns_empty_block_when_nothing_found():
    block = ContextComposer().compose([RetrievalResult.empty("tiered"), RetrievalResult.empty("semantic")])
    assert block.is_empty
    assert block.text == ""


def test_persona_override_keeps_grounding_footer():
    block = ContextComposer().compose([_result("exact-id", "S256")])
    custom = "You are reviewing bills for a tenant-rights organization."

    prompt = PromptAssembler().assemble("Tell me about S256", block, system_context=custom)

    assert prompt.persona == custom
    assert DEFAULT_PERSONA not in prompt.system_text
    assert prompt.footer == GROUNDING_RULES
    assert prompt.system_text.endswith(GROUNDING_RULES)
    assert f"{CONTEXT_HEADER}\n{STRUCTURED_HEADER}" in prompt.system_text


def test_ungrounded_prompt_has_no_footer():
    prompt = PromptAssembler().assemble("Hello", ContextComposer().compose([]))

    assert prompt.footer == ""
    assert not prompt.has_context
    assert prompt.messages[-1].content == "Hello"
    assert CONTEXT_HEADER not in prompt.system_text


def test_entity_fragment_extends_default_persona():
    entity = EntityContext(bill=BillEntity(bill_number="S256", title="Clean Water Act"))

    persona = PromptAssembler().persona_for(None, entity)

    assert persona.startswith(DEFAULT_PERSONA)
    assert "SPECIFIC ENTITY INFORMATION:" in persona
    assert "Bill Number: S256" in persona


def test_standalone_system_prompt_layers_linking_rules():
    prompt = compose_system_prompt()

    assert prompt.startswith(STANDALONE_PROMPT)
    assert prompt.endswith(INTERNAL_LINKING_INSTRUCTION)
    assert DATA_GROUNDING_INSTRUCTION not in prompt
    assert "asking about" not in prompt


@pytest.mark.parametrize(
    "entity_type, persona",
    [
        ("budget", BUDGET_PROMPT),
        ("lobbying", LOBBYING_PROMPT),
        ("votes", VOTES_PROMPT),
        ("note", NOTE_PROMPT),
        ("school_funding", SCHOOL_FUNDING_PROMPT),
        ("bill", STANDALONE_PROMPT),
    ],
)
def test_domain_persona_selected_by_entity_type(entity_type, persona):
    assert compose_system_prompt(entity_type).startswith(persona)


def test_data_context_is_grounded_after_entity_line():
    prompt = compose_system_prompt(
        "school_funding",
        entity_name="Albany City SD",
        data_context="  Foundation Aid: $120,000,000\n",
        scope="2025-26",
    )

    entity_line = "The user is asking about this school funding (2025-26): Albany City SD"
    assert entity_line in prompt
    assert prompt.index(entity_line) < prompt.index(INTERNAL_LINKING_INSTRUCTION)
    assert prompt.index(INTERNAL_LINKING_INSTRUCTION) < prompt.index(DATA_GROUNDING_INSTRUCTION)
    assert prompt.endswith("Foundation Aid: $120,000,000")


def test_unknown_prompt_entity_type_is_rejected():
    with pytest.raises(ValueError):
        compose_system_prompt("weather")


def test_history_stays_out_of_system_text():
    history = [
        PreviousMessage(role="user", content="What about housing?"),
        PreviousMessage(role="assistant", content=""),
        PreviousMessage(role="assistant", content="Several bills address housing."),
    ]
    prompt = PromptAssembler().assemble("And S256?", ContextComposer().compose([]), history=history)

    assert [m.role for m in prompt.messages] == ["user", "assistant", "user"]
    assert "Several bills" not in prompt.system_text
    assert len(format_history(history)) == 2


def test_history_helpers():
    history = [
        PreviousMessage(role="user", content="Tell me about A512"),
        PreviousMessage(role="assistant", content="A512 concerns lead pipes."),
        PreviousMessage(role="user", content="What is the budget for it?"),
    ]
    assert full_text_targets("Who sponsored it?", history) == ["A512"]
    assert full_text_targets("Compare S256", history) == ["S256"]
    gate = gate_text_for("and the contracts?", history)
    assert "budget" in gate
    assert "lead pipes" not in gate


@pytest.mark.asyncio
async def test_unmatched_domain_retrievers_never_start(clean_water_store):
    pipeline = _pipeline(clean_water_store)

    _, report = await pipeline.gather_context(GenerateRequest(prompt="Tell me about S256"))

    assert report.domains_started == []
    assert clean_water_store.calls["budget_appropriations"] == 0
    assert clean_water_store.calls["contracts_by_department"] == 0


@pytest.mark.asyncio
async def test_live_lookup_skipped_in_fast_mode_without_identifier(clean_water_store):
    live = _FakeLive()
    pipeline = _pipeline(clean_water_store, live=live)

    _, report = await pipeline.gather_context(GenerateRequest(prompt="clean water rules"), streaming=True)

    assert not report.live_awaited
    assert live.calls == 0


@pytest.mark.asyncio
async def test_live_lookup_awaited_for_identifier(clean_water_store):
    live = _FakeLive()
    pipeline = _pipeline(clean_water_store, live=live)

    block, report = await pipeline.gather_context(GenerateRequest(prompt="Tell me about S256"), streaming=True)

    assert report.live_awaited
    assert report.live_used
    assert block.sources[:2] == ["exact-id", "live-api"]


@pytest.mark.asyncio
async def test_failing_retriever_does_not_break_the_turn(clean_water_store):
    async def broken(*args, **kwargs):
        raise RuntimeError("index offline")

    pipeline = _pipeline(clean_water_store)
    pipeline.semantic.retrieve = broken

    prompt, report = await pipeline.build_prompt(GenerateRequest(prompt="Tell me about S256"))

    assert report.failures == ["semantic"]
    assert report.tier == "exact-id"
    assert prompt.has_context


@pytest.mark.asyncio
async def test_clean_water_act_end_to_end(clean_water_store):
    pipeline = _pipeline(clean_water_store)
    request = GenerateRequest(prompt="Tell me about S256", context={"previousMessages": []})

    block, report = await pipeline.gather_context(request)
    assert report.tier == "exact-id"
    assert block.sources == ["exact-id"]
    assert block.identifiers_for("exact-id") == ["S256"]
    assert "BILL S256: Clean Water Act" in block.text

    prompt = pipeline.assembler.assemble(request.prompt, block, history=request.history)
    assert prompt.footer == GROUNDING_RULES

    async def single_chunk():
        yield "S256 is..."

    message = Message(id="assistant-1", role="assistant", is_streaming=True)
    consumer = StreamConsumer(StreamSession(id=message.id), message)
    await consumer.consume(single_chunk())
    assert consumer.finalize()
    assert consumer.state == StreamState.FINALIZED

    extractor = CitationExtractor(StoreBillLookup(clean_water_store))
    await extractor.apply(message, request.prompt)

    assert message.is_streaming is False
    assert message.content == "S256 is..."
    assert [c.identifier for c in message.citations] == ["S256"]
    citation = message.citations[0]
    assert citation.title == "Clean Water Act"
    assert citation.committee == "Environmental Conservation"
    assert citation.committee_slug == "environmental-conservation"
    assert citation.sponsor_name == "Pete Harckham"


@pytest.mark.asyncio
async def test_member_entity_is_handed_to_live_lookup(clean_water_store):
    live = _FakeLive()
    pipeline = _pipeline(clean_water_store, live=live)
    request = GenerateRequest(
        prompt="What has this senator sponsored?",
        entityContext={"member": {"people_id": 7, "name": "Pete Harckham"}},
        fastMode=False,
    )

    _, report = await pipeline.gather_context(request, streaming=False)

    assert report.search_query == "Pete Harckham"
    assert report.live_awaited
    assert live.entities[0].member.people_id == 7
