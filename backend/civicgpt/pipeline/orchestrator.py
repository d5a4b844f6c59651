"""Concurrent retrieval fan-out and prompt assembly for one generate request."""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from ..clients.nys_legislation import NYSLegislationClient
from ..config import Settings, get_settings
from ..models.schemas import GenerateRequest, PreviousMessage
from ..retrieval.bill_numbers import (
    extract_bill_numbers,
    has_bill_number,
    parse_query,
    current_session_year,
)
from ..retrieval.domain import BudgetRetriever, ContractRetriever, DomainRetriever
from ..retrieval.embeddings import OpenAIEmbedder
from ..retrieval.live import LiveLegislationRetriever
from ..retrieval.semantic import FullTextRetriever, SemanticRetriever
from ..retrieval.store import LegislativeStore
from ..retrieval.tiered import TieredRetriever
from ..retrieval.types import TIER_SOURCES, RetrievalResult
from ..retrieval.vector_index import get_chunk_index
from .assembler import ComposedPrompt, PromptAssembler
from .composer import ContextBlock, ContextComposer

logger = logging.getLogger(__name__)


@dataclass
class PipelineReport:
    search_query: str
    tier: Optional[str] = None
    sources: list[str] = field(default_factory=list)
    full_text_bills: list[str] = field(default_factory=list)
    domains_started: list[str] = field(default_factory=list)
    live_awaited: bool = False
    failures: list[str] = field(default_factory=list)

    @property
    def live_used(self) -> bool:
        return "live-api" in self.sources


def search_query_for(request: GenerateRequest) -> str:
    entity = request.entity_context
    if entity and entity.bill:
        return entity.bill.bill_number or entity.bill.title or request.prompt
    if entity and entity.member:
        return entity.member.name or request.prompt
    if entity and entity.committee:
        return entity.committee.committee_name or request.prompt
    return request.prompt


def full_text_targets(query: str, history: Sequence[PreviousMessage], lookback: int = 3) -> list[str]:
    numbers = extract_bill_numbers(query)
    if numbers:
        return numbers
    recent = " ".join(m.content or "" for m in list(history)[-lookback:])
    return extract_bill_numbers(recent)


def gate_text_for(query: str, history: Sequence[PreviousMessage], lookback: int = 4) -> str:
    recent_user = " ".join(m.content or "" for m in list(history)[-lookback:] if m.role == "user")
    return f"{query} {recent_user}".strip()


class GroundingPipeline:
    def __init__(
        self,
        tiered: TieredRetriever,
        semantic: SemanticRetriever,
        full_text: FullTextRetriever,
        live: Optional[LiveLegislationRetriever] = None,
        domain: Sequence[DomainRetriever] = (),
        composer: Optional[ContextComposer] = None,
        assembler: Optional[PromptAssembler] = None,
        settings: Optional[Settings] = None,
    ):
        self.tiered = tiered
        self.semantic = semantic
        self.full_text = full_text
        self.live = live
        self.domain = list(domain)
        self.settings = settings or get_settings()
        self.composer = composer or ContextComposer(
            per_record_limit={"semantic": self.settings.semantic_per_bill_cap}
        )
        self.assembler = assembler or PromptAssembler()

    def _should_await_live(self, request: GenerateRequest, query: str, streaming: bool) -> bool:
        if not self.live or not request.enhance_with_nys_data or not self.live.configured:
            return False
        mentions_bill = has_bill_number(query)
        if request.is_fast_mode and not mentions_bill:
            return False
        return not streaming or mentions_bill

    async def gather_context(
        self, request: GenerateRequest, streaming: bool = True
    ) -> tuple[ContextBlock, PipelineReport]:
        query = search_query_for(request)
        history = request.history
        terms = parse_query(query)
        report = PipelineReport(search_query=query)

        tasks: dict[str, asyncio.Task] = {
            "tiered": asyncio.create_task(self.tiered.retrieve(terms)),
            "semantic": asyncio.create_task(self.semantic.retrieve(query, current_session_year())),
        }

        report.full_text_bills = full_text_targets(query, history, self.settings.history_bill_lookback)
        if report.full_text_bills:
            tasks["full-text"] = asyncio.create_task(self.full_text.retrieve(report.full_text_bills))

        gate_text = gate_text_for(query, history, self.settings.history_gate_lookback)
        for retriever in self.domain:
            if retriever.matches(gate_text):
                report.domains_started.append(retriever.name)
                tasks[retriever.source] = asyncio.create_task(retriever.retrieve(gate_text))

        if self._should_await_live(request, query, streaming):
            report.live_awaited = True
            tasks["live-api"] = asyncio.create_task(self.live.retrieve(query, request.entity_context))

        try:
            outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            logger.info("Retrieval cancelled before prompt assembly")
            raise

        results: list[RetrievalResult] = []
        for name, outcome in zip(tasks, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Retriever {name} failed: {outcome}")
                report.failures.append(name)
                continue
            if isinstance(outcome, list):
                results.extend(outcome)
            else:
                results.append(outcome)

        tier_result = next((r for r in results if r.source in TIER_SOURCES), None)
        if tier_result and not tier_result.is_empty:
            report.tier = tier_result.source

        block = self.composer.compose(results)
        report.sources = block.sources
        return block, report

    async def build_prompt(
        self, request: GenerateRequest, streaming: bool = True
    ) -> tuple[ComposedPrompt, PipelineReport]:
        block, report = await self.gather_context(request, streaming)
        prompt = self.assembler.assemble(
            request.prompt,
            block,
            history=request.history,
            system_context=request.system_context,
            entity=request.entity_context,
        )
        logger.info(
            f"Prompt built for {report.search_query!r}: tier={report.tier}, sources={report.sources}, "
            f"history={len(prompt.messages) - 1}"
        )
        return prompt, report


_PIPELINE: Optional[GroundingPipeline] = None


def get_pipeline() -> GroundingPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        settings = get_settings()
        store = LegislativeStore()
        index = get_chunk_index()
        _PIPELINE = GroundingPipeline(
            tiered=TieredRetriever(store, limit=settings.tier_limit),
            semantic=SemanticRetriever(
                OpenAIEmbedder(),
                index,
                threshold=settings.semantic_threshold,
                match_count=settings.semantic_match_count,
                per_bill=settings.semantic_per_bill_cap,
            ),
            full_text=FullTextRetriever(index),
            live=LiveLegislationRetriever(NYSLegislationClient()),
            domain=[BudgetRetriever(store), ContractRetriever(store)],
            settings=settings,
        )
    return _PIPELINE
