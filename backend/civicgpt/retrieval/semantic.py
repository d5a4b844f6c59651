import logging
from typing import Optional, Sequence

from .bill_numbers import normalize_bill_number, normalize_session_year
from .embeddings import EmbeddingError, OpenAIEmbedder
from .types import FULL_TEXT, SEMANTIC, RetrievalResult, RetrievedRecord
from .vector_index import ChunkIndex

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 500


def cap_per_bill(chunks: list[dict], per_bill: int) -> tuple[list[dict], int]:
    """Keep at most ``per_bill`` chunks per bill, preserving relevance order."""
    counts: dict[str, int] = {}
    kept = []
    for chunk in chunks:
        key = chunk.get("bill_number") or ""
        if counts.get(key, 0) >= per_bill:
            continue
        counts[key] = counts.get(key, 0) + 1
        kept.append(chunk)
    return kept, len(counts)


def format_chunk(chunk: dict) -> str:
    content = chunk.get("content") or ""
    excerpt = content[:EXCERPT_LENGTH] + "..." if len(content) > EXCERPT_LENGTH else content
    label = (chunk.get("chunk_type") or "body").upper()
    similarity = round(float(chunk.get("similarity") or 0) * 100)
    return f"[{label}] ({similarity}% relevance): {excerpt}"


class SemanticRetriever:
    def __init__(
        self,
        embedder: OpenAIEmbedder,
        index: ChunkIndex,
        threshold: float = 0.55,
        match_count: int = 15,
        per_bill: int = 2,
    ):
        self.embedder = embedder
        self.index = index
        self.threshold = threshold
        self.match_count = match_count
        self.per_bill = per_bill

    async def retrieve(self, text: str, session_id: Optional[int] = None) -> RetrievalResult:
        if not text.strip():
            return RetrievalResult.empty(SEMANTIC)

        try:
            embedding = await self.embedder.embed_one(text)
        except EmbeddingError as e:
            logger.warning(f"Semantic search skipped, embedding failed: {e}")
            return RetrievalResult.empty(SEMANTIC)

        try:
            matches = await self.index.match(embedding, self.threshold, self.match_count, session_id)
        except Exception as e:
            logger.warning(f"Semantic search failed: {e}")
            return RetrievalResult.empty(SEMANTIC)

        kept, bill_count = cap_per_bill(matches, self.per_bill)
        logger.info(
            f"Semantic search found {len(matches)} chunks, deduped to {len(kept)} across {bill_count} bills"
        )
        records = tuple(
            RetrievedRecord(identifier=chunk.get("bill_number") or "", text=format_chunk(chunk), data=chunk)
            for chunk in kept
        )
        return RetrievalResult(source=SEMANTIC, records=records)

    async def search(
        self,
        query: str,
        session_year: Optional[int] = None,
        bill_number: Optional[str] = None,
        threshold: Optional[float] = None,
        limit: int = 10,
    ) -> list[dict]:
        """Raw chunk matches for a standalone search; failures propagate to the caller."""
        embedding = await self.embedder.embed_one(query)
        session_id = normalize_session_year(session_year) if session_year else None
        number = normalize_bill_number(bill_number) if bill_number else None
        matches = await self.index.match(
            embedding,
            self.threshold if threshold is None else threshold,
            limit,
            session_id,
            bill_number=number,
        )
        logger.info(f"Standalone semantic search for {query!r} returned {len(matches)} chunks")
        return matches


class FullTextRetriever:
    """Verbatim bill text for explicitly named bills."""

    def __init__(self, index: ChunkIndex):
        self.index = index

    async def retrieve(self, bill_numbers: Sequence[str]) -> RetrievalResult:
        if not bill_numbers:
            return RetrievalResult.empty(FULL_TEXT)

        try:
            chunks = await self.index.chunks_for_bills(list(bill_numbers))
        except Exception as e:
            logger.warning(f"Bill chunks lookup failed: {e}")
            return RetrievalResult.empty(FULL_TEXT)

        logger.info(f"Direct bill chunks lookup found {len(chunks)} chunks for {', '.join(bill_numbers)}")

        by_bill: dict[str, list[str]] = {}
        for chunk in chunks:
            by_bill.setdefault(chunk.get("bill_number") or "", []).append(chunk.get("content") or "")

        records = tuple(
            RetrievedRecord(identifier=number, text="\n".join(contents))
            for number, contents in by_bill.items()
        )
        return RetrievalResult(source=FULL_TEXT, records=records)
