"""Bill-chunk vector indexes.

Both backends return chunk rows shaped like the ``bill_chunks`` table
(``bill_number``, ``chunk_type``, ``chunk_index``, ``content``) plus a
``similarity`` score in [0, 1] for ``match`` results, ordered best first.
"""
import asyncio
import json
import logging
import os
from typing import Optional, Protocol, Sequence

import chromadb
from chromadb.config import Settings as ChromaSettings

from ..clients.html_utils import extract_full_text, strip_html
from ..clients.nys_legislation import NYSLegislationClient
from ..clients.supabase import SupabaseClient
from ..config import get_settings
from .bill_numbers import current_session_year, normalize_bill_number, normalize_session_year
from .chunking import chunk_bill
from .embeddings import OpenAIEmbedder
from .store import LegislativeStore

logger = logging.getLogger(__name__)


class ChunkIndex(Protocol):
    async def match(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
        session_id: Optional[int] = None,
        bill_number: Optional[str] = None,
    ) -> list[dict]:
        ...

    async def chunks_for_bills(self, numbers: Sequence[str]) -> list[dict]:
        ...


class SupabaseChunkIndex:
    """pgvector search through the ``match_bill_chunks`` RPC."""

    def __init__(self, client: Optional[SupabaseClient] = None, store: Optional[LegislativeStore] = None):
        self.client = client or SupabaseClient()
        self.store = store or LegislativeStore(self.client)

    async def match(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
        session_id: Optional[int] = None,
        bill_number: Optional[str] = None,
    ) -> list[dict]:
        rows = await self.client.rpc(
            "match_bill_chunks",
            {
                "query_embedding": json.dumps(embedding),
                "match_threshold": threshold,
                "match_count": count,
                "filter_session_id": session_id,
                "filter_bill_number": bill_number,
            },
        )
        return [row for row in rows or [] if isinstance(row, dict)]

    async def chunks_for_bills(self, numbers: Sequence[str]) -> list[dict]:
        return await self.store.bill_chunks_by_number(numbers)


class ChromaChunkIndex:
    """Local persisted chunk index (cosine space) with bill ingestion."""

    def __init__(
        self,
        persist_dir: Optional[str] = None,
        collection_name: Optional[str] = None,
        embedder: Optional[OpenAIEmbedder] = None,
        client=None,
    ):
        self.settings = get_settings()
        if client is None:
            path = os.path.abspath(persist_dir or self.settings.chroma_persist_dir)
            os.makedirs(path, exist_ok=True)
            client = chromadb.PersistentClient(
                path=path,
                settings=ChromaSettings(anonymized_telemetry=False),
            )
            logger.info("Chroma chunk index initialized at %s", path)
        self._client = client
        self._collection = self._client.get_or_create_collection(
            name=collection_name or self.settings.chroma_collection,
            metadata={"hnsw:space": "cosine"},
        )
        self.embedder = embedder or OpenAIEmbedder()
        self._lock = asyncio.Lock()

    @staticmethod
    def _chunk_id(bill_number: str, session_id: Optional[int], index: int) -> str:
        return f"{session_id or 0}_{bill_number}_{index}"

    @staticmethod
    def _where(**filters) -> Optional[dict]:
        parts = [{key: value} for key, value in filters.items() if value is not None]
        if not parts:
            return None
        if len(parts) == 1:
            return parts[0]
        return {"$and": parts}

    async def match(
        self,
        embedding: list[float],
        threshold: float,
        count: int,
        session_id: Optional[int] = None,
        bill_number: Optional[str] = None,
    ) -> list[dict]:
        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[embedding],
            n_results=count,
            where=self._where(session_id=session_id, bill_number=bill_number),
            include=["documents", "metadatas", "distances"],
        )

        matches = []
        for doc, meta, distance in zip(
            (results.get("documents") or [[]])[0],
            (results.get("metadatas") or [[]])[0],
            (results.get("distances") or [[]])[0],
        ):
            similarity = 1.0 - float(distance)
            if similarity < threshold:
                continue
            meta = meta or {}
            matches.append({
                "bill_number": meta.get("bill_number"),
                "chunk_type": meta.get("chunk_type", "body"),
                "chunk_index": meta.get("chunk_index", 0),
                "content": doc,
                "similarity": similarity,
            })
        matches.sort(key=lambda m: m["similarity"], reverse=True)
        return matches

    async def chunks_for_bills(self, numbers: Sequence[str]) -> list[dict]:
        if not numbers:
            return []
        results = await asyncio.to_thread(
            self._collection.get,
            where={"bill_number": {"$in": list(numbers)}},
            include=["documents", "metadatas"],
        )
        rows = [
            {
                "bill_number": (meta or {}).get("bill_number"),
                "chunk_type": (meta or {}).get("chunk_type", "body"),
                "chunk_index": (meta or {}).get("chunk_index", 0),
                "content": doc,
            }
            for doc, meta in zip(results.get("documents") or [], results.get("metadatas") or [])
        ]
        rows.sort(key=lambda r: (r["bill_number"] or "", r["chunk_index"]))
        return rows

    async def index_bill(
        self,
        bill_number: str,
        session_id: Optional[int],
        title: Optional[str],
        summary: Optional[str] = None,
        memo: Optional[str] = None,
        full_text: Optional[str] = None,
    ) -> int:
        """Chunk, embed and store one bill, replacing any chunks already stored for it."""
        chunks = chunk_bill(title, summary, memo, full_text)
        if not chunks:
            return 0

        embeddings = []
        batch_size = 32
        for i in range(0, len(chunks), batch_size):
            batch = chunks[i:i + batch_size]
            embeddings.extend(await self.embedder.embed([c.content for c in batch]))

        metadatas = [
            {
                "bill_number": bill_number,
                "session_id": session_id or 0,
                "chunk_type": chunk.chunk_type,
                "chunk_index": chunk.chunk_index,
                "token_count": chunk.token_count,
            }
            for chunk in chunks
        ]
        ids = [self._chunk_id(bill_number, session_id, c.chunk_index) for c in chunks]

        async with self._lock:
            await asyncio.to_thread(
                self._collection.delete,
                where=self._where(bill_number=bill_number, session_id=session_id),
            )
            await asyncio.to_thread(
                self._collection.upsert,
                ids=ids,
                documents=[c.content for c in chunks],
                metadatas=metadatas,
                embeddings=embeddings,
            )

        logger.info("Indexed %s chunks for bill %s", len(chunks), bill_number)
        return len(chunks)


_CHUNK_INDEX = None


def get_chunk_index() -> ChunkIndex:
    global _CHUNK_INDEX
    if _CHUNK_INDEX is None:
        backend = get_settings().vector_backend.lower()
        if backend == "chroma":
            _CHUNK_INDEX = ChromaChunkIndex()
        else:
            _CHUNK_INDEX = SupabaseChunkIndex()
    return _CHUNK_INDEX


async def ingest_live_bill(
    index: ChromaChunkIndex,
    client: NYSLegislationClient,
    bill_number: str,
    session_year: Optional[int] = None,
) -> int:
    """Fetch a bill with its full text from the live API and index its chunks."""
    number = normalize_bill_number(bill_number)
    year = normalize_session_year(session_year) if session_year else current_session_year()
    bill = await client.get_bill(number, year, full_text=True)
    if not bill:
        logger.warning(f"Bill {number} ({year}) not found in the live API")
        return 0

    memo = bill.get("memo")
    if isinstance(memo, dict):
        memo = memo.get("text")
    body = strip_html(extract_full_text(bill))
    if not body and not bill.get("title") and not bill.get("summary"):
        logger.warning(f"Bill {number} ({year}) has no text to index")
        return 0

    return await index.index_bill(
        number,
        year,
        bill.get("title"),
        summary=bill.get("summary"),
        memo=memo if isinstance(memo, str) else None,
        full_text=body,
    )
