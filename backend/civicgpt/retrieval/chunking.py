"""Split a bill into title, memo and body chunks for the vector index."""
import math
import re
from dataclasses import dataclass
from typing import Optional

from ..clients.html_utils import strip_html

MAX_TOKENS_PER_CHUNK = 500
OVERLAP_TOKENS = 50

_SECTION_BREAK = re.compile(r"\n\s*(?=Section\s+\d+[.:]|§\s*\d+|SECTION\s+\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class BillChunk:
    chunk_index: int
    chunk_type: str
    content: str

    @property
    def token_count(self) -> int:
        return estimate_tokens(self.content)


def estimate_tokens(text: str) -> int:
    # ~4 characters per token for English text
    return math.ceil(len(text) / 4)


def split_by_sections(text: str) -> list[str]:
    parts = [p.strip() for p in _SECTION_BREAK.split(text) if p.strip()]
    if len(parts) <= 1:
        return [text.strip()]
    return parts


def split_by_token_limit(
    text: str,
    max_tokens: int = MAX_TOKENS_PER_CHUNK,
    overlap_tokens: int = OVERLAP_TOKENS,
) -> list[str]:
    if estimate_tokens(text) <= max_tokens:
        return [text]

    words = text.split()
    # ~5 characters per word including the trailing space
    words_per_chunk = (max_tokens * 4) // 5
    overlap_words = (overlap_tokens * 4) // 5

    results = []
    start = 0
    while start < len(words):
        end = min(start + words_per_chunk, len(words))
        chunk = " ".join(words[start:end]).strip()
        if chunk:
            results.append(chunk)
        if end >= len(words):
            break
        start = end - overlap_words
    return results


def chunk_bill(
    title: Optional[str],
    summary: Optional[str] = None,
    memo: Optional[str] = None,
    body: Optional[str] = None,
) -> list[BillChunk]:
    chunks: list[BillChunk] = []

    header = []
    if title:
        header.append(f"Title: {title}")
    if summary:
        header.append(f"Summary: {summary}")
    if header:
        chunks.append(BillChunk(len(chunks), "title", "\n\n".join(header)))

    memo_text = strip_html(memo)
    if len(memo_text) > 20:
        chunks.append(BillChunk(len(chunks), "memo", memo_text))

    if body and body.strip():
        for section in split_by_sections(body):
            for piece in split_by_token_limit(section):
                chunks.append(BillChunk(len(chunks), "body", piece))

    return chunks
