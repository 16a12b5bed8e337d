"""Word-token chunking of raw document text into overlapping segments."""

import os
import re
from dataclasses import asdict, dataclass, field
from typing import Any

from hybridrag.constants import DEFAULT_CHUNK_MAX_TOKENS, DEFAULT_CHUNK_OVERLAP_TOKENS
from hybridrag.errors import ValidationError

_TOKEN_PATTERN = re.compile(r"\S+")


@dataclass(frozen=True)
class ChunkingConfig:
    """Token budget for each chunk and the overlap carried into the next one."""

    max_tokens: int = DEFAULT_CHUNK_MAX_TOKENS
    overlap_tokens: int = DEFAULT_CHUNK_OVERLAP_TOKENS

    @classmethod
    def from_env(cls) -> "ChunkingConfig":
        """Build a config from CHUNK_MAX_TOKENS / CHUNK_OVERLAP_TOKENS.

        Returns:
            ChunkingConfig: Config with environment overrides applied.
        """
        return cls(
            max_tokens=int(os.getenv("CHUNK_MAX_TOKENS", str(DEFAULT_CHUNK_MAX_TOKENS))),
            overlap_tokens=int(
                os.getenv("CHUNK_OVERLAP_TOKENS", str(DEFAULT_CHUNK_OVERLAP_TOKENS))
            ),
        )

    def validate(self) -> None:
        """Reject budgets that cannot make forward progress.

        Raises:
            ValidationError: If max_tokens <= 0, overlap_tokens < 0 or
                overlap_tokens >= max_tokens.
        """
        if self.max_tokens <= 0:
            raise ValidationError("max_tokens must be greater than 0")
        if self.overlap_tokens < 0:
            raise ValidationError("overlap_tokens must be non-negative")
        if self.overlap_tokens >= self.max_tokens:
            raise ValidationError("overlap_tokens must be less than max_tokens")


@dataclass
class ChunkMetadata:
    """Ingestion metadata persisted with every chunk row."""

    chunk_index: int
    token_count: int
    char_start: int
    char_end: int
    has_overlap: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChunkMetadata":
        return cls(
            chunk_index=int(data.get("chunk_index", 0)),
            token_count=int(data.get("token_count", 0)),
            char_start=int(data.get("char_start", 0)),
            char_end=int(data.get("char_end", 0)),
            has_overlap=bool(data.get("has_overlap", False)),
        )


@dataclass
class Chunk:
    """A contiguous slice of a document's text."""

    content: str
    metadata: ChunkMetadata = field(default_factory=lambda: ChunkMetadata(0, 0, 0, 0))


def estimate_token_count(text: str) -> int:
    """Estimate the number of tokens in text as its whitespace-delimited word count.

    Args:
        text: Text to estimate

    Returns:
        int: Number of word tokens
    """
    return len(_TOKEN_PATTERN.findall(text))


def chunk_document(text: str, config: ChunkingConfig | None = None) -> list[Chunk]:
    """Split text into overlapping chunks based on word-token count.

    Chunk k covers tokens [k * step, k * step + max_tokens) where
    step = max_tokens - overlap_tokens. Character ranges are laid out so that
    each chunk ends where the token after its window begins; chunk 0 starts
    at offset 0 and the last chunk ends at len(text). The part of a chunk
    after its predecessor's char_end is therefore its non-overlapping portion,
    and those portions concatenate back to the original text.

    Args:
        text: The raw document text
        config: Chunking budget (default: ChunkingConfig())

    Returns:
        list[Chunk]: Chunks with contiguous indices starting at 0. Empty or
            whitespace-only input yields an empty list.

    Raises:
        ValidationError: If the config is invalid.
    """
    if config is None:
        config = ChunkingConfig()
    config.validate()

    spans = [(match.start(), match.end()) for match in _TOKEN_PATTERN.finditer(text)]
    if not spans:
        return []

    total = len(spans)
    step = config.max_tokens - config.overlap_tokens
    chunks: list[Chunk] = []
    start = 0

    while True:
        end = min(start + config.max_tokens, total)
        char_start = 0 if start == 0 else spans[start][0]
        char_end = spans[end][0] if end < total else len(text)

        chunks.append(
            Chunk(
                content=text[char_start:char_end],
                metadata=ChunkMetadata(
                    chunk_index=len(chunks),
                    token_count=end - start,
                    char_start=char_start,
                    char_end=char_end,
                    has_overlap=start > 0 and config.overlap_tokens > 0,
                ),
            )
        )

        # The window reached the final token
        if end >= total:
            break
        start += step

    return chunks
