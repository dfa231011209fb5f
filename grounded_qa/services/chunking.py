"""Document chunking service."""

import hashlib
import logging
import re
import uuid
from typing import Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ValidationError

from grounded_qa.core.config import settings
from grounded_qa.core.exceptions import ConfigurationError
from grounded_qa.models.document import DocumentChunk

logger = logging.getLogger(__name__)

PARAGRAPH_JOINER = "\n\n"
SENTENCE_END = re.compile(r"[.!?](?=\s|$)")


class ChunkerOptions(BaseModel):
    """Configuration for a chunking run."""

    strategy: Literal["fixed", "paragraph", "semantic"] = "fixed"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    paragraph_separator: str = r"\n\s*\n"
    semantic_unit_separator: str = ".!?"
    preserve_sentences: bool = False

    @classmethod
    def from_settings(cls) -> "ChunkerOptions":
        """Build options from application settings."""
        try:
            return cls(
                strategy=settings.chunk_strategy,
                chunk_size=settings.chunk_size,
                chunk_overlap=settings.chunk_overlap,
                preserve_sentences=settings.chunk_preserve_sentences,
            )
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid chunking settings: {str(e)}") from e


def validate_options(options: ChunkerOptions) -> None:
    """
    Reject option combinations that cannot make forward progress.

    Raises:
        ConfigurationError: If size or overlap are out of range.
    """
    if options.chunk_size <= 0:
        raise ConfigurationError(
            f"chunk_size must be positive, got {options.chunk_size}")
    if options.chunk_overlap < 0:
        raise ConfigurationError(
            f"chunk_overlap must not be negative, got {options.chunk_overlap}")
    if options.chunk_overlap >= options.chunk_size:
        raise ConfigurationError(
            f"chunk_overlap ({options.chunk_overlap}) must be smaller than "
            f"chunk_size ({options.chunk_size})"
        )


def clean_text(text: str) -> str:
    """Normalize line endings and collapse runs of whitespace."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()


def count_words(text: str) -> int:
    return len(text.split())


def fingerprint(text: str) -> str:
    """Hash of lowercased, whitespace-collapsed content."""
    normalized = re.sub(r"\s+", " ", text.lower()).strip()
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


class ChunkingService:
    """Service for chunking documents into smaller pieces."""

    def __init__(self, options: Optional[ChunkerOptions] = None) -> None:
        """
        Initialize the chunking service.

        Args:
            options: Default chunker options, taken from settings when omitted.

        Raises:
            ConfigurationError: If the default options are invalid.
        """
        self.options = options or ChunkerOptions.from_settings()
        validate_options(self.options)

    def _generate_chunk_uuid(self, document_id: str, chunk_index: int) -> str:
        """
        Generate a deterministic UUID for a chunk based on document_id and chunk_index.

        Args:
            document_id: ID of the source document.
            chunk_index: Index of the chunk.

        Returns:
            UUID string for the chunk.
        """
        namespace = uuid.UUID("00000000-0000-0000-0000-000000000000")
        name = f"{document_id}:{chunk_index}"
        return str(uuid.uuid5(namespace, name))

    def chunk_document(
        self,
        content: str,
        document_id: str,
        metadata: Optional[dict] = None,
        options: Optional[ChunkerOptions] = None,
    ) -> List[DocumentChunk]:
        """
        Chunk a document into smaller pieces.

        Args:
            content: Extracted document text.
            document_id: ID of the source document.
            metadata: Ingestion-time annotations copied onto every chunk.
            options: Per-call override of the service's default options.

        Returns:
            Chunks with contiguous indices starting at 0.

        Raises:
            ConfigurationError: If the options are invalid. No chunks are produced.
        """
        opts = options or self.options
        validate_options(opts)

        splitters: Dict[str, Callable[[str, ChunkerOptions], List[str]]] = {
            "fixed": self._split_fixed,
            "paragraph": self._split_paragraphs,
            "semantic": self._split_semantic,
        }
        pieces = splitters[opts.strategy](content, opts)

        chunks = []
        for piece in pieces:
            text = piece.strip()
            if not text:
                continue
            chunks.append(
                self._create_chunk(text, document_id, len(chunks), metadata or {}, opts.strategy)
            )

        logger.debug(
            f"Chunked document {document_id} into {len(chunks)} chunks "
            f"(strategy={opts.strategy})"
        )
        return chunks

    def deduplicate_chunks(
        self, chunks: List[DocumentChunk], similarity_threshold: float = 0.85
    ) -> List[DocumentChunk]:
        """
        Drop chunks whose normalized content was already seen.

        First occurrence wins and order is preserved. Surviving chunks are
        renumbered so indices stay contiguous. The threshold is reserved for
        fuzzy matching; only exact fingerprints are compared.

        Args:
            chunks: Chunks of a single document.
            similarity_threshold: Unused similarity cut-off.

        Returns:
            Deduplicated chunks.
        """
        seen = set()
        unique: List[DocumentChunk] = []
        for chunk in chunks:
            if not chunk.content.strip():
                continue
            key = fingerprint(chunk.content)
            if key in seen:
                continue
            seen.add(key)
            unique.append(chunk)

        dropped = len(chunks) - len(unique)
        if dropped:
            logger.info(f"Dropped {dropped} duplicate chunks")

        return [
            chunk if chunk.chunk_index == idx else chunk.model_copy(update={"chunk_index": idx})
            for idx, chunk in enumerate(unique)
        ]

    def chunk_id(self, chunk: DocumentChunk) -> str:
        """Stable point id for a chunk in the vector index."""
        return self._generate_chunk_uuid(chunk.document_id, chunk.chunk_index)

    def _create_chunk(
        self,
        content: str,
        document_id: str,
        chunk_index: int,
        metadata: dict,
        strategy: str,
    ) -> DocumentChunk:
        chunk_metadata = {
            **metadata,
            "char_count": len(content),
            "word_count": count_words(content),
            "strategy": strategy,
        }
        return DocumentChunk(
            document_id=document_id,
            chunk_index=chunk_index,
            content=content,
            metadata=chunk_metadata,
        )

    def _split_fixed(self, text: str, opts: ChunkerOptions) -> List[str]:
        """
        Slide a chunk_size window with step chunk_size - chunk_overlap.

        Windows are right-trimmed and the next start is measured from the
        trimmed end, so each chunk opens with the last chunk_overlap
        characters of the previous one, minus a leading space.
        """
        cleaned = clean_text(text)
        if not cleaned:
            return []
        if len(cleaned) <= opts.chunk_size:
            return [cleaned]

        pieces = []
        start = 0
        while start < len(cleaned):
            end = min(start + opts.chunk_size, len(cleaned))
            if opts.preserve_sentences and end < len(cleaned):
                boundary = self._last_sentence_boundary(cleaned[start:end])
                # the next window must still start after this one
                if boundary > opts.chunk_overlap:
                    end = start + boundary

            window = cleaned[start:end].rstrip()
            end = start + len(window)
            if window:
                pieces.append(window)
            if end >= len(cleaned):
                break

            next_start = end - opts.chunk_overlap
            # a chunk never opens on whitespace
            if cleaned[next_start].isspace():
                next_start += 1
            start = max(next_start, start + 1)
        return pieces

    def _split_paragraphs(self, text: str, opts: ChunkerOptions) -> List[str]:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        paragraphs = [p.strip() for p in re.split(opts.paragraph_separator, text)]
        return self._accumulate(
            [p for p in paragraphs if p],
            opts,
            joiner=PARAGRAPH_JOINER,
            seed=self._tail_overlap,
        )

    def _split_semantic(self, text: str, opts: ChunkerOptions) -> List[str]:
        pattern = self._semantic_pattern(opts)
        parts = pattern.split(text.replace("\r\n", "\n").replace("\r", "\n"))

        # split() with a capture group alternates unit, separator, unit, ...
        units = []
        for i in range(0, len(parts), 2):
            separator = parts[i + 1] if i + 1 < len(parts) else ""
            unit = parts[i] + separator
            if unit.strip():
                units.append(unit)

        def seed(buffer: str, overlap: int) -> str:
            tail = self._tail_overlap(buffer, overlap)
            match = pattern.search(tail)
            return tail[match.end():] if match else ""

        return self._accumulate(units, opts, joiner="", seed=seed)

    def _accumulate(
        self,
        units: List[str],
        opts: ChunkerOptions,
        joiner: str,
        seed: Callable[[str, int], str],
    ) -> List[str]:
        """
        Greedily pack units into buffers no longer than chunk_size.

        A flushed buffer always seeds the next one with its overlap tail.
        When the seeded buffer outgrows chunk_size it is split with the
        fixed strategy in place.
        """
        pieces: List[str] = []
        buffer = ""

        for unit in units:
            if buffer and len(buffer) + len(joiner) + len(unit) > opts.chunk_size:
                pieces.append(buffer)
                buffer = seed(buffer, opts.chunk_overlap)

            buffer = buffer + joiner + unit if buffer.strip() else unit
            if len(buffer) > opts.chunk_size:
                pieces.extend(self._split_fixed(buffer, opts))
                buffer = ""

        if buffer.strip():
            pieces.append(buffer)
        return pieces

    @staticmethod
    def _tail_overlap(buffer: str, overlap: int) -> str:
        if overlap <= 0 or len(buffer) <= overlap:
            return ""
        return buffer[-overlap:]

    @staticmethod
    def _semantic_pattern(opts: ChunkerOptions) -> "re.Pattern[str]":
        separators = opts.semantic_unit_separator or ".!?"
        return re.compile(f"([{re.escape(separators)}]\\s+)")

    @staticmethod
    def _last_sentence_boundary(text: str) -> int:
        """Offset just past the last sentence end, or a softer break, or -1."""
        last = -1
        for match in SENTENCE_END.finditer(text):
            last = match.start()
        if last >= 0:
            return last + 1

        paragraph_break = text.rfind("\n\n")
        if paragraph_break > 0:
            return paragraph_break

        last_space = text.rfind(" ")
        if last_space > len(text) / 2:
            return last_space
        return -1
