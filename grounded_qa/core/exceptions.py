"""Custom exceptions for the application."""

from typing import Optional


class ConfigurationError(Exception):
    """Raised when chunking parameters are invalid."""

    pass


class EmbeddingError(Exception):
    """Raised when embedding generation fails."""

    pass


class RetrievalError(Exception):
    """Raised when vector index operations fail."""

    pass


class LLMError(Exception):
    """Raised when LLM operations fail."""

    pass


class CacheError(Exception):
    """Raised when cache operations fail."""

    pass


class DocumentProcessingError(Exception):
    """Raised when a single document cannot be ingested."""

    def __init__(
        self,
        message: str,
        document_id: Optional[str] = None,
        stage: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.document_id = document_id
        self.stage = stage
