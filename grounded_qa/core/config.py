"""Application configuration using Pydantic settings."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")

    openai_api_key: str
    qdrant_url: str = "http://qdrant:6333"
    qdrant_collection_name: str = "document_chunks"
    redis_url: str = "redis://redis:6379"
    service_name: str = "grounded-qa"
    service_port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 768
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 1024

    # Chunking
    chunk_strategy: str = "fixed"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    chunk_preserve_sentences: bool = False
    dedupe_threshold: float = 0.85

    # Retrieval and attribution
    top_k: int = 10
    retrieval_threshold: float = 0.7
    similarity_gap_threshold: float = 0.05
    max_context_tokens: int = 6000
    reserved_context_tokens: int = 1000

    # Response cache
    cache_backend: str = "memory"
    cache_ttl: int = 3600
    cache_max_entries: int = 1024
    cache_key_prefix: str = "query_response:v1"
    redis_pool_size: int = 10

    # Retry configuration
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    retry_backoff_multiplier: float = 2.0


settings = Settings()
