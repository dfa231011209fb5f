"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

query_counter = Counter("grounded_qa_queries_total",
                        "Total number of queries processed")
query_errors_total = Counter(
    "grounded_qa_query_errors_total", "Total number of failed queries")
query_latency_seconds = Histogram(
    "grounded_qa_query_latency_seconds", "Query latency in seconds", buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0])
cache_hits_total = Counter(
    "grounded_qa_cache_hits_total", "Query responses served from cache")
cache_misses_total = Counter(
    "grounded_qa_cache_misses_total", "Query responses computed from scratch")
retrieval_degradations_total = Counter(
    "grounded_qa_retrieval_degradations_total", "Vector searches that failed and degraded to empty context")
attribution_rule_total = Counter(
    "grounded_qa_attribution_rule_total", "Attribution rule that produced the source list", ["rule"])

documents_ingested_total = Counter(
    "grounded_qa_documents_ingested_total", "Documents successfully ingested")
chunks_stored_total = Counter(
    "grounded_qa_chunks_stored_total", "Chunks written to the vector index")
ingestion_errors_total = Counter(
    "grounded_qa_ingestion_errors_total", "Documents whose ingestion failed", ["stage"])
ingestion_duration_seconds = Histogram(
    "grounded_qa_ingestion_duration_seconds", "Per-document ingestion duration", buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0])
