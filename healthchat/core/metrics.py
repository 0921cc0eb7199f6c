"""
Metrics configuration for monitoring and observability.
"""
from prometheus_client import Counter, Gauge, Histogram
import structlog

logger = structlog.get_logger(__name__)

# Embedding provider metrics
EMBEDDING_REQUESTS = Counter(
    'healthchat_embedding_requests_total',
    'Total embedding API requests',
    ['operation', 'outcome']
)
EMBEDDING_REQUEST_TIME = Histogram(
    'healthchat_embedding_request_duration_seconds',
    'Embedding API request time',
    ['operation']
)

# Index metrics
INDEX_ITEMS = Gauge('healthchat_index_items', 'Knowledge items loaded in the index')
INDEX_VECTORS = Gauge('healthchat_index_vectors', 'Knowledge items with an embedding vector')
INDEX_BUILDS = Counter('healthchat_index_builds_total', 'Total index builds', ['outcome'])
EMBEDDING_BATCH_FAILURES = Counter('healthchat_embedding_batch_failures_total', 'Failed embedding batches')

# Retrieval metrics
RAG_QUERIES = Counter('healthchat_rag_queries_total', 'Total RAG retrieval queries', ['outcome'])
RAG_QUERY_TIME = Histogram('healthchat_rag_query_duration_seconds', 'RAG retrieval time')
RAG_RESULTS = Histogram(
    'healthchat_rag_results',
    'Number of results returned per retrieval',
    buckets=(0, 1, 2, 3, 5, 10, 20)
)


def record_embedding_request(operation: str, outcome: str, duration: float):
    """Record an embedding API call."""
    try:
        EMBEDDING_REQUESTS.labels(operation=operation, outcome=outcome).inc()
        EMBEDDING_REQUEST_TIME.labels(operation=operation).observe(duration)
    except Exception as e:
        logger.error("Failed to record embedding metrics", error=str(e))


def record_index_build(item_count: int, vector_count: int, failed_batches: int, success: bool = True):
    """Record the outcome of an index build."""
    try:
        INDEX_BUILDS.labels(outcome="success" if success else "failure").inc()
        if success:
            INDEX_ITEMS.set(item_count)
            INDEX_VECTORS.set(vector_count)
        if failed_batches:
            EMBEDDING_BATCH_FAILURES.inc(failed_batches)
    except Exception as e:
        logger.error("Failed to record index metrics", error=str(e))


def record_rag_metrics(outcome: str, query_time: float, documents_found: int):
    """Record RAG retrieval metrics."""
    try:
        RAG_QUERIES.labels(outcome=outcome).inc()
        RAG_QUERY_TIME.observe(query_time)
        RAG_RESULTS.observe(documents_found)
    except Exception as e:
        logger.error("Failed to record RAG metrics", error=str(e))
