from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi.responses import Response

# Marketplace metrics
products_published = Counter(
    "karmaboard_products_published_total",
    "Products moved from draft to published",
)

reviews_submitted = Counter(
    "karmaboard_reviews_submitted_total",
    "Reviews submitted on published products",
)

reviews_rated = Counter(
    "karmaboard_reviews_rated_total",
    "Quality ratings applied to reviews (including re-ratings)",
    ["band"],  # band: excellent | neutral | poor
)

question_generation = Counter(
    "karmaboard_question_generation_total",
    "Survey question generation requests",
    ["source"],  # source: ai | fallback
)

# HTTP request metrics (from middleware)
http_requests = Counter(
    "karmaboard_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

http_request_duration = Histogram(
    "karmaboard_http_request_duration_seconds",
    "HTTP request duration",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


async def metrics_endpoint():
    """FastAPI endpoint handler that returns Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
