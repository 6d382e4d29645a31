"""
Prometheus metrics for the store admin backend

Exposes:
- HTTP request latency and counts
- Account token issuance and mail delivery outcomes
"""
from prometheus_client import Counter, Histogram, Gauge, Info, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response
import time
import logging

logger = logging.getLogger(__name__)

metrics_router = APIRouter(tags=["metrics"])

# =============================================================================
# HTTP Metrics
# =============================================================================

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

HTTP_REQUESTS_IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently in progress",
    ["method", "endpoint"]
)

# =============================================================================
# Account E-mail Metrics
# =============================================================================

ACCOUNT_TOKENS_ISSUED = Counter(
    "account_tokens_issued_total",
    "Verification / password reset tokens persisted",
    ["email_type"]
)

ACCOUNT_EMAILS_SENT = Counter(
    "account_emails_sent_total",
    "Account e-mails accepted by the mail transport",
    ["email_type", "transport"]
)

ACCOUNT_EMAILS_FAILED = Counter(
    "account_emails_failed_total",
    "Account e-mail issuances that failed",
    ["email_type", "stage"]  # stage: persistence, delivery
)

APP_INFO = Info(
    "storeadmin",
    "Store admin backend information"
)

APP_INFO.info({
    "version": "1.0.0",
    "framework": "fastapi"
})


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus scrape endpoint"""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def _normalize_endpoint(path: str) -> str:
    """Collapse numeric and UUID path segments to {id} to bound label cardinality"""
    normalized_parts = []
    for part in path.split("/"):
        if part.isdigit() or (len(part) == 36 and "-" in part):
            normalized_parts.append("{id}")
        else:
            normalized_parts.append(part)
    return "/".join(normalized_parts)


async def metrics_middleware(request, call_next):
    """
    Middleware to collect HTTP request metrics
    """
    method = request.method
    endpoint = _normalize_endpoint(request.url.path)

    HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).inc()
    start_time = time.time()
    status_code = "500"

    try:
        response = await call_next(request)
        status_code = str(response.status_code)
        return response
    finally:
        duration = time.time() - start_time
        HTTP_REQUEST_DURATION.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).observe(duration)
        HTTP_REQUESTS_TOTAL.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code
        ).inc()
        HTTP_REQUESTS_IN_PROGRESS.labels(method=method, endpoint=endpoint).dec()


def record_token_issued(email_type: str):
    """Record a persisted verification / reset token"""
    ACCOUNT_TOKENS_ISSUED.labels(email_type=email_type).inc()


def record_email_sent(email_type: str, transport: str):
    """Record an account e-mail accepted by the transport"""
    ACCOUNT_EMAILS_SENT.labels(email_type=email_type, transport=transport).inc()


def record_email_failed(email_type: str, stage: str):
    """Record a failed account e-mail issuance"""
    ACCOUNT_EMAILS_FAILED.labels(email_type=email_type, stage=stage).inc()
