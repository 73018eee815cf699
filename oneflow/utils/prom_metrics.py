"""
Prometheus metrics registration and helpers.

Exports:
- observe_request(...): record HTTP request metrics
- observe_transition(...): record a document status change
- observe_otp_email(...): record OTP email delivery attempts
- metrics_latest(): return text exposition from correct registry (handles multiprocess)
- CONTENT_TYPE_LATEST: correct Prometheus content type
"""

import os
from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess


REQUEST_COUNTER = Counter(
    'oneflow_http_requests_total', 'Total HTTP requests', ['endpoint', 'status']
)

REQUEST_LATENCY = Histogram(
    'oneflow_http_request_latency_seconds', 'HTTP request latency seconds', ['endpoint']
)

DOCUMENT_TRANSITIONS = Counter(
    'oneflow_document_transitions_total', 'Document status transitions', ['document', 'status']
)

OTP_EMAILS = Counter(
    'oneflow_otp_emails_total', 'OTP emails handed to the mail server', ['purpose', 'result']
)


def observe_request(endpoint: str, status: int, latency_seconds: float) -> None:
    REQUEST_COUNTER.labels(endpoint=endpoint, status=str(status)).inc()
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(latency_seconds)


def observe_transition(document: str, status: str) -> None:
    DOCUMENT_TRANSITIONS.labels(document=document, status=status).inc()


def observe_otp_email(purpose: str, sent: bool) -> None:
    OTP_EMAILS.labels(purpose=purpose, result='sent' if sent else 'failed').inc()


def metrics_latest() -> bytes:
    """Return the Prometheus text exposition, multiprocess-aware if configured."""
    prom_mp_dir = os.getenv('PROMETHEUS_MULTIPROC_DIR')
    if prom_mp_dir:
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return generate_latest(registry)
    # Default registry
    return generate_latest()


__all__ = [
    'observe_request',
    'observe_transition',
    'observe_otp_email',
    'metrics_latest',
    'CONTENT_TYPE_LATEST',
]
