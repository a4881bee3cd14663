"""
Prometheus metrics blueprint.

/metrics exposes HTTP request metrics for every endpoint and the outcome of
POS checkouts. It is unauthenticated: keep it on the internal network.
"""
import os
import time

from flask import Blueprint, Response, request, g
from prometheus_client import (
    CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, Counter, Gauge, Histogram,
    generate_latest, multiprocess
)

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share samples through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _metric_registry = None
else:
    registry = REGISTRY
    _metric_registry = REGISTRY

http_requests_total = Counter(
    'http_requests_total', 'Total HTTP requests',
    ['method', 'endpoint', 'http_status'], registry=_metric_registry,
)
http_request_duration_seconds = Histogram(
    'http_request_duration_seconds', 'HTTP request latency in seconds',
    ['method', 'endpoint'], registry=_metric_registry,
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
http_requests_in_flight = Gauge(
    'http_requests_in_flight', 'HTTP requests currently being processed',
    registry=_metric_registry,
)

# outcome: "settled" or the failure reason (empty_cart, guest_due_not_allowed, network, ...)
pos_checkout_total = Counter(
    'pos_checkout_total', 'POS checkout attempts by outcome',
    ['outcome'], registry=_metric_registry,
)


def record_checkout(result) -> None:
    """Count a finished CheckoutResult."""
    outcome = result.reason.value if result.reason else result.state.value
    pos_checkout_total.labels(outcome=outcome).inc()


def setup_metrics_instrumentation(app):
    """Time every request and count it by endpoint and status."""

    @app.before_request
    def _start_timer():
        g._metrics_started = time.time()
        http_requests_in_flight.inc()

    @app.after_request
    def _record_request(response):
        started = g.pop('_metrics_started', None)
        if started is None:
            return response
        try:
            endpoint = request.endpoint or 'unknown'
            http_request_duration_seconds.labels(request.method, endpoint).observe(time.time() - started)
            http_requests_total.labels(request.method, endpoint, response.status_code).inc()
            http_requests_in_flight.dec()
        except Exception as e:
            app.logger.warning(f"Failed to record metrics: {e}")
        return response


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
