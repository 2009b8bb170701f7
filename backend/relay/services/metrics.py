"""Prometheus metrics instrumentation for the signaling relay.

Exposes metrics for monitoring connection churn, call volume and failure
rates of the relay. Metrics are exposed via HTTP on port 8001
(configurable through ``METRICS_PORT``).

Metrics exported:
- signaling_connected_clients: Gauge of currently registered clients
- signaling_active_calls: Gauge of CallRecords currently held
- signaling_messages_relayed_total: Counter of envelopes forwarded, by type
- signaling_failures_total: Counter of typed failure replies, by reason
- signaling_liveness_evictions_total: Counter of connections released by the liveness sweep

Usage:
    from relay.services.metrics import start_metrics_server, messages_relayed

    start_metrics_server(port=8001)
    messages_relayed.labels(message_type='call-offer').inc()
"""

from prometheus_client import Counter, Gauge, start_http_server
import logging

logger = logging.getLogger(__name__)

connected_clients_gauge = Gauge(
    'signaling_connected_clients',
    'Number of currently registered signaling clients'
)

active_calls_gauge = Gauge(
    'signaling_active_calls',
    'Number of calls currently offering or connected'
)

messages_relayed = Counter(
    'signaling_messages_relayed_total',
    'Total signaling envelopes forwarded to a peer',
    labelnames=['message_type']
)

signaling_failures = Counter(
    'signaling_failures_total',
    'Total typed failure replies sent to clients',
    labelnames=['reason']
)

liveness_evictions = Counter(
    'signaling_liveness_evictions_total',
    'Connections released by the liveness sweep after their transport was lost'
)


def start_metrics_server(port: int = 8001):
    """Start Prometheus metrics HTTP server."""
    try:
        start_http_server(port)
        logger.info(f"✅ Metrics server started on port {port}")
    except Exception as e:
        logger.error(f"❌ Failed to start metrics server: {e}")
