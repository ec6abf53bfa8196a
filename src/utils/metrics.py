"""
Metrics collection for the relay.

Counters live in a private Prometheus registry so that several service
containers (for example in tests) never collide on metric names.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from src.utils.logger import get_logger

logger = get_logger(__name__)


class RelayMetrics:
    """Prometheus counters and gauges for webhook and reply traffic."""

    def __init__(self, registry: CollectorRegistry = None):
        self.registry = registry or CollectorRegistry()

        self.webhook_events = Counter(
            'relay_webhook_events_total',
            'Messaging events received from the webhook',
            ['kind'],
            registry=self.registry
        )
        self.replies_sent = Counter(
            'relay_replies_sent_total',
            'Outbound text messages delivered to the Send API',
            registry=self.registry
        )
        self.send_failures = Counter(
            'relay_send_failures_total',
            'Outbound messages the Send API rejected or timed out on',
            registry=self.registry
        )
        self.model_errors = Counter(
            'relay_model_errors_total',
            'Language model calls that failed',
            ['error_code'],
            registry=self.registry
        )
        self.rate_limited = Counter(
            'relay_rate_limited_total',
            'Messages rejected by the per-user rate limiter',
            registry=self.registry
        )
        self.persistence_failures = Counter(
            'relay_persistence_failures_total',
            'Conversation snapshot writes or reads that failed',
            registry=self.registry
        )
        self.active_conversations = Gauge(
            'relay_active_conversations',
            'Users with at least one remembered turn',
            registry=self.registry
        )

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)
