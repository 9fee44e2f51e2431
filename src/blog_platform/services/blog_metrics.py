"""
# Blog Platform Metrics

Prometheus metrics for moderation activity and reader engagement. HTTP request metrics come
from `prometheus_fastapi_instrumentator`; both are exposed at `/metrics`.

**Metrics:**
- **Counters**: Moderation transitions, notification emissions, engagement
  events, trending cache refreshes.
- **Gauges**: Timestamp of the last successful trending refresh.
"""

from prometheus_client import Counter, Gauge

from blog_platform.managers.logging_manager import get_logger

logger = get_logger(prefix="[BlogMetrics]")


class BlogMetrics:
    """Holds every application metric. Use the module-level `blog_metrics` instance."""

    def __init__(self):
        self.moderation_transitions = Counter(
            "blog_moderation_transitions_total",
            "Post moderation state transitions",
            ["source", "target"],
        )
        self.notifications_emitted = Counter(
            "blog_notifications_emitted_total",
            "Moderation notification emission attempts by outcome",
            ["outcome"],
        )
        self.engagement_events = Counter(
            "blog_engagement_events_total",
            "Reader engagement events",
            ["event"],
        )
        self.trending_refreshes = Counter(
            "blog_trending_refreshes_total",
            "Trending category cache refreshes by outcome",
            ["outcome"],
        )
        self.trending_last_refresh = Gauge(
            "blog_trending_last_refresh_timestamp",
            "Unix timestamp of the last successful trending cache refresh",
        )
        logger.info("Blog metrics initialized")

    def record_transition(self, source: str, target: str):
        self.moderation_transitions.labels(source=source, target=target).inc()

    def record_notification(self, outcome: str):
        self.notifications_emitted.labels(outcome=outcome).inc()

    def record_engagement(self, event: str):
        self.engagement_events.labels(event=event).inc()

    def record_trending_refresh(self, outcome: str, timestamp: float = None):
        self.trending_refreshes.labels(outcome=outcome).inc()
        if timestamp is not None:
            self.trending_last_refresh.set(timestamp)


# Global metrics instance
blog_metrics = BlogMetrics()
