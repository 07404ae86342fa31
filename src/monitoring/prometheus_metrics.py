"""Prometheus metrics definitions and helpers"""
import logging
import time
from contextlib import contextmanager
from src.config import ENABLE_PROMETHEUS

logger = logging.getLogger(__name__)


class PrometheusMetrics:
    """Container for all Prometheus metrics"""

    def __init__(self):
        if not ENABLE_PROMETHEUS:
            logger.info("Prometheus metrics disabled")
            self._enabled = False
            return

        try:
            from prometheus_client import Counter, Histogram

            # HTTP Request Metrics
            self.http_requests_total = Counter(
                'http_requests_total',
                'Total HTTP requests',
                ['method', 'endpoint', 'status']
            )

            self.http_request_duration_seconds = Histogram(
                'http_request_duration_seconds',
                'HTTP request latency',
                ['method', 'endpoint'],
                buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0]
            )

            # Progression Metrics
            self.xp_awarded_total = Counter(
                'xp_awarded_total',
                'Total XP awarded to users'
            )

            self.level_ups_total = Counter(
                'level_ups_total',
                'Total levels gained by users'
            )

            # Habit Lifecycle Metrics
            self.habits_created_total = Counter(
                'habits_created_total',
                'Total habits created'
            )

            self.habit_creations_refused_total = Counter(
                'habit_creations_refused_total',
                'Habit creations refused before any write',
                ['reason']
            )

            self.streak_increments_total = Counter(
                'streak_increments_total',
                'Total streak increments',
                ['status']
            )

            self.streak_resets_total = Counter(
                'streak_resets_total',
                'Total streak resets'
            )

            self.habits_deleted_total = Counter(
                'habits_deleted_total',
                'Total habits deleted'
            )

            self._enabled = True
            logger.info("Prometheus metrics initialized")

        except ImportError:
            logger.error("prometheus_client not installed. Install with: pip install prometheus-client")
            self._enabled = False

    @property
    def enabled(self) -> bool:
        """Check if metrics are enabled"""
        return self._enabled

    def record_xp_awarded(self, amount: int, levels_gained: int) -> None:
        if not self._enabled:
            return
        self.xp_awarded_total.inc(amount)
        if levels_gained:
            self.level_ups_total.inc(levels_gained)

    def record_habit_created(self) -> None:
        if self._enabled:
            self.habits_created_total.inc()

    def record_habit_refused(self, reason: str) -> None:
        if self._enabled:
            self.habit_creations_refused_total.labels(reason=reason).inc()

    def record_streak_increment(self, status: str) -> None:
        if self._enabled:
            self.streak_increments_total.labels(status=status).inc()

    def record_streak_reset(self) -> None:
        if self._enabled:
            self.streak_resets_total.inc()

    def record_habit_deleted(self) -> None:
        if self._enabled:
            self.habits_deleted_total.inc()


# Global metrics instance
metrics = PrometheusMetrics()


@contextmanager
def track_request(method: str, endpoint: str):
    """
    Context manager to track HTTP request metrics

    Usage:
        with track_request('GET', '/api/v1/users/{user_id}/habits') as tracker:
            ...
            tracker.status = 200
            tracker.endpoint = "/api/v1/users/{user_id}/habits"  # optional, defaults to the endpoint argument
    """
    class _Tracker:
        status = 500

    tracker = _Tracker()
    tracker.endpoint = endpoint
    start_time = time.time()
    try:
        yield tracker
    finally:
        if metrics.enabled:
            duration = time.time() - start_time
            metrics.http_requests_total.labels(
                method=method, endpoint=tracker.endpoint, status=str(tracker.status)
            ).inc()
            metrics.http_request_duration_seconds.labels(
                method=method, endpoint=tracker.endpoint
            ).observe(duration)
