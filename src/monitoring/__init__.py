"""Monitoring infrastructure for habit-quest"""
from src.monitoring.sentry_config import init_sentry, capture_exception, set_user_context
from src.monitoring.prometheus_metrics import metrics, track_request

__all__ = [
    "init_sentry",
    "capture_exception",
    "set_user_context",
    "metrics",
    "track_request",
]
