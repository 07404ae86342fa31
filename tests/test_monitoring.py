"""Tests for monitoring infrastructure"""
import pytest
from unittest.mock import patch
from prometheus_client import REGISTRY


class TestSentryIntegration:
    """Test Sentry configuration and integration"""

    def test_sentry_initialization_disabled(self):
        """Test Sentry doesn't initialize when disabled"""
        with patch('src.monitoring.sentry_config.ENABLE_SENTRY', False):
            from src.monitoring import init_sentry
            assert init_sentry() is False

    def test_sentry_initialization_no_dsn(self):
        """Test Sentry handles missing DSN gracefully"""
        with patch('src.monitoring.sentry_config.ENABLE_SENTRY', True):
            with patch('src.monitoring.sentry_config.SENTRY_DSN', ''):
                from src.monitoring import init_sentry
                assert init_sentry() is False

    def test_sentry_initialization_with_dsn(self):
        with patch('src.monitoring.sentry_config.ENABLE_SENTRY', True), \
                patch('src.monitoring.sentry_config.SENTRY_DSN', 'https://key@sentry.example/1'), \
                patch('sentry_sdk.init') as mock_init:
            from src.monitoring import init_sentry
            assert init_sentry() is True
            assert mock_init.call_args.kwargs["dsn"] == 'https://key@sentry.example/1'

    def test_set_user_context(self):
        with patch('src.monitoring.sentry_config.ENABLE_SENTRY', True):
            with patch('sentry_sdk.set_user') as mock_set_user:
                from src.monitoring import set_user_context
                set_user_context("user-123")
                mock_set_user.assert_called_once_with({"id": "user-123"})

    def test_capture_exception(self):
        with patch('src.monitoring.sentry_config.ENABLE_SENTRY', True), \
                patch('sentry_sdk.set_tag') as mock_set_tag, \
                patch('sentry_sdk.capture_exception') as mock_capture:
            from src.monitoring import capture_exception
            error = ValueError("Test error")
            capture_exception(error, path="/api/health")

            mock_set_tag.assert_called_once_with("path", "/api/health")
            mock_capture.assert_called_once_with(error)


class TestPrometheusMetrics:
    """Test Prometheus metrics tracking"""

    def test_metrics_disabled(self):
        """Test metrics when disabled"""
        with patch('src.monitoring.prometheus_metrics.ENABLE_PROMETHEUS', False):
            from src.monitoring.prometheus_metrics import PrometheusMetrics
            disabled = PrometheusMetrics()
            assert disabled.enabled is False
            # Recording is a no-op
            disabled.record_habit_created()
            disabled.record_xp_awarded(10, 0)

    def test_global_metrics_enabled(self):
        from src.monitoring.prometheus_metrics import metrics
        assert metrics.enabled is True

    def test_xp_and_level_up_counters(self):
        from src.monitoring.prometheus_metrics import metrics
        before_xp = REGISTRY.get_sample_value('xp_awarded_total') or 0
        before_levels = REGISTRY.get_sample_value('level_ups_total') or 0

        metrics.record_xp_awarded(150, 1)

        assert REGISTRY.get_sample_value('xp_awarded_total') == before_xp + 150
        assert REGISTRY.get_sample_value('level_ups_total') == before_levels + 1

    def test_refusal_counter_by_reason(self):
        from src.monitoring.prometheus_metrics import metrics
        labels = {"reason": "no_free_slot"}
        before = REGISTRY.get_sample_value('habit_creations_refused_total', labels) or 0

        metrics.record_habit_refused("no_free_slot")

        assert REGISTRY.get_sample_value('habit_creations_refused_total', labels) == before + 1

    def test_track_request_context_manager(self):
        """Test request tracking context manager"""
        from src.monitoring.prometheus_metrics import track_request
        labels = {"method": "GET", "endpoint": "/api/health", "status": "200"}
        before = REGISTRY.get_sample_value('http_requests_total', labels) or 0

        with track_request("GET", "unmatched") as tracker:
            tracker.endpoint = "/api/health"
            tracker.status = 200

        assert REGISTRY.get_sample_value('http_requests_total', labels) == before + 1

    def test_track_request_defaults_to_500_on_error(self):
        from src.monitoring.prometheus_metrics import track_request
        labels = {"method": "POST", "endpoint": "/boom", "status": "500"}
        before = REGISTRY.get_sample_value('http_requests_total', labels) or 0

        with pytest.raises(RuntimeError):
            with track_request("POST", "/boom"):
                raise RuntimeError("handler failed")

        assert REGISTRY.get_sample_value('http_requests_total', labels) == before + 1
