"""
Prometheus Metrics Recorder
============================

Records runtime metrics to Prometheus.

Wraps tabmodel.metrics so that a metrics failure never reaches the
prediction or monitoring path.
"""

import logging

from tabmodel import metrics as _metrics

logger = logging.getLogger(__name__)


class MetricsRecorder:
    """
    Records runtime metrics to Prometheus.

    Wraps the metrics module and provides a cleaner interface
    for the serving layer.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled and _metrics.PROMETHEUS_ENABLED

    def record_prediction(self, model_id: str, task: str, latency_seconds: float):
        """Record one prediction and its latency."""
        if not self.enabled:
            return

        try:
            _metrics.track_prediction(model_id=model_id, task=task, latency=latency_seconds)
        except Exception as e:
            logger.warning(f"Failed to record prediction metric: {e}")

    def record_artifact_load(self, status: str):
        """Record an artifact load attempt (success, corrupt, unsupported_version, io_error)."""
        if not self.enabled:
            return

        try:
            _metrics.track_artifact_load(status=status)
        except Exception as e:
            logger.warning(f"Failed to record artifact load metric: {e}")

    def record_model_info(self, model_id: str, family: str, task: str):
        if not self.enabled:
            return

        try:
            _metrics.set_model_info(model_id=model_id, family=family, task=task)
        except Exception as e:
            logger.warning(f"Failed to record model info metric: {e}")

    def record_monitoring_event(self, event_type: str, status: str, count: int = 1):
        """Record monitoring events by type and delivery status."""
        if not self.enabled:
            return

        try:
            for _ in range(count):
                _metrics.track_monitoring_event(event_type=event_type, status=status)
        except Exception as e:
            logger.warning(f"Failed to record monitoring metric: {e}")

    def record_queue_size(self, size: int):
        if not self.enabled:
            return

        try:
            _metrics.set_monitoring_queue_size(size)
        except Exception as e:
            logger.warning(f"Failed to record queue size metric: {e}")
