"""
Prometheus Metrics for the Model Runtime
========================================

Simplified metrics module using a registry pattern.
Disabled with TABMODEL_PROMETHEUS_METRICS=false.
"""

from typing import Dict, Any, List

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST, REGISTRY

from tabmodel.settings import get_settings

PROMETHEUS_ENABLED = get_settings().prometheus_metrics


# =============================================================================
# METRIC FACTORY
# =============================================================================

def _get_or_create(metric_class, name: str, desc: str, labels: List[str] = None, **kwargs):
    """Get existing metric or create new one."""
    if not PROMETHEUS_ENABLED:
        return None
    try:
        return metric_class(name, desc, labels or [], **kwargs) if labels else metric_class(name, desc, **kwargs)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


# =============================================================================
# METRIC DEFINITIONS (Data-Driven)
# =============================================================================

METRIC_DEFS = {
    # Inference
    "prediction_counter": ("counter", "tabmodel_predictions_total", "Total predictions", ["model_id", "task"]),
    "prediction_latency": ("histogram", "tabmodel_prediction_latency_seconds", "Prediction latency", ["model_id"], [0.0001, 0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1]),

    # Artifact loading
    "artifact_loads": ("counter", "tabmodel_artifact_loads_total", "Artifact load attempts", ["status"]),
    "model_info": ("gauge", "tabmodel_model_info", "Loaded model info", ["model_id", "family", "task"]),

    # Monitoring
    "monitoring_events": ("counter", "tabmodel_monitoring_events_total", "Monitoring events", ["type", "status"]),
    "monitoring_queue": ("gauge", "tabmodel_monitoring_queue_size", "Queued monitoring events", []),
}


# =============================================================================
# METRIC REGISTRY
# =============================================================================

class MetricRegistry:
    """Central registry for all metrics."""

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._init_metrics()

    def _init_metrics(self):
        """Initialize all metrics from definitions."""
        for key, defn in METRIC_DEFS.items():
            metric_type, name, desc, labels = defn[0], defn[1], defn[2], defn[3]
            buckets = defn[4] if len(defn) > 4 else None

            if metric_type == "counter":
                self._metrics[key] = _get_or_create(Counter, name, desc, labels)
            elif metric_type == "gauge":
                self._metrics[key] = _get_or_create(Gauge, name, desc, labels)
            elif metric_type == "histogram":
                self._metrics[key] = _get_or_create(Histogram, name, desc, labels, buckets=buckets) if buckets else _get_or_create(Histogram, name, desc, labels)

    def get(self, key: str):
        """Get metric by key, returns None if not available."""
        return self._metrics.get(key)

    def inc(self, key: str, **labels):
        """Increment counter."""
        m = self.get(key)
        if m:
            m.labels(**labels).inc() if labels else m.inc()

    def observe(self, key: str, value: float, **labels):
        """Observe histogram value."""
        m = self.get(key)
        if m:
            m.labels(**labels).observe(value) if labels else m.observe(value)

    def set(self, key: str, value: float, **labels):
        """Set gauge value."""
        m = self.get(key)
        if m:
            m.labels(**labels).set(value) if labels else m.set(value)


# Singleton
_registry = MetricRegistry() if PROMETHEUS_ENABLED else None


# =============================================================================
# PUBLIC API
# =============================================================================

def track_prediction(model_id: str, task: str, latency: float):
    """Track prediction metrics."""
    if not _registry:
        return
    _registry.inc("prediction_counter", model_id=model_id, task=task)
    _registry.observe("prediction_latency", latency, model_id=model_id)


def track_artifact_load(status: str):
    """Track artifact load attempts (success, corrupt, unsupported_version)."""
    if _registry:
        _registry.inc("artifact_loads", status=status)


def set_model_info(model_id: str, family: str, task: str):
    if _registry:
        _registry.set("model_info", 1, model_id=model_id, family=family, task=task)


def track_monitoring_event(event_type: str, status: str):
    """Track monitoring event delivery (sent, failed, invalid)."""
    if _registry:
        _registry.inc("monitoring_events", type=event_type, status=status)


def set_monitoring_queue_size(size: int):
    if _registry:
        _registry.set("monitoring_queue", size)


def get_metrics_response():
    """Generate Prometheus metrics response."""
    if not PROMETHEUS_ENABLED:
        return "# Prometheus metrics disabled", "text/plain"
    return generate_latest(), CONTENT_TYPE_LATEST
