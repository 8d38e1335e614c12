"""
Telemetry
=========

Monitoring events, their wire codec, delivery and metrics:
- MonitoringEvent: prediction / true_value event model
- encode / decode / encode_batch: JSON wire codec
- MonitoringTransport / HttpMonitoringTransport: delivery
- MonitoringObserver: immediate or queued reporting for one model
- MetricsRecorder: Prometheus metrics that never fail the caller

Usage:
    from tabmodel.serving.telemetry import MonitoringObserver, HttpMonitoringTransport

    observer = MonitoringObserver(model_id, task, transport=HttpMonitoringTransport())
    observer.enqueue_prediction("req-1", record, output)
    observer.flush()
"""

from tabmodel.serving.telemetry.events import MonitoringEvent
from tabmodel.serving.telemetry.codec import encode, decode, encode_batch, decode_batch
from tabmodel.serving.telemetry.metrics import MetricsRecorder
from tabmodel.serving.telemetry.transport import MonitoringTransport, HttpMonitoringTransport
from tabmodel.serving.telemetry.observer import MonitoringObserver

__all__ = [
    "MonitoringEvent",
    "encode",
    "decode",
    "encode_batch",
    "decode_batch",
    "MetricsRecorder",
    "MonitoringTransport",
    "HttpMonitoringTransport",
    "MonitoringObserver",
]
