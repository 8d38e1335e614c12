"""
Monitoring Observer
===================

Reports predictions and observed outcomes for one model to a
monitoring collector.

Two delivery modes:
- log_prediction / log_true_value: encode and send immediately
- enqueue_prediction / enqueue_true_value + flush: buffer and send in batches

Events are validated against the model's task when they are logged or
enqueued, so an invalid event never reaches the queue.
"""

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Mapping, Optional, Union

from tabmodel.errors import InvalidPayloadError, TransportError
from tabmodel.settings import get_settings
from tabmodel.serving.features.schema import TaskSpec
from tabmodel.serving.scoring.output import PredictionOutput
from tabmodel.serving.telemetry import codec
from tabmodel.serving.telemetry.events import MonitoringEvent
from tabmodel.serving.telemetry.metrics import MetricsRecorder
from tabmodel.serving.telemetry.transport import MonitoringTransport

logger = logging.getLogger(__name__)

Identifier = Union[str, int]


class MonitoringObserver:
    """
    Monitoring observer bound to one model.

    The queue is the only mutable state and is guarded by an RLock,
    so one observer can be shared by concurrent predict callers.
    """

    def __init__(
        self,
        model_id: str,
        task: TaskSpec,
        transport: Optional[MonitoringTransport] = None,
        batch_size: Optional[int] = None,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self.model_id = model_id
        self.task = task
        self.transport = transport
        self.batch_size = batch_size or get_settings().monitoring_batch_size
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.metrics = metrics or MetricsRecorder()
        self._queue: Deque[MonitoringEvent] = deque()
        self._lock = threading.RLock()

    # =========================================================================
    # EVENT CONSTRUCTION
    # =========================================================================

    def _validated(self, event: MonitoringEvent) -> MonitoringEvent:
        try:
            codec.encode(event, self.task)
        except InvalidPayloadError as e:
            self.metrics.record_monitoring_event(event.event_type, "invalid")
            logger.warning(f"Rejected {event.event_type} event {event.identifier}: {e.message}")
            raise
        return event

    def _prediction_event(
        self,
        identifier: Identifier,
        input_record: Mapping[str, Any],
        output: PredictionOutput,
        true_value: Any = None,
        timestamp: Optional[datetime] = None,
    ) -> MonitoringEvent:
        return self._validated(MonitoringEvent.prediction(
            identifier=identifier,
            model_id=self.model_id,
            input_record=dict(input_record),
            output=output,
            true_value=true_value,
            timestamp=timestamp,
        ))

    def _outcome_event(
        self,
        identifier: Identifier,
        true_value: Any,
        timestamp: Optional[datetime] = None,
    ) -> MonitoringEvent:
        return self._validated(MonitoringEvent.outcome(
            identifier=identifier,
            model_id=self.model_id,
            true_value=true_value,
            timestamp=timestamp,
        ))

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def _send(self, payload: bytes, event_type: str, count: int = 1):
        if self.transport is None:
            raise TransportError("No monitoring transport configured")
        try:
            self.transport.send(payload)
        except Exception:
            self.metrics.record_monitoring_event(event_type, "failed", count)
            raise
        self.metrics.record_monitoring_event(event_type, "sent", count)

    def log_prediction(
        self,
        identifier: Identifier,
        input_record: Mapping[str, Any],
        output: PredictionOutput,
        true_value: Any = None,
        timestamp: Optional[datetime] = None,
    ):
        """
        Send one prediction event now.

        Raises:
            InvalidPayloadError: Output does not fit the task
            TransportError: Collector unreachable or rejected the event
        """
        event = self._prediction_event(identifier, input_record, output, true_value, timestamp)
        self._send(codec.encode(event, self.task), event.event_type)

    def log_true_value(self, identifier: Identifier, true_value: Any, timestamp: Optional[datetime] = None):
        """Send the observed outcome for an earlier prediction now."""
        event = self._outcome_event(identifier, true_value, timestamp)
        self._send(codec.encode(event, self.task), event.event_type)

    def enqueue_prediction(
        self,
        identifier: Identifier,
        input_record: Mapping[str, Any],
        output: PredictionOutput,
        true_value: Any = None,
        timestamp: Optional[datetime] = None,
    ):
        """Queue a prediction event for the next flush."""
        self._enqueue(self._prediction_event(identifier, input_record, output, true_value, timestamp))

    def enqueue_true_value(self, identifier: Identifier, true_value: Any, timestamp: Optional[datetime] = None):
        """Queue an outcome event for the next flush."""
        self._enqueue(self._outcome_event(identifier, true_value, timestamp))

    def _enqueue(self, event: MonitoringEvent):
        with self._lock:
            self._queue.append(event)
            size = len(self._queue)
        self.metrics.record_queue_size(size)

    def flush(self) -> int:
        """
        Send every queued event in batches of batch_size.

        On any failure the events of the failed batch and all after it
        stay queued in order.

        Returns:
            Number of events sent

        Raises:
            TransportError: A batch was not accepted
            Exception: Whatever else the transport raised, after requeueing
        """
        with self._lock:
            pending: List[MonitoringEvent] = list(self._queue)
            self._queue.clear()

        sent = 0
        try:
            while sent < len(pending):
                batch = pending[sent:sent + self.batch_size]
                self._send(codec.encode_batch(batch, self.task), "batch", len(batch))
                sent += len(batch)
        except Exception as e:
            with self._lock:
                self._queue.extendleft(reversed(pending[sent:]))
                size = len(self._queue)
            self.metrics.record_queue_size(size)
            logger.error(f"Monitoring flush failed after {sent} events, {size} requeued: {e}")
            raise

        self.metrics.record_queue_size(self.queue_size)
        if sent:
            logger.info(f"Flushed {sent} monitoring events for model {self.model_id}")
        return sent

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._queue)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "queue_size": self.queue_size,
            "batch_size": self.batch_size,
            "transport": type(self.transport).__name__ if self.transport else None,
            "metrics_enabled": self.metrics.enabled,
        }
