"""
Unit tests for tabmodel.serving.telemetry.observer.

Tests cover:
- Immediate delivery (log_prediction / log_true_value)
- Queued delivery and batching (enqueue + flush)
- Requeue on transport failure or any other flush error
- Validation before queuing
"""

import json
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from tabmodel.errors import InvalidPayloadError, TransportError
from tabmodel.serving.features.schema import TaskSpec
from tabmodel.serving.scoring.output import ClassificationOutput
from tabmodel.serving.telemetry.observer import MonitoringObserver


BINARY = TaskSpec.classification(["Negative", "Positive"])
OUTPUT = ClassificationOutput(class_name="Positive", probabilities={"Negative": 0.2, "Positive": 0.8})


class RecordingTransport:
    """In-memory transport that keeps every payload."""

    def __init__(self, fail_on=()):
        self.payloads = []
        self.fail_on = set(fail_on)
        self.calls = 0

    def send(self, payload: bytes) -> None:
        self.calls += 1
        if self.calls in self.fail_on:
            raise TransportError("collector down")
        self.payloads.append(json.loads(payload))


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def observer(transport):
    return MonitoringObserver("heart-disease-v1", BINARY, transport=transport, batch_size=2, metrics=MagicMock())


class TestImmediateLogging:
    """Tests for log_prediction / log_true_value."""

    def test_log_prediction_sends_one_event(self, observer, transport, sample_record):
        observer.log_prediction("patient-1", sample_record, OUTPUT)

        assert len(transport.payloads) == 1
        assert transport.payloads[0]["type"] == "prediction"
        assert transport.payloads[0]["model_id"] == "heart-disease-v1"
        observer.metrics.record_monitoring_event.assert_called_with("prediction", "sent", 1)

    def test_log_true_value(self, observer, transport):
        observer.log_true_value("patient-1", "Negative")

        assert transport.payloads[0]["true_value"] == "Negative"

    def test_invalid_event_is_not_sent(self, observer, transport):
        with pytest.raises(InvalidPayloadError):
            observer.log_true_value("patient-1", "Maybe")

        assert transport.calls == 0
        observer.metrics.record_monitoring_event.assert_called_with("true_value", "invalid")

    def test_without_transport(self, sample_record):
        observer = MonitoringObserver("m", BINARY, metrics=MagicMock())

        with pytest.raises(TransportError, match="No monitoring transport"):
            observer.log_prediction("patient-1", sample_record, OUTPUT)


class TestQueue:
    """Tests for enqueue + flush."""

    def test_flush_sends_batches(self, observer, transport, sample_record):
        for i in range(3):
            observer.enqueue_prediction(f"patient-{i}", sample_record, OUTPUT)
        observer.enqueue_true_value("patient-0", "Positive")

        sent = observer.flush()

        assert sent == 4
        assert [len(batch) for batch in transport.payloads] == [2, 2]
        assert observer.queue_size == 0

    def test_flush_empty_queue(self, observer, transport):
        assert observer.flush() == 0
        assert transport.calls == 0

    def test_failed_batch_is_requeued_in_order(self, sample_record):
        transport = RecordingTransport(fail_on={2})
        observer = MonitoringObserver("m", BINARY, transport=transport, batch_size=1, metrics=MagicMock())
        for i in range(3):
            observer.enqueue_prediction(f"patient-{i}", sample_record, OUTPUT)

        with pytest.raises(TransportError):
            observer.flush()

        assert observer.queue_size == 2
        assert observer.flush() == 2
        identifiers = [batch[0]["identifier"] for batch in transport.payloads]
        assert identifiers == ["patient-0", "patient-1", "patient-2"]

    def test_unexpected_transport_error_keeps_queue(self, sample_record):
        transport = MagicMock()
        transport.send.side_effect = RuntimeError("socket closed")
        observer = MonitoringObserver("m", BINARY, transport=transport, batch_size=2, metrics=MagicMock())
        for i in range(3):
            observer.enqueue_prediction(f"patient-{i}", sample_record, OUTPUT)

        with pytest.raises(RuntimeError, match="socket closed"):
            observer.flush()

        assert observer.queue_size == 3
        observer.metrics.record_monitoring_event.assert_called_with("batch", "failed", 2)

    def test_encode_failure_during_flush_keeps_queue(self, observer, transport, sample_record):
        observer.enqueue_prediction("patient-0", sample_record, OUTPUT)
        observer.enqueue_prediction("patient-1", sample_record, OUTPUT)

        with patch(
            "tabmodel.serving.telemetry.observer.codec.encode_batch",
            side_effect=TypeError("not serializable"),
        ):
            with pytest.raises(TypeError):
                observer.flush()

        assert observer.queue_size == 2
        assert observer.flush() == 2
        assert [event["identifier"] for event in transport.payloads[0]] == ["patient-0", "patient-1"]

    def test_numpy_inputs_are_queued_and_sent(self, observer, transport, sample_record):
        record = dict(sample_record, age=np.int64(63))
        observer.enqueue_prediction("patient-1", record, OUTPUT)

        assert observer.flush() == 1
        sent = transport.payloads[0][0]["input"]["age"]
        assert sent == 63
        assert type(sent) is int

    def test_invalid_event_never_queued(self, observer):
        with pytest.raises(InvalidPayloadError):
            observer.enqueue_true_value("patient-1", 1.0)

        assert observer.queue_size == 0

    def test_batch_size_from_settings(self, monkeypatch):
        from tabmodel.settings import get_settings

        monkeypatch.setenv("TABMODEL_MONITORING_BATCH_SIZE", "7")
        get_settings.cache_clear()

        assert MonitoringObserver("m", BINARY).batch_size == 7

    def test_stats(self, observer, sample_record):
        observer.enqueue_prediction("patient-1", sample_record, OUTPUT)

        stats = observer.get_stats()

        assert stats["queue_size"] == 1
        assert stats["transport"] == "RecordingTransport"
