"""
Monitoring Event Codec
======================

Serializes monitoring events to the collector's JSON wire format.

Wire object:
    {
        "type": "prediction" | "true_value",
        "identifier": "...",
        "model_id": "...",
        "date": "2026-01-01T00:00:00+00:00",
        "input": {...},
        "output": {"value": x} | {"class_name": c, "probabilities": {...}},
        "true_value": ...
    }

encode() is pure and validates the output shape against the task;
decode() is its inverse.

Usage:
    from tabmodel.serving.telemetry.codec import encode, decode

    payload = encode(event, task)
    same = decode(payload, task)
"""

import json
import math
from datetime import datetime, timezone
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
from pydantic import ValidationError

from tabmodel.errors import InvalidPayloadError
from tabmodel.serving.features.schema import TaskSpec
from tabmodel.serving.scoring.output import ClassificationOutput, RegressionOutput
from tabmodel.serving.telemetry.events import MonitoringEvent

PROBABILITY_TOLERANCE = 1e-6


# =============================================================================
# VALIDATION
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _scalar(value: Any) -> Any:
    # numpy scalars are not JSON serializable
    if isinstance(value, np.generic):
        return value.item()
    return value


def _is_finite(value: Any) -> bool:
    if isinstance(value, int):
        return True
    try:
        return math.isfinite(value)
    except (OverflowError, TypeError, ValueError):
        return False


def _check_input(record: Mapping[str, Any]) -> Dict[str, Any]:
    clean = {}
    for key, value in record.items():
        if not isinstance(key, str):
            raise InvalidPayloadError(f"Input key {key!r} is not a string", field="input")
        value = _scalar(value)
        if value is not None and not isinstance(value, (str, bool)) and not _is_number(value):
            raise InvalidPayloadError(
                f"Input value for {key!r} is not a scalar",
                field="input",
                value_type=type(value).__name__,
            )
        if _is_number(value) and not isinstance(value, (int, float)):
            try:
                value = float(value)
            except (OverflowError, ValueError) as e:
                raise InvalidPayloadError(f"Input value for {key!r} is not finite", field="input") from e
        if _is_number(value) and not _is_finite(value):
            raise InvalidPayloadError(f"Input value for {key!r} is not finite", field="input")
        clean[key] = value
    return clean


def _check_output(output: Any, task: TaskSpec) -> Dict[str, Any]:
    if not task.is_classification:
        if not isinstance(output, RegressionOutput):
            raise InvalidPayloadError("Regression task needs a regression output", field="output")
        if not _is_number(output.value) or not math.isfinite(output.value):
            raise InvalidPayloadError("Regression value must be a finite number", field="output")
        return {"value": float(output.value)}

    if not isinstance(output, ClassificationOutput):
        raise InvalidPayloadError("Classification task needs a classification output", field="output")
    labels = list(task.class_labels)
    if output.class_name not in labels:
        raise InvalidPayloadError(
            f"Unknown class_name {output.class_name!r}",
            field="output",
            class_labels=labels,
        )
    probabilities = output.probabilities
    if set(probabilities) != set(labels):
        raise InvalidPayloadError(
            "Probabilities must be keyed by exactly the class labels",
            field="output",
            keys=sorted(probabilities),
        )
    for label, p in probabilities.items():
        if not _is_number(p) or not 0.0 <= p <= 1.0:
            raise InvalidPayloadError(f"Probability for {label!r} outside [0, 1]", field="output")
    total = math.fsum(probabilities.values())
    if abs(total - 1.0) > PROBABILITY_TOLERANCE:
        raise InvalidPayloadError("Probabilities do not sum to 1", field="output", total=total)
    return {
        "class_name": output.class_name,
        "probabilities": {label: float(probabilities[label]) for label in labels},
    }


def _check_true_value(value: Any, task: TaskSpec) -> Any:
    value = _scalar(value)
    if value is None:
        return None
    if task.is_classification:
        if not isinstance(value, str) or value not in task.class_labels:
            raise InvalidPayloadError(f"Unknown true_value class {value!r}", field="true_value")
        return value
    if not _is_number(value) or not _is_finite(value):
        raise InvalidPayloadError("Regression true_value must be a finite number", field="true_value")
    return value


def _format_date(timestamp: datetime) -> str:
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat()


# =============================================================================
# ENCODE
# =============================================================================

def to_wire(event: MonitoringEvent, task: TaskSpec) -> Dict[str, Any]:
    """Validated wire object for one event."""
    wire = {
        "type": event.event_type,
        "identifier": event.identifier,
        "model_id": event.model_id,
        "date": _format_date(event.timestamp),
    }
    if event.event_type == "prediction":
        wire["input"] = _check_input(event.input_record)
        wire["output"] = _check_output(event.output, task)
    wire["true_value"] = _check_true_value(event.true_value, task)
    return wire


def _dumps(payload: Any) -> bytes:
    try:
        return json.dumps(payload, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidPayloadError(f"Event is not JSON serializable: {e}", field="event") from e


def encode(event: MonitoringEvent, task: TaskSpec) -> bytes:
    """
    Serialize one event to JSON bytes.

    Non-ASCII text is written as \\u escapes so lone surrogates survive.

    Raises:
        InvalidPayloadError: The event does not fit the task or cannot be serialized
    """
    return _dumps(to_wire(event, task))


def encode_batch(events: Sequence[MonitoringEvent], task: TaskSpec) -> bytes:
    """Serialize events to a JSON array."""
    return _dumps([to_wire(event, task) for event in events])


# =============================================================================
# DECODE
# =============================================================================

def _parse_output(payload: Any, task: TaskSpec):
    if not isinstance(payload, dict):
        raise InvalidPayloadError("Output must be an object", field="output")
    if task.is_classification:
        if "class_name" not in payload or not isinstance(payload.get("probabilities"), dict):
            raise InvalidPayloadError("Classification output needs class_name and probabilities", field="output")
        return ClassificationOutput(
            class_name=payload["class_name"],
            probabilities=dict(payload["probabilities"]),
        )
    if "value" not in payload:
        raise InvalidPayloadError("Regression output needs a value", field="output")
    return RegressionOutput(value=payload["value"])


def from_wire(wire: Any, task: TaskSpec) -> MonitoringEvent:
    """Rebuild and validate an event from its wire object."""
    if not isinstance(wire, dict):
        raise InvalidPayloadError("Event must be a JSON object")

    event_type = wire.get("type")
    if event_type not in ("prediction", "true_value"):
        raise InvalidPayloadError(f"Unknown event type {event_type!r}", field="type")

    output: Optional[Any] = None
    if event_type == "prediction":
        output = _parse_output(wire.get("output"), task)
        _check_output(output, task)
        if not isinstance(wire.get("input"), dict):
            raise InvalidPayloadError("Prediction event needs an input object", field="input")
        _check_input(wire["input"])
    _check_true_value(wire.get("true_value"), task)

    try:
        return MonitoringEvent(
            identifier=wire.get("identifier"),
            model_id=wire.get("model_id"),
            event_type=event_type,
            timestamp=wire.get("date"),
            input_record=wire.get("input"),
            output=output,
            true_value=wire.get("true_value"),
        )
    except ValidationError as e:
        raise InvalidPayloadError(
            "Event failed validation",
            errors=[err["msg"] for err in e.errors()],
        ) from e


def _load_json(payload: bytes) -> Any:
    try:
        return json.loads(payload)
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidPayloadError(f"Payload is not valid JSON: {e}") from e


def decode(payload: bytes, task: TaskSpec) -> MonitoringEvent:
    """
    Parse one encoded event.

    Raises:
        InvalidPayloadError: Malformed JSON or an event that does not fit the task
    """
    return from_wire(_load_json(payload), task)


def decode_batch(payload: bytes, task: TaskSpec) -> List[MonitoringEvent]:
    wire = _load_json(payload)
    if not isinstance(wire, list):
        raise InvalidPayloadError("Batch payload must be a JSON array")
    return [from_wire(item, task) for item in wire]
