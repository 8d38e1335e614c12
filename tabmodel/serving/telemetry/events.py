"""
Monitoring Events
=================

Pydantic models for the events a caller reports to a monitoring
collector:

- "prediction": input record plus the output the model produced
- "true_value": the observed outcome, reported later under the same identifier

Events are owned by the caller; the runtime never persists them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tabmodel.serving.scoring.output import ClassificationOutput, RegressionOutput

EventType = Literal["prediction", "true_value"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MonitoringEvent(BaseModel):
    """One monitoring record."""
    model_config = ConfigDict(frozen=True)

    identifier: Union[str, int]
    model_id: str
    event_type: EventType = "prediction"
    timestamp: datetime = Field(default_factory=_utcnow)
    input_record: Optional[Dict[str, Any]] = None
    output: Optional[Union[RegressionOutput, ClassificationOutput]] = None
    true_value: Optional[Union[str, float, int]] = None

    @model_validator(mode="after")
    def check_shape(self) -> "MonitoringEvent":
        if self.event_type == "prediction":
            if self.input_record is None or self.output is None:
                raise ValueError("prediction events need input_record and output")
        elif self.true_value is None:
            raise ValueError("true_value events need a true_value")
        return self

    @classmethod
    def prediction(
        cls,
        identifier: Union[str, int],
        model_id: str,
        input_record: Dict[str, Any],
        output: Union[RegressionOutput, ClassificationOutput],
        true_value: Optional[Union[str, float, int]] = None,
        timestamp: Optional[datetime] = None,
    ) -> "MonitoringEvent":
        return cls(
            identifier=identifier,
            model_id=model_id,
            event_type="prediction",
            timestamp=timestamp or _utcnow(),
            input_record=dict(input_record),
            output=output,
            true_value=true_value,
        )

    @classmethod
    def outcome(
        cls,
        identifier: Union[str, int],
        model_id: str,
        true_value: Union[str, float, int],
        timestamp: Optional[datetime] = None,
    ) -> "MonitoringEvent":
        return cls(
            identifier=identifier,
            model_id=model_id,
            event_type="true_value",
            timestamp=timestamp or _utcnow(),
            true_value=true_value,
        )
