"""
Scoring Pipeline
================

Orchestrates the inference flow for one loaded artifact:
1. Feature encoding (record -> vector)
2. Model inference (vector -> raw scores)
3. Output formatting (raw scores -> task output)
4. Metrics recording

The pipeline holds only immutable state, so one instance serves
concurrent callers.
"""

import time
import logging
from typing import Any, Dict, Mapping, Optional, Tuple
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tabmodel.serving.features.encoder import FeatureEncoder
from tabmodel.serving.features.protocols import TextEncodingStrategy
from tabmodel.serving.models.artifact import LoadedArtifact
from tabmodel.serving.models.predictor import predict_raw
from tabmodel.serving.scoring.output import PredictionOutput, format_output
from tabmodel.serving.telemetry.metrics import MetricsRecorder

logger = logging.getLogger(__name__)


@dataclass
class ScoringResult:
    """Result of the scoring pipeline."""
    output: PredictionOutput
    raw_scores: Tuple[float, ...]
    model_id: str

    # Latency
    encode_latency_ms: float = 0.0
    inference_latency_ms: float = 0.0
    total_latency_ms: float = 0.0

    # Metadata
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    warnings: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "output": self.output.to_dict(),
            "raw_scores": list(self.raw_scores),
            "encode_latency_ms": round(self.encode_latency_ms, 3),
            "inference_latency_ms": round(self.inference_latency_ms, 3),
            "total_latency_ms": round(self.total_latency_ms, 3),
            "timestamp": self.timestamp,
            "warnings": self.warnings,
        }


class ScoringPipeline:
    """
    Main scoring pipeline.

    Binds a FeatureEncoder to a loaded artifact's schema and runs
    encode -> predict -> format for each record.
    """

    def __init__(
        self,
        artifact: LoadedArtifact,
        text_strategy: Optional[TextEncodingStrategy] = None,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self.artifact = artifact
        self.encoder = FeatureEncoder(artifact.schema, text_strategy=text_strategy)
        self.metrics = metrics or MetricsRecorder()
        self._task_label = artifact.schema.task.type.value

    def score(
        self,
        record: Mapping[str, Any],
        threshold: Optional[float] = None,
        explain: bool = False,
    ) -> ScoringResult:
        """
        Score one input record.

        Args:
            record: Mapping of feature name to scalar value
            threshold: Binary classification decision threshold
            explain: Attach encoder fallbacks as warnings

        Returns:
            ScoringResult with the formatted output and timings
        """
        start_time = time.perf_counter()

        vector = self.encoder.encode(record)
        encode_latency_ms = (time.perf_counter() - start_time) * 1000

        inference_start = time.perf_counter()
        raw_scores = predict_raw(self.artifact.predictor, vector)
        inference_latency_ms = (time.perf_counter() - inference_start) * 1000

        output = format_output(raw_scores, self.artifact.schema.task, threshold=threshold)
        total_latency_ms = (time.perf_counter() - start_time) * 1000

        self.metrics.record_prediction(
            model_id=self.artifact.model_id,
            task=self._task_label,
            latency_seconds=total_latency_ms / 1000,
        )

        warnings = []
        if explain or logger.isEnabledFor(logging.DEBUG):
            notes = self.encoder.explain(record)
            if notes:
                logger.debug(
                    f"Encoding fallbacks for model {self.artifact.model_id}: "
                    + ", ".join(f"{n.feature}={n.issue}" for n in notes)
                )
            if explain:
                warnings = [f"{n.feature}: {n.issue}" for n in notes]

        return ScoringResult(
            output=output,
            raw_scores=raw_scores,
            model_id=self.artifact.model_id,
            encode_latency_ms=encode_latency_ms,
            inference_latency_ms=inference_latency_ms,
            total_latency_ms=total_latency_ms,
            warnings=warnings,
        )

    def predict(self, record: Mapping[str, Any], threshold: Optional[float] = None) -> PredictionOutput:
        """Score a record and return only the formatted output."""
        return self.score(record, threshold=threshold).output
