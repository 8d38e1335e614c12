"""
Model
=====

Public entry point: load a trained model artifact, predict, and report
predictions and outcomes to a monitoring collector.

Usage:
    from tabmodel import Model

    model = Model.from_path("heart_disease.tbma")
    output = model.predict({"age": 63, "gender": "male", "chest_pain": "typical angina"})
    print(output.class_name, output.probabilities)

    model.log_prediction("patient-42", record, output)
    model.log_true_value("patient-42", "Positive")

Load errors are raised only while constructing the Model; predict() never
raises for any input record.
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from tabmodel.settings import get_settings
from tabmodel.serving.features.protocols import TextEncodingStrategy
from tabmodel.serving.features.schema import SchemaModel, TaskSpec
from tabmodel.serving.models.model_loader import LoadedModel, ModelLoader, PathLike
from tabmodel.serving.scoring.output import PredictionOutput
from tabmodel.serving.scoring.score_pipeline import ScoringPipeline
from tabmodel.serving.telemetry.metrics import MetricsRecorder
from tabmodel.serving.telemetry.observer import MonitoringObserver
from tabmodel.serving.telemetry.transport import HttpMonitoringTransport, MonitoringTransport

logger = logging.getLogger(__name__)

Identifier = Union[str, int]


class Model:
    """
    A loaded, immutable model plus its monitoring observer.

    Safe to share across threads: prediction state is read-only and the
    monitoring queue is locked.
    """

    def __init__(
        self,
        loaded: LoadedModel,
        text_strategy: Optional[TextEncodingStrategy] = None,
        transport: Optional[MonitoringTransport] = None,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self.loaded = loaded
        self.metrics = metrics or MetricsRecorder()
        self.pipeline = ScoringPipeline(loaded.artifact, text_strategy=text_strategy, metrics=self.metrics)
        self._transport = transport
        self._observer: Optional[MonitoringObserver] = None
        self._observer_lock = threading.Lock()

    @classmethod
    def from_path(
        cls,
        path: PathLike,
        loader: Optional[ModelLoader] = None,
        **kwargs,
    ) -> "Model":
        """
        Load a model from an artifact file.

        Raises:
            ArtifactError: UnsupportedVersionError or CorruptArtifactError
            OSError: The file cannot be read
        """
        loader = loader or ModelLoader()
        return cls(loader.load(path), **kwargs)

    @classmethod
    def from_bytes(cls, data: bytes, loader: Optional[ModelLoader] = None, **kwargs) -> "Model":
        """Load a model from artifact bytes."""
        loader = loader or ModelLoader()
        return cls(loader.load_bytes(data), **kwargs)

    # =========================================================================
    # IDENTITY
    # =========================================================================

    @property
    def id(self) -> str:
        return self.loaded.artifact.model_id

    @property
    def name(self) -> Optional[str]:
        return self.loaded.artifact.name

    @property
    def schema(self) -> SchemaModel:
        return self.loaded.artifact.schema

    @property
    def task(self) -> TaskSpec:
        return self.schema.task

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self.loaded.artifact.metadata)

    def info(self) -> Dict[str, Any]:
        return self.loaded.info.to_dict()

    # =========================================================================
    # PREDICTION
    # =========================================================================

    def predict(self, record: Mapping[str, Any], threshold: Optional[float] = None) -> PredictionOutput:
        """
        Predict for one input record.

        Args:
            record: Mapping of feature name to number, string, bool or None
            threshold: Binary classification only; predict the positive
                class when its probability is >= threshold

        Returns:
            RegressionOutput or ClassificationOutput
        """
        return self.pipeline.predict(record, threshold=threshold)

    def predict_many(
        self,
        records: Iterable[Mapping[str, Any]],
        threshold: Optional[float] = None,
    ) -> List[PredictionOutput]:
        return [self.pipeline.predict(record, threshold=threshold) for record in records]

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def observer(self) -> MonitoringObserver:
        """Monitoring observer, created once on first use."""
        if self._observer is None:
            with self._observer_lock:
                if self._observer is None:
                    self._observer = self._create_observer()
        return self._observer

    def _create_observer(self) -> MonitoringObserver:
        transport = self._transport
        if transport is None and get_settings().monitoring_url:
            transport = HttpMonitoringTransport()
            logger.info(f"Monitoring model {self.id} via {transport.track_url}")
        return MonitoringObserver(
            model_id=self.id,
            task=self.task,
            transport=transport,
            metrics=self.metrics,
        )

    def log_prediction(
        self,
        identifier: Identifier,
        input: Mapping[str, Any],
        output: PredictionOutput,
        true_value: Any = None,
    ):
        """Send a prediction event to the monitoring collector now."""
        self.observer.log_prediction(identifier, input, output, true_value=true_value)

    def log_true_value(self, identifier: Identifier, true_value: Any):
        """Send the observed outcome for an earlier prediction now."""
        self.observer.log_true_value(identifier, true_value)

    def enqueue_log_prediction(
        self,
        identifier: Identifier,
        input: Mapping[str, Any],
        output: PredictionOutput,
        true_value: Any = None,
    ):
        """Queue a prediction event; sent by flush_log_queue()."""
        self.observer.enqueue_prediction(identifier, input, output, true_value=true_value)

    def enqueue_log_true_value(self, identifier: Identifier, true_value: Any):
        self.observer.enqueue_true_value(identifier, true_value)

    def flush_log_queue(self) -> int:
        """
        Send all queued monitoring events.

        Returns:
            Number of events sent

        Raises:
            TransportError: Events that were not accepted stay queued
        """
        return self.observer.flush()

    def __repr__(self) -> str:
        return f"Model(id={self.id!r}, name={self.name!r}, task={self.task.type.value!r})"
