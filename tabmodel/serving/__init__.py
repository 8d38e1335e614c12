"""
Serving Layer
=============

Artifact loading, feature encoding, scoring and monitoring.

Submodules:
    features: Schema model and record -> vector encoding
    models: Artifact format, trained predictors, cached loader
    scoring: Output formatting and the scoring pipeline
    telemetry: Monitoring events, codec, transport and metrics

Usage:
    from tabmodel.serving import ModelLoader, ScoringPipeline

    loaded = ModelLoader().load("heart_disease.tbma")
    pipeline = ScoringPipeline(loaded.artifact)
    result = pipeline.score({"age": 63, "gender": "male"})
"""

from tabmodel.serving.scoring.score_pipeline import ScoringPipeline, ScoringResult
from tabmodel.serving.models.model_loader import ModelLoader
from tabmodel.serving.telemetry.observer import MonitoringObserver

__all__ = [
    "ScoringPipeline",
    "ScoringResult",
    "ModelLoader",
    "MonitoringObserver",
]
