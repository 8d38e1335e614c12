"""
Models
======

Artifact decoding, trained predictors and the cached loader.

Usage:
    from tabmodel.serving.models import ModelLoader, predict_raw

    loaded = ModelLoader().load("heart_disease.tbma")
    scores = predict_raw(loaded.artifact.predictor, vector)
"""

from tabmodel.serving.models.predictor import (
    SplitNode,
    LeafNode,
    Tree,
    LinearModel,
    TreeEnsemble,
    LinearPredictor,
    TreeEnsemblePredictor,
    TrainedPredictor,
    predict_raw,
)
from tabmodel.serving.models.artifact import (
    LoadedArtifact,
    FORMAT_VERSION,
    SUPPORTED_VERSIONS,
    load,
    dump,
)
from tabmodel.serving.models.model_loader import ModelLoader, LoadedModel, ModelInfo, TTLCache

__all__ = [
    # Predictors
    "SplitNode",
    "LeafNode",
    "Tree",
    "LinearModel",
    "TreeEnsemble",
    "LinearPredictor",
    "TreeEnsemblePredictor",
    "TrainedPredictor",
    "predict_raw",
    # Artifact
    "LoadedArtifact",
    "FORMAT_VERSION",
    "SUPPORTED_VERSIONS",
    "load",
    "dump",
    # Loader
    "ModelLoader",
    "LoadedModel",
    "ModelInfo",
    "TTLCache",
]
