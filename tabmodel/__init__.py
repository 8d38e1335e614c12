"""
tabmodel: tabular model artifact runtime.

Usage:
    from tabmodel import Model

    model = Model.from_path("heart_disease.tbma")
    output = model.predict({"age": 63, "gender": "male"})

Exposing runtime metrics from a host service:
    from tabmodel import get_metrics_response

    body, content_type = get_metrics_response()
"""

__version__ = "0.1.0"

from tabmodel.errors import (
    TabModelError,
    ArtifactError,
    UnsupportedVersionError,
    CorruptArtifactError,
    CodecError,
    InvalidPayloadError,
    TransportError,
)
from tabmodel.metrics import get_metrics_response
from tabmodel.model import Model

__all__ = [
    "Model",
    "get_metrics_response",
    "TabModelError",
    "ArtifactError",
    "UnsupportedVersionError",
    "CorruptArtifactError",
    "CodecError",
    "InvalidPayloadError",
    "TransportError",
]
