"""
Feature Schema and Encoding
===========================

Provides the schema model and the record -> vector encoding:
- SchemaModel / FeatureSpec / TaskSpec: typed training schema
- FeatureEncoder: total, deterministic record encoding
- TextEncodingStrategy: pluggable Text feature encoding

Usage:
    from tabmodel.serving.features import FeatureEncoder

    encoder = FeatureEncoder(schema)
    vector = encoder.encode({"age": 63, "gender": "male"})
"""

from tabmodel.serving.features.schema import (
    FeatureKind,
    FeatureSpec,
    TaskType,
    TaskSpec,
    SchemaModel,
)
from tabmodel.serving.features.protocols import TextEncodingStrategy, HashingTextStrategy
from tabmodel.serving.features.encoder import FeatureEncoder, EncodingNote, encode

__all__ = [
    # Schema
    "FeatureKind",
    "FeatureSpec",
    "TaskType",
    "TaskSpec",
    "SchemaModel",
    # Protocols (for extension)
    "TextEncodingStrategy",
    "HashingTextStrategy",
    # Encoding
    "FeatureEncoder",
    "EncodingNote",
    "encode",
]
