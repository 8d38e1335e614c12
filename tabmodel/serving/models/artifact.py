"""
Model Artifact Format
=====================

Versioned binary container for a trained tabular model.

Layout (little-endian):

    offset  size  field
    0       4     magic b"TBMA"
    4       2     u16 format version
    6       2     u16 reserved (0)
    8       4     u32 header length H
    12      4     u32 predictor length P
    16      H     header: UTF-8 JSON (model identity, features, task)
    16+H    P     predictor: binary parameters
    16+H+P  4     u32 CRC-32 of everything before it (version >= 2)

Predictor section:

    u8 family (1 linear, 2 tree ensemble), u8 reserved,
    u16 output arity, u32 input width, then
    linear:        per output: f64 bias, input_width x f64 weights
    tree ensemble: f64 learning rate, per output: f64 bias, u32 tree count,
                   per tree: u32 node count, node records (NODE_DTYPE)

SCHEMA EVOLUTION:
- Version 1: no checksum trailer
- Version 2: CRC-32 trailer (written by default)

Usage:
    from tabmodel.serving.models.artifact import load, dump

    artifact = load(data)
    data = dump(schema, predictor, name="heart_disease")
"""

import json
import uuid
import zlib
import struct
import logging
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from tabmodel.errors import CorruptArtifactError, UnsupportedVersionError
from tabmodel.serving.features.schema import FeatureKind, FeatureSpec, TaskSpec, SchemaModel
from tabmodel.serving.models.predictor import (
    NODE_DTYPE,
    LinearModel,
    LinearPredictor,
    Tree,
    TreeEnsemble,
    TreeEnsemblePredictor,
    TrainedPredictor,
)

logger = logging.getLogger(__name__)


MAGIC = b"TBMA"
FORMAT_VERSION = 2
SUPPORTED_VERSIONS = (1, 2)

FAMILY_LINEAR = 1
FAMILY_TREE_ENSEMBLE = 2

_PREAMBLE = struct.Struct("<4sHHII")
_PREDICTOR_HEAD = struct.Struct("<BBHI")
_CHECKSUM = struct.Struct("<I")


# =============================================================================
# HEADER MODELS (JSON section)
# =============================================================================

class FeatureHeader(BaseModel):
    """Serialized FeatureSpec."""
    model_config = ConfigDict(extra="ignore")

    name: str
    kind: Literal["number", "enum", "text"]
    values: List[str] = []

    @model_validator(mode="after")
    def check_values(self) -> "FeatureHeader":
        if not self.name:
            raise ValueError("feature name must not be empty")
        if self.kind == "enum":
            if len(set(self.values)) != len(self.values):
                raise ValueError(f"duplicate enum values for feature {self.name!r}")
        elif self.values:
            raise ValueError(f"{self.kind} feature {self.name!r} cannot declare values")
        return self

    def to_spec(self) -> FeatureSpec:
        return FeatureSpec(name=self.name, kind=FeatureKind(self.kind), values=tuple(self.values))


class TaskHeader(BaseModel):
    """Serialized TaskSpec."""
    model_config = ConfigDict(extra="ignore")

    type: Literal["regression", "classification"]
    class_labels: List[str] = []
    negative_class_index: int = 0

    @model_validator(mode="after")
    def check_labels(self) -> "TaskHeader":
        if self.type == "classification":
            if len(self.class_labels) < 2:
                raise ValueError("classification needs at least two class labels")
            if len(set(self.class_labels)) != len(self.class_labels):
                raise ValueError("duplicate class labels")
            if not 0 <= self.negative_class_index < len(self.class_labels):
                raise ValueError(f"negative_class_index {self.negative_class_index} out of range")
        elif self.class_labels:
            raise ValueError("regression task cannot declare class labels")
        return self

    def to_spec(self) -> TaskSpec:
        if self.type == "regression":
            return TaskSpec.regression()
        return TaskSpec.classification(self.class_labels, self.negative_class_index)


class ArtifactHeader(BaseModel):
    """Header section: model identity plus the training schema."""
    model_config = ConfigDict(extra="ignore")

    model_id: str
    name: Optional[str] = None
    created_at: Optional[str] = None
    features: List[FeatureHeader]
    task: TaskHeader
    metadata: Dict[str, Any] = {}


# =============================================================================
# LOADED ARTIFACT
# =============================================================================

@dataclass(frozen=True)
class LoadedArtifact:
    """Immutable result of decoding an artifact."""
    schema: SchemaModel
    predictor: TrainedPredictor
    model_id: str
    name: Optional[str] = None
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    format_version: int = FORMAT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "name": self.name,
            "created_at": self.created_at,
            "format_version": self.format_version,
            "family": self.predictor.family,
            "task": self.schema.task.type.value,
            "feature_count": len(self.schema.features),
            "encoded_dimension": self.schema.encoded_dimension(),
            "metadata": self.metadata,
        }


# =============================================================================
# DECODER
# =============================================================================

class _Reader:
    """Bounds-checked cursor over a bytes section."""

    def __init__(self, data: bytes, section: str):
        self.data = data
        self.section = section
        self.offset = 0

    def take(self, size: int) -> bytes:
        end = self.offset + size
        if size < 0 or end > len(self.data):
            raise CorruptArtifactError(
                f"Truncated {self.section} section",
                offset=self.offset,
                wanted=size,
                available=len(self.data) - self.offset,
            )
        chunk = self.data[self.offset:end]
        self.offset = end
        return chunk

    def unpack(self, fmt: str):
        st = struct.Struct(fmt)
        return st.unpack(self.take(st.size))

    def array(self, dtype, count: int) -> np.ndarray:
        dtype = np.dtype(dtype)
        return np.frombuffer(self.take(dtype.itemsize * count), dtype=dtype, count=count).copy()

    def finish(self):
        if self.offset != len(self.data):
            raise CorruptArtifactError(
                f"Unexpected trailing bytes in {self.section} section",
                trailing=len(self.data) - self.offset,
            )


def _decode_header(data: bytes) -> ArtifactHeader:
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptArtifactError(f"Header is not valid UTF-8 JSON: {e}") from e
    try:
        return ArtifactHeader.model_validate(payload)
    except ValidationError as e:
        raise CorruptArtifactError(
            "Header failed validation",
            errors=[err["msg"] for err in e.errors()],
        ) from e


def _decode_predictor(data: bytes) -> TrainedPredictor:
    reader = _Reader(data, "predictor")
    family, reserved, arity, width = reader.unpack(_PREDICTOR_HEAD.format)
    if reserved != 0:
        raise CorruptArtifactError("Reserved predictor byte is set", reserved=reserved)
    if arity == 0:
        raise CorruptArtifactError("Predictor declares zero outputs")

    if family == FAMILY_LINEAR:
        outputs = []
        for _ in range(arity):
            (bias,) = reader.unpack("<d")
            outputs.append(LinearModel(weights=reader.array("<f8", width), bias=bias))
        predictor = LinearPredictor(outputs=tuple(outputs))

    elif family == FAMILY_TREE_ENSEMBLE:
        (learning_rate,) = reader.unpack("<d")
        outputs = []
        for _ in range(arity):
            bias, n_trees = reader.unpack("<dI")
            trees = []
            for _ in range(n_trees):
                (n_nodes,) = reader.unpack("<I")
                trees.append(Tree(nodes=reader.array(NODE_DTYPE, n_nodes)))
            outputs.append(TreeEnsemble(trees=tuple(trees), learning_rate=learning_rate, bias=bias))
        predictor = TreeEnsemblePredictor(outputs=tuple(outputs), input_width=width)

    else:
        raise CorruptArtifactError(f"Unknown model family tag {family}", family=family)

    reader.finish()

    try:
        predictor.validate()
    except ValueError as e:
        raise CorruptArtifactError(f"Invalid predictor: {e}") from e

    return predictor


def load(data: bytes) -> LoadedArtifact:
    """
    Decode and validate an artifact.

    Args:
        data: Raw artifact bytes

    Returns:
        LoadedArtifact with immutable schema and predictor

    Raises:
        UnsupportedVersionError: Format version is not readable
        CorruptArtifactError: Any structural inconsistency
    """
    data = bytes(data)
    if len(data) < _PREAMBLE.size:
        raise CorruptArtifactError("Artifact shorter than its preamble", size=len(data))

    magic, version, reserved, header_len, predictor_len = _PREAMBLE.unpack_from(data, 0)
    if magic != MAGIC:
        raise CorruptArtifactError("Not a model artifact (bad magic)", magic=magic.hex())
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version, SUPPORTED_VERSIONS)
    if reserved != 0:
        raise CorruptArtifactError("Reserved preamble bits are set", reserved=reserved)

    body_end = _PREAMBLE.size + header_len + predictor_len
    expected_size = body_end + (_CHECKSUM.size if version >= 2 else 0)
    if len(data) != expected_size:
        raise CorruptArtifactError(
            "Artifact size does not match its section lengths",
            size=len(data),
            expected=expected_size,
        )

    if version >= 2:
        (stored,) = _CHECKSUM.unpack_from(data, body_end)
        computed = zlib.crc32(data[:body_end]) & 0xFFFFFFFF
        if stored != computed:
            raise CorruptArtifactError(
                "Checksum mismatch",
                stored=f"{stored:08x}",
                computed=f"{computed:08x}",
            )

    header = _decode_header(data[_PREAMBLE.size:_PREAMBLE.size + header_len])
    predictor = _decode_predictor(data[_PREAMBLE.size + header_len:body_end])

    try:
        schema = SchemaModel(
            features=tuple(f.to_spec() for f in header.features),
            task=header.task.to_spec(),
        )
    except ValueError as e:
        raise CorruptArtifactError(f"Invalid schema: {e}") from e

    if schema.encoded_dimension() != predictor.input_width:
        raise CorruptArtifactError(
            "Encoded dimension does not match predictor input width",
            encoded_dimension=schema.encoded_dimension(),
            input_width=predictor.input_width,
        )
    if not schema.task.accepts_arity(predictor.arity):
        raise CorruptArtifactError(
            "Predictor output arity does not match task",
            arity=predictor.arity,
            task=schema.task.type.value,
            n_classes=schema.task.n_classes,
        )

    logger.debug(
        f"Decoded artifact {header.model_id}: version={version} "
        f"family={predictor.family} features={len(schema.features)} "
        f"dimension={schema.encoded_dimension()}"
    )

    return LoadedArtifact(
        schema=schema,
        predictor=predictor,
        model_id=header.model_id,
        name=header.name,
        created_at=header.created_at,
        metadata=dict(header.metadata),
        format_version=version,
    )


# =============================================================================
# WRITER
# =============================================================================

def _encode_predictor(predictor: TrainedPredictor) -> bytes:
    parts = []
    if isinstance(predictor, LinearPredictor):
        parts.append(_PREDICTOR_HEAD.pack(FAMILY_LINEAR, 0, predictor.arity, predictor.input_width))
        for model in predictor.outputs:
            parts.append(struct.pack("<d", model.bias))
            parts.append(model.weights.astype("<f8").tobytes())
    elif isinstance(predictor, TreeEnsemblePredictor):
        rates = {ensemble.learning_rate for ensemble in predictor.outputs}
        if len(rates) > 1:
            raise ValueError("All outputs of a tree ensemble must share one learning rate")
        learning_rate = rates.pop() if rates else 1.0
        parts.append(_PREDICTOR_HEAD.pack(FAMILY_TREE_ENSEMBLE, 0, predictor.arity, predictor.input_width))
        parts.append(struct.pack("<d", learning_rate))
        for ensemble in predictor.outputs:
            parts.append(struct.pack("<dI", ensemble.bias, len(ensemble.trees)))
            for tree in ensemble.trees:
                parts.append(struct.pack("<I", len(tree)))
                parts.append(tree.nodes.astype(NODE_DTYPE).tobytes())
    else:
        raise TypeError(f"Unknown predictor family: {type(predictor).__name__}")
    return b"".join(parts)


def dump(
    schema: SchemaModel,
    predictor: TrainedPredictor,
    model_id: Optional[str] = None,
    name: Optional[str] = None,
    created_at: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    version: int = FORMAT_VERSION,
) -> bytes:
    """
    Serialize a schema and predictor into artifact bytes.

    Args:
        schema: Training schema
        predictor: Trained predictor matching the schema
        model_id: Stable model identifier (generated if omitted)
        name: Optional human readable name
        created_at: ISO-8601 timestamp (defaults to now, UTC)
        metadata: Free-form JSON-serializable training metadata
        version: Format version to write

    Returns:
        Artifact bytes readable by load()
    """
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version, SUPPORTED_VERSIONS)

    header = {
        "model_id": model_id or uuid.uuid4().hex,
        "name": name,
        "created_at": created_at or datetime.now(timezone.utc).isoformat(),
        "features": [spec.to_dict() for spec in schema.features],
        "task": schema.task.to_dict(),
        "metadata": metadata or {},
    }
    header_bytes = json.dumps(header, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    predictor_bytes = _encode_predictor(predictor)

    body = (
        _PREAMBLE.pack(MAGIC, version, 0, len(header_bytes), len(predictor_bytes))
        + header_bytes
        + predictor_bytes
    )
    if version >= 2:
        body += _CHECKSUM.pack(zlib.crc32(body) & 0xFFFFFFFF)
    return body
