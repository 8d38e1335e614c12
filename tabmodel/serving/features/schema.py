"""
Schema Model
============

Typed description of a trained model's inputs and output task.

- FeatureSpec: one input column (Number, Enum or Text)
- TaskSpec: Regression or Classification (with ordered class labels)
- SchemaModel: ordered features + task, with the encoded dimension
  computed once at construction

Schema objects are frozen; they are built by the artifact decoder and
shared read-only across all predictions.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


class FeatureKind(str, Enum):
    """Kind of an input feature."""
    NUMBER = "number"
    ENUM = "enum"
    TEXT = "text"


class TaskType(str, Enum):
    """Kind of prediction the model produces."""
    REGRESSION = "regression"
    CLASSIFICATION = "classification"


@dataclass(frozen=True)
class FeatureSpec:
    """One input feature of the training schema."""
    name: str
    kind: FeatureKind
    values: Tuple[str, ...] = ()

    @classmethod
    def number(cls, name: str) -> "FeatureSpec":
        return cls(name=name, kind=FeatureKind.NUMBER)

    @classmethod
    def enum(cls, name: str, values: List[str]) -> "FeatureSpec":
        return cls(name=name, kind=FeatureKind.ENUM, values=tuple(values))

    @classmethod
    def text(cls, name: str) -> "FeatureSpec":
        return cls(name=name, kind=FeatureKind.TEXT)

    @property
    def width(self) -> int:
        """Encoded slots: one per category plus the unknown slot for enums."""
        if self.kind == FeatureKind.ENUM:
            return len(self.values) + 1
        return 1

    def to_dict(self) -> Dict:
        data = {"name": self.name, "kind": self.kind.value}
        if self.kind == FeatureKind.ENUM:
            data["values"] = list(self.values)
        return data


@dataclass(frozen=True)
class TaskSpec:
    """
    Output task of the model.

    Classification carries the ordered class labels; the order defines
    the output slot of each class and the argmax tie-break.
    """
    type: TaskType
    class_labels: Tuple[str, ...] = ()
    negative_class_index: int = 0

    @classmethod
    def regression(cls) -> "TaskSpec":
        return cls(type=TaskType.REGRESSION)

    @classmethod
    def classification(cls, class_labels: List[str], negative_class_index: int = 0) -> "TaskSpec":
        return cls(
            type=TaskType.CLASSIFICATION,
            class_labels=tuple(class_labels),
            negative_class_index=negative_class_index,
        )

    @property
    def is_classification(self) -> bool:
        return self.type == TaskType.CLASSIFICATION

    @property
    def is_binary(self) -> bool:
        return self.is_classification and len(self.class_labels) == 2

    @property
    def n_classes(self) -> int:
        return len(self.class_labels)

    @property
    def positive_class_index(self) -> Optional[int]:
        """Index of the non-negative class for binary tasks, else None."""
        if not self.is_binary:
            return None
        return 1 - self.negative_class_index

    def accepts_arity(self, arity: int) -> bool:
        """Whether a predictor with this many outputs can serve the task."""
        if not self.is_classification:
            return arity == 1
        if self.is_binary and arity == 1:
            return True
        return arity == self.n_classes

    def to_dict(self) -> Dict:
        data = {"type": self.type.value}
        if self.is_classification:
            data["class_labels"] = list(self.class_labels)
            data["negative_class_index"] = self.negative_class_index
        return data


@dataclass(frozen=True)
class SchemaModel:
    """
    Ordered feature specs plus task spec.

    encoded_dimension is computed once in __post_init__ and is the width
    of every vector the feature encoder produces for this schema.
    """
    features: Tuple[FeatureSpec, ...]
    task: TaskSpec
    _offsets: Tuple[int, ...] = field(init=False, repr=False, compare=False)
    _dimension: int = field(init=False, repr=False, compare=False)
    _index: Dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        names = [spec.name for spec in self.features]
        if len(set(names)) != len(names):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate feature names: {duplicates}")

        offsets = []
        cursor = 0
        for spec in self.features:
            offsets.append(cursor)
            cursor += spec.width
        object.__setattr__(self, "features", tuple(self.features))
        object.__setattr__(self, "_offsets", tuple(offsets))
        object.__setattr__(self, "_dimension", cursor)
        object.__setattr__(self, "_index", {spec.name: i for i, spec in enumerate(self.features)})

    def encoded_dimension(self) -> int:
        return self._dimension

    def feature_offsets(self) -> Tuple[int, ...]:
        """First encoded slot of each feature, in schema order."""
        return self._offsets

    def feature(self, name: str) -> Optional[FeatureSpec]:
        idx = self._index.get(name)
        return self.features[idx] if idx is not None else None

    @property
    def feature_names(self) -> List[str]:
        return [spec.name for spec in self.features]

    def to_dict(self) -> Dict:
        return {
            "features": [spec.to_dict() for spec in self.features],
            "task": self.task.to_dict(),
        }
