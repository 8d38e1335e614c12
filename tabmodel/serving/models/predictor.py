"""
Trained Predictors
==================

Closed set of model families that turn an encoded feature vector into
raw scores (one per output):

- LinearPredictor:       dot(weights, x) + bias per output
- TreeEnsemblePredictor: bias + learning_rate * sum(tree leaves) per output

Trees are node arenas (numpy structured arrays) addressed by index;
node 0 is the root and a node with left == -1 is a leaf. Traversal is
iterative and routes LEFT when x[feature] <= threshold (inclusive-left),
matching the training-time split convention.

All arithmetic is IEEE-754 float64.
"""

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, Union

import numpy as np


NODE_DTYPE = np.dtype([
    ("feature", "<i4"),
    ("threshold", "<f8"),
    ("left", "<i4"),
    ("right", "<i4"),
    ("value", "<f8"),
])

LEAF = -1


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


# =============================================================================
# TREE NODES
# =============================================================================

@dataclass(frozen=True)
class SplitNode:
    """Internal node: go left when x[feature_index] <= threshold."""
    feature_index: int
    threshold: float
    left: int
    right: int


@dataclass(frozen=True)
class LeafNode:
    value: float


@dataclass(frozen=True, eq=False)
class Tree:
    """
    Binary decision tree stored as an arena of nodes.

    Children always have a larger index than their parent (checked by
    validate()), which makes every traversal finite.
    """
    nodes: np.ndarray
    _feature: List[int] = field(init=False, repr=False, compare=False)
    _threshold: List[float] = field(init=False, repr=False, compare=False)
    _left: List[int] = field(init=False, repr=False, compare=False)
    _right: List[int] = field(init=False, repr=False, compare=False)
    _value: List[float] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        nodes = _readonly(np.array(self.nodes, dtype=NODE_DTYPE))
        object.__setattr__(self, "nodes", nodes)
        # Plain lists make per-node access cheap during traversal
        object.__setattr__(self, "_feature", nodes["feature"].tolist())
        object.__setattr__(self, "_threshold", nodes["threshold"].tolist())
        object.__setattr__(self, "_left", nodes["left"].tolist())
        object.__setattr__(self, "_right", nodes["right"].tolist())
        object.__setattr__(self, "_value", nodes["value"].tolist())

    @classmethod
    def from_nodes(cls, nodes: Sequence[Union[SplitNode, LeafNode]]) -> "Tree":
        """Build a tree from node objects listed in arena order."""
        arena = np.zeros(len(nodes), dtype=NODE_DTYPE)
        for i, node in enumerate(nodes):
            if isinstance(node, SplitNode):
                arena[i] = (node.feature_index, node.threshold, node.left, node.right, 0.0)
            else:
                arena[i] = (0, 0.0, LEAF, LEAF, node.value)
        return cls(nodes=arena)

    @classmethod
    def leaf(cls, value: float) -> "Tree":
        return cls.from_nodes([LeafNode(value)])

    def __len__(self) -> int:
        return len(self._left)

    def node(self, index: int) -> Union[SplitNode, LeafNode]:
        if self._left[index] == LEAF:
            return LeafNode(value=self._value[index])
        return SplitNode(
            feature_index=self._feature[index],
            threshold=self._threshold[index],
            left=self._left[index],
            right=self._right[index],
        )

    def validate(self, input_width: int):
        """
        Check the arena is a well-formed tree over input_width features.

        Raises:
            ValueError: describing the first problem found
        """
        n = len(self)
        if n == 0:
            raise ValueError("tree has no nodes")
        for i in range(n):
            left, right = self._left[i], self._right[i]
            if left == LEAF:
                if right != LEAF:
                    raise ValueError(f"node {i}: leaf with a right child")
                if not math.isfinite(self._value[i]):
                    raise ValueError(f"node {i}: non-finite leaf value")
                continue
            if not 0 <= self._feature[i] < input_width:
                raise ValueError(
                    f"node {i}: feature_index {self._feature[i]} outside [0, {input_width})"
                )
            if not math.isfinite(self._threshold[i]):
                raise ValueError(f"node {i}: non-finite threshold")
            for child in (left, right):
                if not i < child < n:
                    raise ValueError(f"node {i}: child index {child} invalid for {n} nodes")

    def predict_leaf(self, x: Sequence[float]) -> float:
        """Leaf value reached by x (x indexed by encoded feature)."""
        index = 0
        left = self._left
        while left[index] != LEAF:
            if x[self._feature[index]] <= self._threshold[index]:
                index = left[index]
            else:
                index = self._right[index]
        return self._value[index]


# =============================================================================
# MODEL FAMILIES
# =============================================================================

@dataclass(frozen=True, eq=False)
class LinearModel:
    """One linear output: dot(weights, x) + bias."""
    weights: np.ndarray
    bias: float

    def __post_init__(self):
        object.__setattr__(self, "weights", _readonly(np.array(self.weights, dtype=np.float64)))
        object.__setattr__(self, "bias", float(self.bias))

    def score(self, x: np.ndarray) -> float:
        return float(np.dot(self.weights, x)) + self.bias


@dataclass(frozen=True)
class TreeEnsemble:
    """One boosted output: bias + learning_rate * sum of leaf values."""
    trees: Tuple[Tree, ...]
    learning_rate: float
    bias: float

    def __post_init__(self):
        object.__setattr__(self, "trees", tuple(self.trees))
        object.__setattr__(self, "learning_rate", float(self.learning_rate))
        object.__setattr__(self, "bias", float(self.bias))

    def score(self, x: Sequence[float]) -> float:
        total = 0.0
        for tree in self.trees:
            total += tree.predict_leaf(x)
        return self.bias + self.learning_rate * total


@dataclass(frozen=True)
class LinearPredictor:
    """Linear model family; one LinearModel per output (one-vs-rest for classes)."""
    outputs: Tuple[LinearModel, ...]
    family = "linear"

    def __post_init__(self):
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @property
    def arity(self) -> int:
        return len(self.outputs)

    @property
    def input_width(self) -> int:
        return len(self.outputs[0].weights) if self.outputs else 0

    def validate(self):
        if not self.outputs:
            raise ValueError("linear predictor has no outputs")
        for k, model in enumerate(self.outputs):
            if len(model.weights) != self.input_width:
                raise ValueError(
                    f"output {k}: {len(model.weights)} weights, expected {self.input_width}"
                )
            if not np.all(np.isfinite(model.weights)) or not math.isfinite(model.bias):
                raise ValueError(f"output {k}: non-finite parameters")


@dataclass(frozen=True)
class TreeEnsemblePredictor:
    """Tree ensemble family; one TreeEnsemble per output, sharing the input."""
    outputs: Tuple[TreeEnsemble, ...]
    input_width: int
    family = "tree_ensemble"

    def __post_init__(self):
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @property
    def arity(self) -> int:
        return len(self.outputs)

    def validate(self):
        if not self.outputs:
            raise ValueError("tree ensemble has no outputs")
        for k, ensemble in enumerate(self.outputs):
            if not math.isfinite(ensemble.learning_rate) or not math.isfinite(ensemble.bias):
                raise ValueError(f"output {k}: non-finite learning rate or bias")
            for t, tree in enumerate(ensemble.trees):
                try:
                    tree.validate(self.input_width)
                except ValueError as e:
                    raise ValueError(f"output {k} tree {t}: {e}") from e


TrainedPredictor = Union[LinearPredictor, TreeEnsemblePredictor]


def predict_raw(predictor: TrainedPredictor, x: np.ndarray) -> Tuple[float, ...]:
    """
    Raw scores of a trained predictor for one encoded vector.

    Args:
        predictor: Linear or tree ensemble predictor
        x: Encoded feature vector of length predictor.input_width

    Returns:
        One raw score per output
    """
    if isinstance(predictor, LinearPredictor):
        return tuple(model.score(x) for model in predictor.outputs)
    if isinstance(predictor, TreeEnsemblePredictor):
        values = x.tolist() if isinstance(x, np.ndarray) else list(x)
        return tuple(ensemble.score(values) for ensemble in predictor.outputs)
    raise TypeError(f"Unknown predictor family: {type(predictor).__name__}")
