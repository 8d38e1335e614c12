"""
Output Formatter
================

Converts raw predictor scores into the task-appropriate output:

- Regression:     RegressionOutput(value=raw score)
- Classification: ClassificationOutput(class_name, probabilities)
    * K scores      -> max-shifted softmax
    * 2 scores      -> sigmoid of the score difference
    * 1 score (K=2) -> sigmoid of the positive-class logit

The predicted class is the argmax probability; ties go to the class
listed first in class_labels.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Union

from tabmodel.serving.features.schema import TaskSpec


@dataclass(frozen=True)
class RegressionOutput:
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value}


@dataclass(frozen=True)
class ClassificationOutput:
    """Predicted label plus the probability of every class label."""
    class_name: str
    probabilities: Dict[str, float] = field(default_factory=dict)

    @property
    def probability(self) -> float:
        """Probability of the predicted class."""
        return self.probabilities[self.class_name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "class_name": self.class_name,
            "probabilities": dict(self.probabilities),
        }


PredictionOutput = Union[RegressionOutput, ClassificationOutput]


def sigmoid(z: float) -> float:
    """Logistic function, stable for large |z|."""
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    e = math.exp(z)
    return e / (1.0 + e)


def softmax(scores: Sequence[float]) -> list:
    """Max-shifted softmax; falls back to uniform if scores are not finite."""
    if not all(math.isfinite(s) for s in scores):
        return [1.0 / len(scores)] * len(scores)
    m = max(scores)
    exps = [math.exp(s - m) for s in scores]
    total = sum(exps)
    return [e / total for e in exps]


def _argmax(values: Sequence[float]) -> int:
    best = 0
    for i in range(1, len(values)):
        if values[i] > values[best]:
            best = i
    return best


def _class_probabilities(raw_scores: Sequence[float], task: TaskSpec) -> list:
    n = task.n_classes
    if task.is_binary and len(raw_scores) in (1, 2):
        if len(raw_scores) == 1:
            z = raw_scores[0]
            positive = task.positive_class_index
        else:
            z = raw_scores[1] - raw_scores[0]
            positive = 1
        if math.isnan(z):
            return [0.5, 0.5]
        p = sigmoid(z)
        probs = [0.0] * n
        probs[positive] = p
        probs[1 - positive] = 1.0 - p
        return probs
    return softmax(raw_scores)


def format_output(
    raw_scores: Sequence[float],
    task: TaskSpec,
    threshold: Optional[float] = None,
) -> PredictionOutput:
    """
    Format raw scores for a task.

    Args:
        raw_scores: One score per predictor output
        task: Task spec of the loaded model
        threshold: Binary tasks only; predict the positive class when its
            probability is >= threshold instead of using argmax

    Returns:
        RegressionOutput or ClassificationOutput
    """
    if not task.is_classification:
        return RegressionOutput(value=float(raw_scores[0]))

    probs = _class_probabilities(raw_scores, task)

    if threshold is not None and task.is_binary:
        positive = task.positive_class_index
        predicted = positive if probs[positive] >= threshold else task.negative_class_index
    else:
        predicted = _argmax(probs)

    return ClassificationOutput(
        class_name=task.class_labels[predicted],
        probabilities={label: probs[i] for i, label in enumerate(task.class_labels)},
    )
