"""
Scoring
=======

Raw scores to task output, and the encode -> predict -> format flow.

Usage:
    from tabmodel.serving.scoring import ScoringPipeline

    pipeline = ScoringPipeline(artifact)
    result = pipeline.score({"age": 63, "gender": "male"})
    print(result.output.to_dict())
"""

from tabmodel.serving.scoring.output import (
    RegressionOutput,
    ClassificationOutput,
    PredictionOutput,
    format_output,
    sigmoid,
    softmax,
)
from tabmodel.serving.scoring.score_pipeline import ScoringPipeline, ScoringResult

__all__ = [
    "RegressionOutput",
    "ClassificationOutput",
    "PredictionOutput",
    "format_output",
    "sigmoid",
    "softmax",
    "ScoringPipeline",
    "ScoringResult",
]
