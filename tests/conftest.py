"""
Shared test fixtures for the tabular model runtime.
"""

import os

# Metrics are configured at import time; keep them off for unit tests
os.environ.setdefault("TABMODEL_PROMETHEUS_METRICS", "false")

import pytest

from tabmodel.settings import get_settings
from tabmodel.serving.features.schema import FeatureSpec, TaskSpec, SchemaModel
from tabmodel.serving.models.artifact import dump
from tabmodel.serving.models.predictor import (
    LeafNode,
    LinearModel,
    LinearPredictor,
    SplitNode,
    Tree,
    TreeEnsemble,
    TreeEnsemblePredictor,
)


# =============================================================================
# ENVIRONMENT SETUP
# =============================================================================

@pytest.fixture(autouse=True)
def mock_environment(monkeypatch):
    """Isolate settings from the developer's environment."""
    monkeypatch.delenv("TABMODEL_MONITORING_URL", raising=False)
    monkeypatch.setenv("TABMODEL_PROMETHEUS_METRICS", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# SCHEMA FIXTURES
# =============================================================================

@pytest.fixture
def heart_schema():
    """Binary classification schema: 1 + 3 + 5 + 1 = 10 encoded slots."""
    return SchemaModel(
        features=(
            FeatureSpec.number("age"),
            FeatureSpec.enum("gender", ["male", "female"]),
            FeatureSpec.enum("chest_pain", ["typical angina", "atypical angina", "non-angina pain", "asymptomatic"]),
            FeatureSpec.text("notes"),
        ),
        task=TaskSpec.classification(["Negative", "Positive"], negative_class_index=0),
    )


@pytest.fixture
def price_schema():
    """Regression schema with a single numeric feature."""
    return SchemaModel(
        features=(FeatureSpec.number("sqft"),),
        task=TaskSpec.regression(),
    )


@pytest.fixture
def iris_schema():
    return SchemaModel(
        features=(FeatureSpec.number("petal_length"), FeatureSpec.number("petal_width")),
        task=TaskSpec.classification(["setosa", "versicolor", "virginica"]),
    )


@pytest.fixture
def sample_record():
    """Heart disease record with every feature present."""
    return {
        "age": 63,
        "gender": "male",
        "chest_pain": "typical angina",
        "notes": "smoker",
    }


# =============================================================================
# PREDICTOR FIXTURES
# =============================================================================

@pytest.fixture
def heart_linear_predictor():
    """Single positive-class logit over the 10 heart schema slots."""
    weights = [0.05, 0.8, -0.3, 0.0, 1.2, 0.4, -0.6, -1.0, 0.1, 0.0]
    return LinearPredictor(outputs=(LinearModel(weights=weights, bias=-3.0),))


@pytest.fixture
def price_tree_predictor():
    """Root split sqft <= 150.0 with leaves -1 / 1."""
    tree = Tree.from_nodes([
        SplitNode(feature_index=0, threshold=150.0, left=1, right=2),
        LeafNode(-1.0),
        LeafNode(1.0),
    ])
    return TreeEnsemblePredictor(
        outputs=(TreeEnsemble(trees=(tree,), learning_rate=1.0, bias=0.0),),
        input_width=1,
    )


@pytest.fixture
def iris_tree_predictor():
    """Three-output tree ensemble, one stump per class."""
    def stump(low: float, high: float) -> Tree:
        return Tree.from_nodes([
            SplitNode(feature_index=0, threshold=2.5, left=1, right=2),
            LeafNode(low),
            LeafNode(high),
        ])

    return TreeEnsemblePredictor(
        outputs=(
            TreeEnsemble(trees=(stump(2.0, -1.0),), learning_rate=0.5, bias=0.1),
            TreeEnsemble(trees=(stump(-1.0, 1.0),), learning_rate=0.5, bias=0.0),
            TreeEnsemble(trees=(stump(-1.0, 0.5),), learning_rate=0.5, bias=-0.1),
        ),
        input_width=2,
    )


# =============================================================================
# ARTIFACT FIXTURES
# =============================================================================

@pytest.fixture
def heart_artifact_bytes(heart_schema, heart_linear_predictor):
    return dump(
        heart_schema,
        heart_linear_predictor,
        model_id="heart-disease-v1",
        name="heart_disease",
        created_at="2026-01-15T09:30:00+00:00",
        metadata={"train_row_count": 242, "test_row_count": 61},
    )


@pytest.fixture
def price_artifact_bytes(price_schema, price_tree_predictor):
    return dump(price_schema, price_tree_predictor, model_id="price-v1")


@pytest.fixture
def iris_artifact_bytes(iris_schema, iris_tree_predictor):
    return dump(iris_schema, iris_tree_predictor, model_id="iris-v1")


@pytest.fixture
def artifact_file(tmp_path, heart_artifact_bytes):
    """Heart disease artifact written to disk."""
    path = tmp_path / "heart_disease.tbma"
    path.write_bytes(heart_artifact_bytes)
    return path
