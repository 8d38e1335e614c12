"""
Unit tests for tabmodel.serving.features.encoder.

Tests cover:
- Number coercion and defaults
- Enum one-hot with the unknown slot
- Text hashing strategy
- Determinism and totality of encode()
- explain() diagnostics
"""

import math

import numpy as np
import pytest

from tabmodel.serving.features.encoder import (
    FeatureEncoder,
    coerce_category,
    coerce_number,
    encode,
)
from tabmodel.serving.features.protocols import HashingTextStrategy, TextEncodingStrategy
from tabmodel.serving.features.schema import FeatureSpec, TaskSpec, SchemaModel


@pytest.fixture
def gender_schema():
    return SchemaModel(
        features=(FeatureSpec.enum("gender", ["male", "female"]),),
        task=TaskSpec.regression(),
    )


class TestCoerceNumber:
    """Tests for numeric coercion."""

    @pytest.mark.parametrize("value,expected", [
        (3, 3.0),
        (2.5, 2.5),
        (True, 1.0),
        (False, 0.0),
        (" 4.25 ", 4.25),
        ("TRUE", 1.0),
        ("false", 0.0),
        (np.int64(7), 7.0),
    ])
    def test_numeric_values(self, value, expected):
        assert coerce_number(value) == expected

    @pytest.mark.parametrize("value", [None, "abc", "", float("nan"), float("inf"), "nan", [1], 10 ** 400, "1e999"])
    def test_non_numeric_values(self, value):
        assert coerce_number(value) is None


class TestCoerceCategory:
    """Tests for category string rendering."""

    def test_integral_numbers_drop_decimal(self):
        assert coerce_category(1) == "1"
        assert coerce_category(1.0) == "1"

    def test_booleans_render_lowercase(self):
        assert coerce_category(True) == "true"

    def test_fractional_float(self):
        assert coerce_category(2.5) == "2.5"

    def test_strings_unchanged(self):
        assert coerce_category(" Male ") == " Male "

    def test_integers_beyond_float_range_keep_digits(self):
        assert coerce_category(10 ** 400) == "1" + "0" * 400


class TestFeatureEncoder:
    """Tests for FeatureEncoder.encode()."""

    def test_vector_length_matches_schema(self, heart_schema, sample_record):
        vector = FeatureEncoder(heart_schema).encode(sample_record)

        assert vector.dtype == np.float64
        assert vector.shape == (heart_schema.encoded_dimension(),)

    def test_full_record(self, heart_schema, sample_record):
        vector = FeatureEncoder(heart_schema).encode(sample_record)

        assert vector[0] == 63.0
        assert list(vector[1:4]) == [1.0, 0.0, 0.0]
        assert list(vector[4:9]) == [1.0, 0.0, 0.0, 0.0, 0.0]
        assert 0.0 <= vector[9] < 1.0

    def test_unknown_enum_value_sets_unknown_slot(self, gender_schema):
        vector = encode({"gender": "unknown_value"}, gender_schema)

        assert list(vector) == [0.0, 0.0, 1.0]

    def test_enum_match_is_case_sensitive(self, gender_schema):
        vector = encode({"gender": "Male"}, gender_schema)

        assert list(vector) == [0.0, 0.0, 1.0]

    def test_missing_features_use_defaults(self, heart_schema):
        vector = FeatureEncoder(heart_schema).encode({})

        assert vector[0] == 0.0
        assert vector[3] == 1.0  # gender unknown
        assert vector[8] == 1.0  # chest_pain unknown
        assert vector[9] == 0.0  # text missing

    def test_extra_keys_ignored(self, heart_schema, sample_record):
        encoder = FeatureEncoder(heart_schema)
        extended = dict(sample_record, cholesterol=233, unused="x")

        assert np.array_equal(encoder.encode(sample_record), encoder.encode(extended))

    def test_non_numeric_number_defaults_to_zero(self, heart_schema):
        vector = FeatureEncoder(heart_schema).encode({"age": "sixty"})

        assert vector[0] == 0.0

    def test_deterministic_and_key_order_independent(self, heart_schema, sample_record):
        encoder = FeatureEncoder(heart_schema)
        reordered = dict(reversed(list(sample_record.items())))

        first = encoder.encode(sample_record)
        second = encoder.encode(reordered)

        assert first.tobytes() == second.tobytes()

    @pytest.mark.parametrize("record", [
        {"age": None, "gender": None, "chest_pain": None, "notes": None},
        {"age": float("nan"), "gender": 3.7, "chest_pain": True, "notes": 12},
        {"age": object(), "gender": object()},
        {"age": 10 ** 400, "gender": 10 ** 400, "chest_pain": -(10 ** 400), "notes": 10 ** 400},
        {"notes": "\ud800", "gender": "\udfff"},
    ])
    def test_encode_never_raises(self, heart_schema, record):
        vector = FeatureEncoder(heart_schema).encode(record)

        assert all(math.isfinite(v) for v in vector)

    def test_numeric_enum_values_match_string_categories(self):
        schema = SchemaModel(
            features=(FeatureSpec.enum("exercise_angina", ["0", "1"]),),
            task=TaskSpec.regression(),
        )

        assert list(encode({"exercise_angina": 1}, schema)) == [0.0, 1.0, 0.0]
        assert list(encode({"exercise_angina": 1.0}, schema)) == [0.0, 1.0, 0.0]

    def test_custom_text_strategy(self, heart_schema):
        class LengthStrategy:
            def encode(self, feature_name, value):
                return float(len(value)) if value else 0.0

        assert isinstance(LengthStrategy(), TextEncodingStrategy)
        vector = FeatureEncoder(heart_schema, text_strategy=LengthStrategy()).encode({"notes": "abcd"})

        assert vector[9] == 4.0


class TestExplain:
    """Tests for FeatureEncoder.explain()."""

    def test_reports_fallbacks(self, heart_schema):
        notes = FeatureEncoder(heart_schema).explain({"age": "old", "gender": "other"})
        issues = {(n.feature, n.issue) for n in notes}

        assert ("age", "not_numeric") in issues
        assert ("gender", "unknown_category") in issues
        assert ("chest_pain", "missing") in issues
        assert ("notes", "missing") in issues

    def test_clean_record_has_no_notes(self, heart_schema, sample_record):
        assert FeatureEncoder(heart_schema).explain(sample_record) == []


class TestHashingTextStrategy:
    """Tests for the default text strategy."""

    def test_stable_and_in_range(self):
        strategy = HashingTextStrategy(num_buckets=16)

        value = strategy.encode("notes", "chest pain at rest")

        assert value == strategy.encode("notes", "chest pain at rest")
        assert 0.0 <= value < 1.0
        assert value * 16 == strategy.bucket("chest pain at rest")

    def test_lone_surrogate_is_hashed(self):
        value = HashingTextStrategy(num_buckets=16).encode("notes", "\ud800")

        assert 0.0 <= value < 1.0

    def test_missing_is_zero(self):
        assert HashingTextStrategy().encode("notes", None) == 0.0

    def test_bucket_count_from_settings(self, monkeypatch):
        from tabmodel.settings import get_settings

        monkeypatch.setenv("TABMODEL_TEXT_HASH_BUCKETS", "32")
        get_settings.cache_clear()

        assert HashingTextStrategy().num_buckets == 32

    def test_rejects_non_positive_buckets(self):
        with pytest.raises(ValueError):
            HashingTextStrategy(num_buckets=0)
