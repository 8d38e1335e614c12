"""
Feature Encoder
===============

Converts a named-field input record into the fixed-order numeric vector
the trained predictor expects.

Encoding rules (per FeatureSpec, in schema order):
- Number: numeric-coercible value, else 0.0 (missing is NOT an error)
- Enum:   one-hot over the closed value set; exact, case-sensitive match,
          anything else sets the trailing "unknown" slot
- Text:   one slot produced by a pluggable TextEncodingStrategy

encode() is total: it never raises for any mapping of str -> scalar.
"""

import math
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass

import numpy as np

from tabmodel.serving.features.schema import FeatureKind, SchemaModel
from tabmodel.serving.features.protocols import TextEncodingStrategy, HashingTextStrategy

_TRUE_STRINGS = {"true"}
_FALSE_STRINGS = {"false"}


# =============================================================================
# VALUE COERCION
# =============================================================================

def coerce_number(value: Any) -> Optional[float]:
    """
    Coerce a record value to a finite float.

    Returns None when the value is missing or not numeric.
    """
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0
    if isinstance(value, Real):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return None
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        text = value.strip()
        lowered = text.lower()
        if lowered in _TRUE_STRINGS:
            return 1.0
        if lowered in _FALSE_STRINGS:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def coerce_category(value: Any) -> Optional[str]:
    """
    Render a record value as the string used for category matching.

    Booleans render as "true"/"false" and integral floats without the
    trailing ".0", so 1, 1.0 and "1" all match the category "1".
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, np.bool_)):
        return "true" if value else "false"
    if isinstance(value, Real):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            # integers beyond float range keep their exact digits
            try:
                return str(int(value))
            except (OverflowError, ValueError):
                return None
        if math.isfinite(number) and number.is_integer():
            return str(int(number))
        return repr(number)
    return str(value)


@dataclass(frozen=True)
class EncodingNote:
    """A documented fallback applied while encoding one feature."""
    feature: str
    issue: str  # missing, not_numeric, unknown_category
    value: Any = None


# =============================================================================
# ENCODER
# =============================================================================

class FeatureEncoder:
    """
    Schema-bound feature encoder.

    Holds no per-call state, so one instance is shared by all concurrent
    predict calls for a model.
    """

    def __init__(
        self,
        schema: SchemaModel,
        text_strategy: Optional[TextEncodingStrategy] = None,
    ):
        self.schema = schema
        self.text_strategy = text_strategy or HashingTextStrategy()
        self._offsets = schema.feature_offsets()
        # category -> slot within the feature block, per enum feature
        self._category_slots: Dict[str, Dict[str, int]] = {
            spec.name: {value: i for i, value in enumerate(spec.values)}
            for spec in schema.features
            if spec.kind == FeatureKind.ENUM
        }

    @property
    def dimension(self) -> int:
        return self.schema.encoded_dimension()

    def encode(self, record: Mapping[str, Any]) -> np.ndarray:
        """
        Encode a record into a float64 vector of length encoded_dimension().

        Args:
            record: Mapping of feature name to scalar value; extra keys ignored

        Returns:
            Freshly allocated feature vector
        """
        vector = np.zeros(self.dimension, dtype=np.float64)

        for spec, offset in zip(self.schema.features, self._offsets):
            value = record.get(spec.name)

            if spec.kind == FeatureKind.NUMBER:
                number = coerce_number(value)
                vector[offset] = number if number is not None else 0.0

            elif spec.kind == FeatureKind.ENUM:
                slots = self._category_slots[spec.name]
                category = coerce_category(value)
                slot = slots.get(category) if category is not None else None
                vector[offset + (slot if slot is not None else len(spec.values))] = 1.0

            else:
                vector[offset] = float(self.text_strategy.encode(spec.name, coerce_category(value)))

        return vector

    def explain(self, record: Mapping[str, Any]) -> List[EncodingNote]:
        """
        List the fallbacks encode() applies to this record.

        Diagnostic only; never changes the encoded vector.
        """
        notes = []
        for spec in self.schema.features:
            if spec.name not in record or record[spec.name] is None:
                notes.append(EncodingNote(feature=spec.name, issue="missing"))
                continue

            value = record[spec.name]
            if spec.kind == FeatureKind.NUMBER and coerce_number(value) is None:
                notes.append(EncodingNote(feature=spec.name, issue="not_numeric", value=value))
            elif spec.kind == FeatureKind.ENUM and coerce_category(value) not in self._category_slots[spec.name]:
                notes.append(EncodingNote(feature=spec.name, issue="unknown_category", value=value))

        return notes


def encode(record: Mapping[str, Any], schema: SchemaModel) -> np.ndarray:
    """Encode a record with the default text strategy."""
    return FeatureEncoder(schema).encode(record)
