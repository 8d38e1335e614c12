"""
Text Encoding Protocols
=======================

Abstract interface for the Text feature encoding strategy.
Allows swapping the hashing scheme without modifying FeatureEncoder.

Usage:
    class MyTextStrategy(TextEncodingStrategy):
        def encode(self, feature_name: str, value: Optional[str]) -> float:
            ...

    encoder = FeatureEncoder(schema, text_strategy=MyTextStrategy())
"""

import hashlib
from typing import Optional, Protocol, runtime_checkable

from tabmodel.settings import get_settings


@runtime_checkable
class TextEncodingStrategy(Protocol):
    """
    Protocol for encoding a Text feature into a single numeric slot.

    Implementations must be pure: the same (feature_name, value) pair
    always maps to the same float.
    """

    def encode(self, feature_name: str, value: Optional[str]) -> float:
        """
        Encode a text value.

        Args:
            feature_name: Name of the Text feature
            value: String form of the record value, None if missing

        Returns:
            Encoded float
        """
        ...


class HashingTextStrategy:
    """
    Feature-hash fallback for Text features.

    Hashes the value with blake2b (stable across processes, unlike hash())
    into one of num_buckets buckets and normalises the bucket to [0, 1).
    num_buckets defaults to TABMODEL_TEXT_HASH_BUCKETS. Missing values
    encode to 0.0.
    """

    def __init__(self, num_buckets: Optional[int] = None):
        if num_buckets is None:
            num_buckets = get_settings().text_hash_buckets
        if num_buckets < 1:
            raise ValueError(f"num_buckets must be positive, got {num_buckets}")
        self.num_buckets = num_buckets

    def bucket(self, value: str) -> int:
        digest = hashlib.blake2b(value.encode("utf-8", errors="surrogatepass"), digest_size=8).digest()
        return int.from_bytes(digest, "little") % self.num_buckets

    def encode(self, feature_name: str, value: Optional[str]) -> float:
        if value is None:
            return 0.0
        return self.bucket(value) / self.num_buckets
