"""
Artifact Model Loader
=====================

Loads and caches decoded model artifacts from disk.

Features:
- Model caching with TTL and LRU eviction
- Explicit invalidation by path
- The cache is an injected component (no module-level state)

Usage:
    from tabmodel.serving.models.model_loader import ModelLoader

    loader = ModelLoader()
    loaded = loader.load("models/heart_disease.tbma")
    print(loaded.info.to_dict())
"""

import time
import logging
import threading
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tabmodel.errors import ArtifactError, CorruptArtifactError, UnsupportedVersionError
from tabmodel.settings import get_settings
from tabmodel.serving.models.artifact import LoadedArtifact, load as decode_artifact
from tabmodel.serving.telemetry.metrics import MetricsRecorder

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TTLCache:
    """
    Thread-safe TTL cache with LRU eviction.

    Evicts entries after TTL and, when maxsize is exceeded, the least
    recently stored entry.
    """

    def __init__(self, maxsize: int = 10, ttl: int = 3600):
        """
        Args:
            maxsize: Maximum number of items in cache
            ttl: Time-to-live in seconds (default 1 hour)
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        self.maxsize = maxsize
        self.ttl = ttl
        self._cache: Dict[str, Any] = {}
        self._timestamps: Dict[str, float] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[Any]:
        """Get item from cache if exists and not expired."""
        with self._lock:
            if key in self._cache:
                if time.monotonic() - self._timestamps[key] < self.ttl:
                    return self._cache[key]
                del self._cache[key]
                del self._timestamps[key]
                logger.debug(f"Cache evicted (TTL expired): {key}")
            return None

    def set(self, key: str, value: Any):
        """Set item in cache, evicting oldest if at capacity."""
        with self._lock:
            if len(self._cache) >= self.maxsize and key not in self._cache:
                oldest = min(self._timestamps, key=self._timestamps.get)
                del self._cache[oldest]
                del self._timestamps[oldest]
                logger.debug(f"Cache evicted (LRU): {oldest}")

            self._cache[key] = value
            self._timestamps[key] = time.monotonic()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __getitem__(self, key: str) -> Any:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any):
        self.set(key, value)

    def pop(self, key: str, default: Any = None) -> Any:
        """Remove and return item, or default if not found or expired."""
        with self._lock:
            if key not in self._cache:
                return default
            stored = self._timestamps.pop(key)
            value = self._cache.pop(key)
            if time.monotonic() - stored < self.ttl:
                return value
            return default

    def clear(self):
        with self._lock:
            self._cache.clear()
            self._timestamps.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def stats(self) -> Dict[str, Any]:
        """Return cache statistics."""
        with self._lock:
            return {
                "size": len(self._cache),
                "maxsize": self.maxsize,
                "ttl_seconds": self.ttl,
                "keys": list(self._cache.keys()),
            }


@dataclass
class ModelInfo:
    """Where a model came from and what it is."""
    model_id: str
    source: str
    family: str
    task: str
    format_version: int
    size_bytes: int
    name: Optional[str] = None
    created_at: Optional[str] = None
    loaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "name": self.name,
            "source": self.source,
            "family": self.family,
            "task": self.task,
            "format_version": self.format_version,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
            "loaded_at": self.loaded_at,
        }


@dataclass(frozen=True)
class LoadedModel:
    """Container for a decoded artifact and its load metadata."""
    artifact: LoadedArtifact
    info: ModelInfo


def _load_status(error: Exception) -> str:
    if isinstance(error, UnsupportedVersionError):
        return "unsupported_version"
    if isinstance(error, CorruptArtifactError):
        return "corrupt"
    if isinstance(error, OSError):
        return "io_error"
    return "error"


class ModelLoader:
    """
    Loads and caches model artifacts.

    Cache keys are resolved absolute paths; decoded artifacts are
    immutable so cached entries are shared across threads.
    """

    def __init__(
        self,
        cache: Optional[TTLCache] = None,
        metrics: Optional[MetricsRecorder] = None,
    ):
        if cache is None:
            settings = get_settings()
            cache = TTLCache(maxsize=settings.model_cache_maxsize, ttl=settings.model_cache_ttl)
        self._model_cache = cache
        self.metrics = metrics or MetricsRecorder()

    @staticmethod
    def _build_cache_key(path: PathLike) -> str:
        return str(Path(path).expanduser().resolve())

    def load_bytes(self, data: bytes, source: str = "<bytes>") -> LoadedModel:
        """
        Decode artifact bytes (never cached).

        Raises:
            ArtifactError: UnsupportedVersionError or CorruptArtifactError
        """
        try:
            artifact = decode_artifact(data)
        except ArtifactError as e:
            self.metrics.record_artifact_load(_load_status(e))
            logger.error(f"Failed to load {source}: [{e.error_code}] {e.message} {e.details}")
            raise

        self.metrics.record_artifact_load("success")
        self.metrics.record_model_info(
            model_id=artifact.model_id,
            family=artifact.predictor.family,
            task=artifact.schema.task.type.value,
        )

        info = ModelInfo(
            model_id=artifact.model_id,
            source=source,
            family=artifact.predictor.family,
            task=artifact.schema.task.type.value,
            format_version=artifact.format_version,
            size_bytes=len(data),
            name=artifact.name,
            created_at=artifact.created_at,
        )
        return LoadedModel(artifact=artifact, info=info)

    def load(self, path: PathLike, use_cache: bool = True) -> LoadedModel:
        """
        Load an artifact file.

        Args:
            path: Path to the artifact file
            use_cache: Whether to use the cached model

        Returns:
            LoadedModel with artifact and metadata

        Raises:
            ArtifactError: The file is not a readable artifact
            OSError: The file cannot be read
        """
        cache_key = self._build_cache_key(path)

        if use_cache:
            cached = self._model_cache.get(cache_key)
            if cached is not None:
                return cached

        logger.info(f"Loading model artifact: {cache_key}")

        try:
            with open(cache_key, "rb") as f:
                data = f.read()
        except OSError as e:
            self.metrics.record_artifact_load(_load_status(e))
            logger.error(f"Failed to read {cache_key}: {e}")
            raise

        loaded = self.load_bytes(data, source=cache_key)

        self._model_cache[cache_key] = loaded
        logger.info(
            f"Loaded model: {loaded.info.model_id} "
            f"family={loaded.info.family} task={loaded.info.task} "
            f"version={loaded.info.format_version}"
        )
        return loaded

    def invalidate(self, path: PathLike) -> bool:
        """Drop one path from the cache. Returns True if it was cached."""
        return self._model_cache.pop(self._build_cache_key(path)) is not None

    def clear_cache(self, path: Optional[PathLike] = None):
        """Clear model cache."""
        if path is not None:
            self.invalidate(path)
        else:
            self._model_cache.clear()

    @property
    def cached_count(self) -> int:
        """Number of cached models."""
        return len(self._model_cache)
