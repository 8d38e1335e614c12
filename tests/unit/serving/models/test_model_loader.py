"""
Unit tests for tabmodel.serving.models.model_loader.
"""

from unittest.mock import MagicMock, patch

import pytest

from tabmodel.errors import CorruptArtifactError
from tabmodel.serving.models.model_loader import ModelLoader, TTLCache


class TestTTLCache:
    """Tests for the TTL/LRU cache."""

    def test_set_and_get(self):
        cache = TTLCache(maxsize=2, ttl=60)
        cache["a"] = 1

        assert cache["a"] == 1
        assert "a" in cache
        assert len(cache) == 1

    def test_evicts_oldest_at_capacity(self):
        cache = TTLCache(maxsize=2, ttl=60)
        with patch("tabmodel.serving.models.model_loader.time.monotonic", side_effect=[1.0, 2.0, 3.0]):
            cache.set("a", 1)
            cache.set("b", 2)
            cache.set("c", 3)

        assert cache.stats()["keys"] == ["b", "c"]

    def test_expired_entries_are_dropped(self):
        cache = TTLCache(maxsize=2, ttl=10)
        with patch("tabmodel.serving.models.model_loader.time.monotonic", side_effect=[0.0, 11.0]):
            cache.set("a", 1)
            assert cache.get("a") is None

        assert len(cache) == 0

    def test_pop_and_clear(self):
        cache = TTLCache()
        cache["a"] = 1
        cache["b"] = 2

        assert cache.pop("a") == 1
        assert cache.pop("a", "gone") == "gone"
        cache.clear()
        assert len(cache) == 0

    def test_pop_expired_returns_default(self):
        cache = TTLCache(maxsize=2, ttl=10)
        with patch("tabmodel.serving.models.model_loader.time.monotonic", side_effect=[0.0, 11.0]):
            cache.set("a", 1)
            assert cache.pop("a", "gone") == "gone"

        assert len(cache) == 0

    def test_missing_key_raises(self):
        with pytest.raises(KeyError):
            TTLCache()["nope"]


class TestModelLoader:
    """Tests for ModelLoader."""

    def test_load_from_file(self, artifact_file):
        loaded = ModelLoader().load(artifact_file)

        assert loaded.artifact.model_id == "heart-disease-v1"
        assert loaded.info.family == "linear"
        assert loaded.info.task == "classification"
        assert loaded.info.source == str(artifact_file.resolve())
        assert loaded.info.size_bytes == artifact_file.stat().st_size

    def test_cache_hit_returns_same_object(self, artifact_file):
        loader = ModelLoader()

        first = loader.load(artifact_file)
        second = loader.load(str(artifact_file))

        assert first is second
        assert loader.cached_count == 1

    def test_use_cache_false_reloads(self, artifact_file):
        loader = ModelLoader()

        first = loader.load(artifact_file)
        second = loader.load(artifact_file, use_cache=False)

        assert first is not second

    def test_invalidate(self, artifact_file):
        loader = ModelLoader()
        first = loader.load(artifact_file)

        assert loader.invalidate(artifact_file) is True
        assert loader.invalidate(artifact_file) is False
        assert loader.load(artifact_file) is not first

    def test_invalidate_expired_entry(self, artifact_file):
        loader = ModelLoader(cache=TTLCache(ttl=10))
        with patch("tabmodel.serving.models.model_loader.time.monotonic", return_value=0.0):
            loader.load(artifact_file)

        with patch("tabmodel.serving.models.model_loader.time.monotonic", return_value=11.0):
            assert loader.invalidate(artifact_file) is False

        assert loader.cached_count == 0

    def test_clear_cache(self, artifact_file):
        loader = ModelLoader()
        loader.load(artifact_file)

        loader.clear_cache()

        assert loader.cached_count == 0

    def test_injected_cache(self, artifact_file):
        cache = TTLCache(maxsize=1, ttl=60)
        loader = ModelLoader(cache=cache)

        loader.load(artifact_file)

        assert len(cache) == 1

    def test_cache_size_from_settings(self, monkeypatch):
        from tabmodel.settings import get_settings

        monkeypatch.setenv("TABMODEL_MODEL_CACHE_MAXSIZE", "3")
        get_settings.cache_clear()

        assert ModelLoader()._model_cache.maxsize == 3

    def test_corrupt_file_is_not_cached(self, tmp_path):
        path = tmp_path / "broken.tbma"
        path.write_bytes(b"TBMA\x02")
        metrics = MagicMock()
        loader = ModelLoader(metrics=metrics)

        with pytest.raises(CorruptArtifactError):
            loader.load(path)

        assert loader.cached_count == 0
        metrics.record_artifact_load.assert_called_once_with("corrupt")

    def test_missing_file_raises_os_error(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ModelLoader().load(tmp_path / "missing.tbma")

    def test_load_bytes_records_success(self, heart_artifact_bytes):
        metrics = MagicMock()

        loaded = ModelLoader(metrics=metrics).load_bytes(heart_artifact_bytes)

        assert loaded.info.source == "<bytes>"
        metrics.record_artifact_load.assert_called_once_with("success")
        metrics.record_model_info.assert_called_once_with(
            model_id="heart-disease-v1", family="linear", task="classification",
        )
