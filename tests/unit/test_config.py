"""
Tests for ML configuration and application settings.
"""

import logging

import pytest

from stylerank.config.settings import Settings, configure_logging, get_settings
from stylerank.ml.config import (
    CacheConfig,
    LexicalMethod,
    MLConfig,
    SearchConfig,
    get_ml_config,
    reset_config,
)


def test_defaults():
    config = MLConfig()

    assert config.search.semantic_weight == 0.7
    assert config.search.lexical_weight == 0.3
    assert config.search.lexical_method == LexicalMethod.COMBINED
    assert config.recommend.max_per_brand == 2
    assert config.heuristic.default_top_k == 12
    config.validate()


def test_candidate_pool_size():
    config = SearchConfig()

    assert config.candidate_pool_size(5) == 150
    assert config.candidate_pool_size(20) == 300


@pytest.mark.parametrize("name, value", [("semantic_weight", -0.1), ("lexical_weight", float("inf")), ("lexical_scale", 0.0)])
def test_invalid_search_config(name, value):
    with pytest.raises(ValueError):
        SearchConfig(**{name: value})


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        CacheConfig(embedding_batch_size=0)


def test_validate_rejects_bad_shares():
    config = MLConfig()
    config.heuristic.tier1_share = 1.5

    with pytest.raises(AssertionError):
        config.validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv("EMBEDDING_BATCH_SIZE", "8")
    monkeypatch.setenv("SEARCH_SEMANTIC_WEIGHT", "0.5")
    monkeypatch.setenv("SEARCH_LEXICAL_METHOD", "BM25")

    config = MLConfig.from_env()

    assert config.cache.embedding_batch_size == 8
    assert config.search.semantic_weight == 0.5
    assert config.search.lexical_weight == 0.3
    assert config.search.lexical_method == LexicalMethod.BM25


def test_global_config_singleton(monkeypatch):
    first = get_ml_config()
    assert get_ml_config() is first

    monkeypatch.setenv("SEARCH_LEXICAL_WEIGHT", "0.4")
    reset_config()

    second = get_ml_config()
    assert second is not first
    assert second.search.lexical_weight == 0.4


def test_settings_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("STYLERANK_CACHE_BACKEND", "redis")
    monkeypatch.setenv("STYLERANK_REDIS_PORT", "6380")
    monkeypatch.setenv("STYLERANK_CACHE_DIR", str(tmp_path))

    settings = Settings()

    assert settings.cache_backend == "redis"
    assert settings.redis_port == 6380
    assert settings.cache_dir == tmp_path


def test_settings_reject_unknown_backend(monkeypatch):
    monkeypatch.setenv("STYLERANK_CACHE_BACKEND", "sqlite")

    with pytest.raises(ValueError):
        Settings()


def test_get_settings_is_cached():
    get_settings.cache_clear()

    assert get_settings() is get_settings()


def test_configure_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    configure_logging("debug")

    assert calls[0]["level"] == "DEBUG"


def test_debug_mode_forces_debug_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setenv("STYLERANK_DEBUG", "true")
    get_settings.cache_clear()

    try:
        configure_logging()
    finally:
        get_settings.cache_clear()

    assert calls[0]["level"] == "DEBUG"
