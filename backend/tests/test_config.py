"""Tests for Pydantic Settings configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from insight_flow.config import Settings, get_settings
from insight_flow.errors import ConfigurationError

_ENV_KEYS = [
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "COMPLETION_MODEL",
    "FILTER_MODEL",
    "EMBEDDING_BACKEND",
    "EMBEDDING_MODEL",
    "EMBEDDING_DIMENSION",
    "VOYAGE_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "VECTOR_STORE_BACKEND",
    "VECTOR_INDEX_NAME",
    "RETRIEVAL_TOP_K",
    "FILTER_STRATEGY",
    "LOG_LEVEL",
]


@pytest.fixture
def clean_env():
    """Settings built from defaults only."""
    get_settings.cache_clear()
    with patch.dict(os.environ, {}, clear=False):
        for key in _ENV_KEYS:
            os.environ.pop(key, None)
        yield
    get_settings.cache_clear()


class TestSettingsDefaults:
    """Test Settings with no environment variables (default values)."""

    def test_all_defaults(self, clean_env):
        """Settings loads with reference-deployment defaults."""
        settings = Settings()

        assert settings.openai_api_key is None
        assert settings.openai_base_url == "https://api.openai.com/v1"
        assert settings.completion_model == "gpt-4o-mini"
        assert settings.filter_model == "gpt-3.5-turbo-0125"
        assert settings.embedding_backend == "openai"
        assert settings.embedding_model == "text-embedding-ada-002"
        assert settings.embedding_dimension == 1536
        assert settings.vector_store_backend == "supabase"
        assert settings.vector_index_name == "agent-knowledge"
        assert settings.retrieval_top_k == 5
        assert settings.filter_strategy == "llm"
        assert settings.ingestion_batch_size == 100
        assert settings.log_level == "INFO"

    def test_to_dict_redacts_secrets(self, clean_env):
        """to_dict() masks credentials unless redact=False."""
        settings = Settings(openai_api_key="sk-secret", supabase_key="service-key")

        redacted = settings.to_dict()
        assert redacted["openai_api_key"] == "***"
        assert redacted["supabase_key"] == "***"
        assert redacted["voyage_api_key"] is None

        raw = settings.to_dict(redact=False)
        assert raw["openai_api_key"] == "sk-secret"


class TestSettingsEnvOverrides:
    """Test Settings with environment variable overrides."""

    def test_string_env_vars(self, clean_env):
        with patch.dict(
            os.environ,
            {
                "OPENAI_API_KEY": "sk-test-key",
                "SUPABASE_URL": "https://test.supabase.co",
                "SUPABASE_KEY": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9",
                "VECTOR_INDEX_NAME": "handit-agent-insights",
                "COMPLETION_MODEL": "gpt-4o",
            },
        ):
            settings = Settings()

            assert settings.openai_api_key == "sk-test-key"
            assert settings.supabase_url == "https://test.supabase.co"
            assert settings.vector_index_name == "handit-agent-insights"
            assert settings.completion_model == "gpt-4o"

    def test_literal_choices_from_env(self, clean_env):
        with patch.dict(
            os.environ,
            {"FILTER_STRATEGY": "pattern", "VECTOR_STORE_BACKEND": "memory", "EMBEDDING_BACKEND": "voyage"},
        ):
            settings = Settings()
            assert settings.filter_strategy == "pattern"
            assert settings.vector_store_backend == "memory"
            assert settings.embedding_backend == "voyage"

    def test_case_insensitive_env_vars(self, clean_env):
        with patch.dict(os.environ, {"openai_api_key": "lowercase-key"}):
            settings = Settings()
            assert settings.openai_api_key == "lowercase-key"

    def test_extra_env_vars_ignored(self, clean_env):
        with patch.dict(os.environ, {"RANDOM_VAR": "should_be_ignored"}):
            settings = Settings()
            assert hasattr(settings, "random_var") is False


class TestSettingsValidation:
    """Test Settings validation error handling."""

    def test_unknown_filter_strategy_rejected(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(filter_strategy="regex")

    def test_top_k_bounded_to_five(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(retrieval_top_k=6)
        with pytest.raises(ValidationError):
            Settings(retrieval_top_k=0)

    def test_batch_size_must_be_positive(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(ingestion_batch_size=0)

    def test_trace_session_cap_must_be_positive(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(max_trace_sessions=0)

    def test_rejects_invalid_log_level(self, clean_env):
        with pytest.raises(ValidationError):
            Settings(log_level="INVALID")

    def test_log_level_normalized_to_uppercase(self, clean_env):
        assert Settings(log_level="debug").log_level == "DEBUG"


class TestRequire:
    """Test Settings.require() credential checks."""

    def test_missing_credentials_raise(self, clean_env):
        settings = Settings()
        with pytest.raises(ConfigurationError) as exc_info:
            settings.require("openai_api_key", "supabase_url")

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert exc_info.value.context["missing"] == ["openai_api_key", "supabase_url"]
        assert "OPENAI_API_KEY" in exc_info.value.message

    def test_empty_string_counts_as_missing(self, clean_env):
        settings = Settings(openai_api_key="")
        with pytest.raises(ConfigurationError):
            settings.require("openai_api_key")

    def test_present_credentials_pass(self, clean_env):
        settings = Settings(openai_api_key="sk-test")
        settings.require("openai_api_key")


class TestGetSettingsFunction:
    """Test get_settings() singleton function."""

    def test_returns_singleton(self, clean_env):
        assert get_settings() is get_settings()

    def test_cache_can_be_cleared(self, clean_env):
        settings1 = get_settings()
        get_settings.cache_clear()
        settings2 = get_settings()
        assert settings1 is not settings2


class TestSettingsWithDeps:
    """Test Settings integration with deps.py factories."""

    def test_llm_client_requires_api_key(self, clean_env):
        from insight_flow.deps import create_llm_client

        with pytest.raises(ConfigurationError):
            create_llm_client(Settings())

    def test_llm_client_uses_settings(self, clean_env):
        from insight_flow.deps import create_llm_client

        client = create_llm_client(Settings(openai_api_key="sk-test", completion_model="gpt-4o"))
        assert client.model == "gpt-4o"
        assert client.base_url == "https://api.openai.com/v1"

    def test_supabase_store_requires_url_and_key(self, clean_env):
        from insight_flow.deps import create_vector_store

        with pytest.raises(ConfigurationError) as exc_info:
            create_vector_store(Settings(supabase_url="https://x.supabase.co"))
        assert exc_info.value.context["missing"] == ["supabase_key"]

    def test_memory_store_needs_no_credentials(self, clean_env):
        from insight_flow.deps import create_vector_store
        from insight_flow.services.vector_store import InMemoryVectorStore

        store = create_vector_store(Settings(vector_store_backend="memory"))
        assert isinstance(store, InMemoryVectorStore)

    def test_voyage_embedding_backend(self, clean_env):
        from insight_flow.deps import create_embedding_service
        from insight_flow.services.embedding import VoyageEmbeddingService

        service = create_embedding_service(
            Settings(embedding_backend="voyage", voyage_api_key="pa-test"),
            input_type="document",
        )
        assert isinstance(service, VoyageEmbeddingService)
        assert service.dimension == 1024
        assert service.input_type == "document"

    def test_pattern_extractor_needs_no_credentials(self, clean_env):
        from insight_flow.deps import create_filter_extractor
        from insight_flow.extraction import PatternFilterExtractor

        extractor = create_filter_extractor(Settings(filter_strategy="pattern"))
        assert isinstance(extractor, PatternFilterExtractor)

    def test_pipeline_fails_at_startup_without_credentials(self, clean_env):
        from insight_flow.deps import create_pipeline

        with pytest.raises(ConfigurationError):
            create_pipeline(Settings())
