"""Tests for config loading."""

import pytest

from ats_tailor.config import AppConfig, CacheConfig, LLMConfig, load_config


class TestConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.conversation_mode == "local"
        assert config.llm.turn_timeout == 90.0
        assert config.pipeline.max_attempts == 3
        assert config.pipeline.log_payloads is False
        assert config.paywall.pdf_limit is None

    def test_load_config_defaults(self, tmp_path):
        """Loading from non-existent path returns defaults."""
        config = load_config(tmp_path / "nonexistent.yaml", environ={})
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.api_key is None

    def test_load_config_from_yaml(self, tmp_path):
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text(
            "llm:\n  model: gpt-4o\n  conversation_mode: hosted\n"
            "pipeline:\n  bulk_concurrency: 5\n"
            "paywall:\n  pdf_limit: 3\n"
        )
        config = load_config(yaml_path, environ={})
        assert config.llm.model == "gpt-4o"
        assert config.llm.conversation_mode == "hosted"
        assert config.pipeline.bulk_concurrency == 5
        assert config.paywall.pdf_limit == 3
        # Defaults for unspecified
        assert config.pipeline.max_attempts == 3
        assert config.storage.db_path == "~/.ats-tailor/jobs.db"

    def test_api_key_from_environment(self, tmp_path):
        config = load_config(tmp_path / "missing.yaml", environ={"OPENAI_API_KEY": "sk-env"})
        assert config.llm.api_key == "sk-env"

    def test_yaml_api_key_wins(self, tmp_path):
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text("llm:\n  api_key: sk-file\n")
        config = load_config(yaml_path, environ={"OPENAI_API_KEY": "sk-env"})
        assert config.llm.api_key == "sk-file"

    def test_api_key_hidden_from_repr(self):
        assert "sk-secret" not in repr(LLMConfig(api_key="sk-secret"))

    def test_invalid_conversation_mode(self):
        with pytest.raises(ValueError, match="conversation_mode"):
            LLMConfig(conversation_mode="streaming")

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError, match="turn_timeout"):
            LLMConfig(turn_timeout=0)

    def test_unknown_key_rejected(self, tmp_path):
        yaml_path = tmp_path / "config.yaml"
        yaml_path.write_text("pipeline:\n  qa_threshold: 90\n")
        with pytest.raises(TypeError):
            load_config(yaml_path, environ={})

    def test_cache_resolved_path(self):
        cache = CacheConfig(db_path="~/test.db")
        resolved = cache.resolved_db_path
        assert "~" not in str(resolved)

    def test_frozen_config(self):
        config = LLMConfig()
        with pytest.raises(AttributeError):
            config.model = "changed"
