"""
Test Core Configuration & Prompts
Tests the Brain: Config loading and prompt templating.
"""
import os
from unittest.mock import patch

import pytest

from attempt_engine.config import MODEL_NAME, get_prompt, get_settings


def test_model_name_configured():
    """Verify the model name is set correctly."""
    assert MODEL_NAME == "gemini-2.0-flash"


def test_prompt_integrity_writing_evaluator():
    """Test that question and essay are embedded in the evaluator prompt."""
    prompt = get_prompt(
        "writing_evaluator",
        question_text="Discuss the claim.",
        stimulus="Cities should ban cars.",
        answer_text="I disagree because...",
        max_score=6.0,
    )

    assert "Discuss the claim." in prompt
    assert "Cities should ban cars." in prompt
    assert "I disagree because..." in prompt
    assert "0-6.0" in prompt


def test_prompt_invalid_type():
    """Test that invalid template name raises KeyError."""
    with pytest.raises(KeyError):
        get_prompt("invalid_template")


def test_api_key_guard_missing():
    """Test that missing API key raises ValueError."""
    import importlib
    import attempt_engine.config

    # Clear environment AND patch load_dotenv to prevent .env file loading
    with patch.dict(os.environ, {}, clear=True):
        with patch("dotenv.load_dotenv"):
            importlib.reload(attempt_engine.config)

            with pytest.raises(ValueError, match="GEMINI_API_KEY not found"):
                attempt_engine.config.get_api_key()


def test_api_key_success():
    """Test that valid API key is returned when set."""
    with patch.dict(os.environ, {"GEMINI_API_KEY": "test_key_123"}):
        import importlib
        import attempt_engine.config
        importlib.reload(attempt_engine.config)

        assert attempt_engine.config.get_api_key() == "test_key_123"


def test_settings_defaults():
    with patch.dict(os.environ, {}, clear=True):
        with patch("attempt_engine.config.load_dotenv"):
            settings = get_settings()

    assert settings.catalog_url == ""
    assert settings.catalog_timeout_seconds == 10
    assert settings.writing_pass_threshold == 0.6
    assert settings.writing_max_score == 6
    assert settings.log_level == "INFO"


def test_settings_from_environment():
    env = {
        "CATALOG_URL": " http://catalog:9000 ",
        "CATALOG_TIMEOUT_SECONDS": "2.5",
        "WRITING_PASS_THRESHOLD": "0.5",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env, clear=True):
        with patch("attempt_engine.config.load_dotenv"):
            settings = get_settings()

    assert settings.catalog_url == "http://catalog:9000"
    assert settings.catalog_timeout_seconds == 2.5
    assert settings.writing_pass_threshold == 0.5
    assert settings.log_level == "DEBUG"
