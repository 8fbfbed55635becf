"""
Configuration Module for the Attempt Engine
Centralizes environment variables, scoring defaults, and prompt templates.
"""
import os
from dotenv import load_dotenv
from pydantic import BaseModel

# --- API Configuration ---
MODEL_NAME = "gemini-2.0-flash"

# --- Scoring Defaults ---
DEFAULT_MARKS = 1
DEFAULT_NEGATIVE_MARKS = 0


class Settings(BaseModel):
    """Runtime settings resolved from the environment."""
    catalog_url: str = ""
    catalog_timeout_seconds: float = 10.0
    writing_pass_threshold: float = 0.6
    writing_max_score: float = 6.0
    log_level: str = "INFO"


def get_settings() -> Settings:
    """
    Reads settings fresh from the environment (and .env when present).

    Returns:
        Settings instance.

    Raises:
        ValueError: If a numeric variable cannot be parsed.
    """
    load_dotenv()
    return Settings(
        catalog_url=os.getenv("CATALOG_URL", "").strip(),
        catalog_timeout_seconds=float(os.getenv("CATALOG_TIMEOUT_SECONDS") or 10),
        writing_pass_threshold=float(os.getenv("WRITING_PASS_THRESHOLD") or 0.6),
        writing_max_score=float(os.getenv("WRITING_MAX_SCORE") or 6),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def get_api_key() -> str:
    """
    Validates and returns the Gemini API Key.

    Raises:
        ValueError: If GEMINI_API_KEY is not found in environment.
    """
    # Load environment variables fresh (for testing and reload scenarios)
    load_dotenv()
    api_key = os.getenv("GEMINI_API_KEY")

    if not api_key:
        raise ValueError(
            "GEMINI_API_KEY not found. "
            "Please create a .env file with your API key."
        )
    return api_key

# --- Prompt Templates ---
PROMPT_TEMPLATES = {
    "writing_evaluator": """You are an Analytical Writing evaluator for a standardized exam.

TASK:
1. Evaluate the essay content against the prompt below.
2. Focus on argument clarity, coherence, and relevance.
3. Ignore minor grammar issues.
4. Score on a 0-{max_score} scale (half points allowed).

Prompt:
{question_text}

{stimulus}

Candidate Essay:
{answer_text}

Return JSON with a numeric `score` and a short `feedback` string only."""
}

def get_prompt(template_name: str, **kwargs) -> str:
    """
    Retrieves a formatted prompt template.

    Args:
        template_name: Template key (e.g. "writing_evaluator").
        **kwargs: Variables to format into the template.

    Returns:
        Formatted prompt string.

    Raises:
        KeyError: If template_name is not found in templates.
    """
    if template_name not in PROMPT_TEMPLATES:
        raise KeyError(f"Prompt template '{template_name}' not found.")

    return PROMPT_TEMPLATES[template_name].format(**kwargs)
