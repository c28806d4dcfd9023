"""
Lost Souls Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Runtime configuration loaded from environment variables."""

    # Model provider
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")

    # API Keys
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")

    # Local models served by Ollama (LLM_PROVIDER=ollama)
    OLLAMA_BASE_URL: str | None = os.getenv("OLLAMA_BASE_URL")

    # Request shaping
    LLM_MAX_TOKENS: int = int(os.getenv("LLM_MAX_TOKENS", "300"))
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.7"))
    LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "15"))

    # Retry policy (rate limits only). Wait before retry n is n * backoff.
    MODEL_MAX_ATTEMPTS: int = int(os.getenv("MODEL_MAX_ATTEMPTS", "3"))
    RATE_LIMIT_BACKOFF_SECONDS: float = float(os.getenv("RATE_LIMIT_BACKOFF_SECONDS", "2"))

    # Turn pacing
    ACTION_TIMEOUT_SECONDS: float = float(os.getenv("ACTION_TIMEOUT_SECONDS", "15"))
    ACTION_PACING_SECONDS: float = float(os.getenv("ACTION_PACING_SECONDS", "0.3"))
    BUDGET_FAIL_DELAY_SECONDS: float = float(os.getenv("BUDGET_FAIL_DELAY_SECONDS", "0.5"))

    # Player input
    DEFAULT_PROMPT_MAX_LENGTH: int = int(os.getenv("DEFAULT_PROMPT_MAX_LENGTH", "150"))

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        provider = cls.LLM_PROVIDER.lower()

        if provider == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if provider == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider. "
                "For local models, set LLM_PROVIDER=ollama instead."
            )

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "Lost Souls Configuration:",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Max Tokens: {cls.LLM_MAX_TOKENS}",
            f"  Temperature: {cls.LLM_TEMPERATURE}",
            f"  Request Timeout: {cls.LLM_TIMEOUT_SECONDS}s",
            f"  Model Attempts: {cls.MODEL_MAX_ATTEMPTS}",
            f"  Action Timeout: {cls.ACTION_TIMEOUT_SECONDS}s",
            f"  Prompt Max Length: {cls.DEFAULT_PROMPT_MAX_LENGTH}",
        ]
        return "\n".join(lines)
