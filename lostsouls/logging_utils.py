"""Logging utilities for the turn pipeline.

Colour-coded console output separating deterministic game logic from model
calls, so a trace of one turn shows which decisions came from where.
"""

import os
from enum import Enum


class Color(Enum):
    """ANSI color codes for terminal output."""

    BLUE = "\033[94m"      # Deterministic steps (sanitizer, validator, pathfinding)
    YELLOW = "\033[93m"    # Model calls and retries
    RED = "\033[91m"       # Errors and timeouts
    GREEN = "\033[92m"     # Success/completion
    CYAN = "\033[96m"      # Info/metadata

    BOLD = "\033[1m"
    RESET = "\033[0m"


def colored(text: str, color: Color, bold: bool = False) -> str:
    """Wrap text in ANSI color codes unless LOSTSOULS_NO_COLOR is set."""
    if os.getenv("LOSTSOULS_NO_COLOR"):
        return text

    prefix = color.value
    if bold:
        prefix = Color.BOLD.value + prefix

    return f"{prefix}{text}{Color.RESET.value}"


def is_verbose() -> bool:
    return bool(os.getenv("LOSTSOULS_VERBOSE"))


def is_llm_debug() -> bool:
    return os.getenv("DEBUG_LLM", "").lower() in {"1", "true", "yes"}


def log_deterministic(message: str) -> None:
    """Log a deterministic decision (blue)."""
    print(colored(f"{LOG_TAG_DETERMINISTIC} {message}", Color.BLUE))


def log_llm(message: str) -> None:
    """Log a model operation (yellow)."""
    print(colored(f"{LOG_TAG_LLM} {message}", Color.YELLOW))


def log_error(message: str) -> None:
    """Log an error or retry (red)."""
    print(colored(f"{LOG_TAG_ERROR} {message}", Color.RED))


def log_success(message: str) -> None:
    """Log a success (green)."""
    print(colored(f"{LOG_TAG_SUCCESS} {message}", Color.GREEN))


def log_info(message: str) -> None:
    """Log metadata/info (cyan)."""
    print(colored(f"{LOG_TAG_INFO} {message}", Color.CYAN))


def log_verbose(message: str) -> None:
    """Log per-action pipeline detail when LOSTSOULS_VERBOSE is set."""
    if is_verbose():
        print(colored(f"{LOG_TAG_INFO} {message}", Color.CYAN))


def log_llm_exchange(system_prompt: str, user_message: str, response: str | None) -> None:
    """Dump a full model exchange when DEBUG_LLM is enabled."""
    if not is_llm_debug():
        return
    print(colored("=== SYSTEM PROMPT ===", Color.YELLOW, bold=True))
    print(system_prompt)
    print(colored("=== USER MESSAGE ===", Color.YELLOW, bold=True))
    print(user_message)
    if response is not None:
        print(colored("=== RESPONSE ===", Color.YELLOW, bold=True))
        print(response)


# Markers for operation types (color-blind accessible)
LOG_TAG_DETERMINISTIC = "[•]"
LOG_TAG_LLM = "[AI]"
LOG_TAG_ERROR = "[!]"
LOG_TAG_SUCCESS = "[✓]"
LOG_TAG_INFO = "[i]"
