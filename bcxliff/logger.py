"""
Centralized Logging Module for the BC XLIFF Assistant.

Provides consistent logging across all modules with output to:
- Console (for development/debugging)
- File (logs/bcxliff.log for post-run analysis)

AI token usage is tracked by a caller-owned UsageTracker which logs through the dedicated "usage" logger.
"""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

# Create logs directory if not exists
LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs")
os.makedirs(LOG_DIR, exist_ok=True)

LOG_FILE = os.path.join(LOG_DIR, "bcxliff.log")

# Formatter with timestamp, level, module, and message
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s() | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

AI_COST_PER_1K_TOKENS = 0.01


def get_logger(name: str) -> logging.Logger:
    """
    Returns a configured logger instance.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A logging.Logger instance configured for file and console output.
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)

    # File Handler - captures everything (DEBUG and above)
    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    # Console Handler - only INFO and above for cleaner output
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


def setup_exception_hook():
    """
    Installs a global exception hook to log uncaught exceptions before crash.
    Call this once at app startup.
    """
    root_logger = get_logger("CRASH")

    def exception_hook(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            # Allow Ctrl+C to exit without logging
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        root_logger.critical("Uncaught exception!", exc_info=(exc_type, exc_value, exc_tb))
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = exception_hook


@dataclass
class UsageSummary:
    total_tokens: int
    estimated_ai_cost: float


class UsageTracker:
    """
    Accumulates AI token usage for one session.
    """

    def __init__(self):
        self.logger = get_logger("usage")
        self.total_tokens = 0

    def log_ai_usage(self, context: str, text: str, translated: str, usage: Optional[dict] = None):
        self.logger.info(f"[AI] {context} | Input: \"{text}\" | Output: \"{translated}\"")
        if usage:
            total = int(usage.get("total_tokens") or 0)
            self.total_tokens += total
            self.logger.info(
                f"[AI] Tokens: {total} (Prompt: {usage.get('prompt_tokens', 0)}, "
                f"Completion: {usage.get('completion_tokens', 0)})"
            )
        else:
            self.logger.info("[AI] Tokens: not reported")

    def summary(self) -> UsageSummary:
        return UsageSummary(
            total_tokens=self.total_tokens,
            estimated_ai_cost=round(self.total_tokens / 1000 * AI_COST_PER_1K_TOKENS, 4),
        )

    def reset(self):
        self.total_tokens = 0
