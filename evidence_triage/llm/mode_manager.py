"""
Evidence Triage - LLM Mode Manager

Resolves whether records are scored by the LLM or by keyword rules alone.
"""

import logging
import os
import threading
from enum import Enum
from typing import Any, Dict, Optional

from evidence_triage.llm.ollama_client import OllamaClient

logger = logging.getLogger(__name__)


class LLMMode(Enum):
    """
    How the scorer uses the LLM.

    AUTO: score with the LLM when the Ollama server answers
    FORCE: always attempt the LLM; each failed record falls back on its own
    OFF: keyword rules only
    """

    AUTO = "auto"
    FORCE = "force"
    OFF = "off"

    @classmethod
    def from_string(cls, mode_str: str) -> "LLMMode":
        """Case-insensitive parse; raises ValueError for unknown names."""
        normalized = mode_str.strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        allowed = ", ".join(m.value for m in cls)
        raise ValueError(f"Invalid LLM mode: '{normalized}'. Must be one of: {allowed}")


class LLMModeManager:
    """Shared by the scoring workers of a job; the AUTO availability check runs once."""

    ENV_VAR_MODE = "TRIAGE_LLM_MODE"

    def __init__(
        self,
        mode: Optional[LLMMode] = None,
        client: Optional[OllamaClient] = None,
    ):
        """
        Args:
            mode: Explicit mode. Falls back to TRIAGE_LLM_MODE, then AUTO.
            client: Ollama client checked in AUTO mode and used for scoring
        """
        self.mode = mode if mode is not None else self._mode_from_env()
        self.client = client or OllamaClient()
        self._cached_availability: Optional[bool] = None
        self._check_lock = threading.Lock()

    @classmethod
    def _mode_from_env(cls) -> LLMMode:
        raw = os.environ.get(cls.ENV_VAR_MODE, LLMMode.AUTO.value)
        try:
            return LLMMode.from_string(raw)
        except ValueError as e:
            logger.warning(f"{e}. Falling back to auto.")
            return LLMMode.AUTO

    def is_enabled(self) -> bool:
        """Whether LLM scoring is in effect for the current mode."""
        if self.mode is not LLMMode.AUTO:
            return self.mode is LLMMode.FORCE

        with self._check_lock:
            if self._cached_availability is None:
                self._cached_availability = self.client.is_available()
                state = "reachable" if self._cached_availability else "unreachable"
                logger.info(f"Ollama {state} at {self.client.base_url}; LLM scoring "
                            f"{'enabled' if self._cached_availability else 'disabled'}")
            return self._cached_availability

    def reset_cache(self) -> None:
        """Check availability again on the next is_enabled() call."""
        with self._check_lock:
            self._cached_availability = None

    def get_config(self) -> Dict[str, Any]:
        enabled = self.is_enabled()
        checked = enabled if self.mode is LLMMode.AUTO else None
        return {
            "mode": self.mode,
            "llm_enabled": enabled,
            "fallback_mode": checked is False,
            "ollama_available": checked,
            "model": self.client.model,
            "base_url": self.client.base_url,
        }

    def get_status_report(self) -> str:
        """Status block shown by ``evidence-triage llm-status``."""
        config = self.get_config()
        report = (
            f"LLM Mode: {self.mode.value.upper()}\n"
            f"LLM Enabled: {'Yes' if config['llm_enabled'] else 'No'}\n"
            f"Model: {config['model']} @ {config['base_url']}"
        )
        if self.mode is LLMMode.AUTO:
            report += (
                "\nStatus: Ollama available"
                if config["ollama_available"]
                else "\nStatus: Ollama unavailable (pattern-only fallback)"
            )
        return report
