"""
Evidence Triage - LLM Integration Module

Provides LLM-assisted evidence scoring through a local Ollama instance:
- OllamaClient: Low-level Ollama API client
- LLMEvidenceScorer: Per-record scoring with schema-validated answers
- LLMModeManager: Mode management (AUTO/FORCE/OFF) with graceful fallback
"""

from evidence_triage.llm.evidence_scorer import LLMEvidenceScorer, LLMScoreResponse
from evidence_triage.llm.mode_manager import LLMMode, LLMModeManager
from evidence_triage.llm.ollama_client import OllamaClient, OllamaResponse
from evidence_triage.llm.prompts import SYSTEM_PROMPT, build_analysis_prompt

__all__ = [
    "OllamaClient",
    "OllamaResponse",
    "LLMEvidenceScorer",
    "LLMScoreResponse",
    "LLMModeManager",
    "LLMMode",
    "SYSTEM_PROMPT",
    "build_analysis_prompt",
]
