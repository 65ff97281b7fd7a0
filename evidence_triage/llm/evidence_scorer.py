"""
Evidence Triage - LLM Evidence Scorer

Asks the local model to rate one evidence record and validates its answer
against the expected scoring schema. Any failure is raised as
LLMResponseError so the hybrid scorer can fall back to pattern-only scoring.
"""

import json
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from evidence_triage.llm.ollama_client import OllamaClient
from evidence_triage.llm.prompts import SYSTEM_PROMPT, build_analysis_prompt
from evidence_triage.models import Entity, Sentiment
from evidence_triage.utils.exceptions import LLMResponseError

logger = logging.getLogger(__name__)


class LLMScoreResponse(BaseModel):
    """Validated model answer. Field names follow the prompt's JSON format."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    priority_score: int = Field(0, alias="priorityScore")
    flags: List[str] = Field(default_factory=list)
    summary: str = ""
    sentiment: Sentiment = Sentiment.NEUTRAL
    entities: List[Entity] = Field(default_factory=list)

    @field_validator("priority_score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> int:
        """Missing scores become 0; out-of-range scores are clamped."""
        if v is None or v == "":
            return 0
        score = int(round(float(v)))
        return max(0, min(100, score))

    @field_validator("flags", mode="before")
    @classmethod
    def normalize_flags(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(flag) for flag in v if flag]

    @field_validator("summary", mode="before")
    @classmethod
    def none_summary(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("sentiment", mode="before")
    @classmethod
    def normalize_sentiment(cls, v: Any) -> str:
        """Unknown sentiment labels degrade to neutral."""
        if isinstance(v, str) and v.lower().strip() in {s.value for s in Sentiment}:
            return v.lower().strip()
        return Sentiment.NEUTRAL.value

    @field_validator("entities", mode="before")
    @classmethod
    def drop_bad_entities(cls, v: Any) -> list:
        """Keep only well-formed {type, value} entries."""
        if not isinstance(v, list):
            return []
        return [
            {"type": str(e["type"]), "value": str(e["value"])}
            for e in v
            if isinstance(e, dict) and e.get("type") and e.get("value")
        ]


class LLMEvidenceScorer:
    """
    Scores single evidence records through Ollama.

    Example:
        scorer = LLMEvidenceScorer()
        result = scorer.score(record)
        print(result.priority_score, result.flags)
    """

    TEMPERATURE = 0.3
    MAX_TOKENS = 500

    def __init__(self, client: Optional[OllamaClient] = None, model: Optional[str] = None):
        """
        Initialize the scorer.

        Args:
            client: Ollama client (default: client on the default local URL)
            model: Model override; the client's model is used when None
        """
        self.client = client or OllamaClient(model=model)
        self.model = model or self.client.model

    def score(self, record: Any) -> LLMScoreResponse:
        """
        Rate one record.

        Raises:
            LLMResponseError: On transport failure, a response without a JSON
                object, invalid JSON, or a schema violation
        """
        response = self.client.generate(
            prompt=build_analysis_prompt(record),
            system_prompt=SYSTEM_PROMPT,
            model=self.model,
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
            json_mode=True,
        )

        if not response.success:
            raise LLMResponseError(response.error or "Generation failed", model=self.model)

        return self.parse_response(response.response)

    def parse_response(self, text: str) -> LLMScoreResponse:
        """Extract and validate the JSON object in a model answer."""
        if not isinstance(text, str):
            raise LLMResponseError(f"Response is {type(text).__name__}, not text", self.model)

        json_start = text.find("{")
        json_end = text.rfind("}") + 1
        if json_start < 0 or json_end <= json_start:
            raise LLMResponseError("No JSON object in response", self.model, text)

        try:
            payload = json.loads(text[json_start:json_end])
        except json.JSONDecodeError as e:
            raise LLMResponseError(f"Invalid JSON: {e}", self.model, text) from e

        if not isinstance(payload, dict):
            raise LLMResponseError("Response JSON is not an object", self.model, text)

        try:
            return LLMScoreResponse.model_validate(payload)
        except (ValidationError, ValueError, TypeError) as e:
            raise LLMResponseError(f"Schema mismatch: {e}", self.model, text) from e
