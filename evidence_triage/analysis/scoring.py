"""
Hybrid evidence scoring.

Combines the keyword pre-scan with an optional LLM judgement:

1. LLM requested and warranted (a keyword matched, or the content is longer
   than LLM_CONTENT_THRESHOLD): the LLM's answer is used, with keyword
   categories merged into its flags.
2. LLM requested but unavailable or failing, and a keyword matched:
   PATTERN_FALLBACK_SCORE.
3. LLM not requested, a keyword matched: PATTERN_ONLY_SCORE.
4. Otherwise the record scores 0.

The scorer never raises for LLM problems; it logs them and falls back.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from evidence_triage.analysis.keyword_scan import quick_pattern_scan
from evidence_triage.llm.evidence_scorer import LLMEvidenceScorer
from evidence_triage.llm.mode_manager import LLMMode, LLMModeManager
from evidence_triage.models import EvidenceAnalysis, Sentiment
from evidence_triage.utils.exceptions import LLMResponseError

logger = logging.getLogger(__name__)

LLM_CONTENT_THRESHOLD = 20
PATTERN_FALLBACK_SCORE = 50
PATTERN_ONLY_SCORE = 40
LLM_UNAVAILABLE_SUMMARY = "Pattern-based detection (LLM unavailable)"


def _utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _dedupe(items: list[str]) -> list[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class HybridScorer:
    """
    Rule/LLM hybrid scorer for single evidence records.

    Safe to call from several threads at once: it holds no per-call state.
    """

    def __init__(
        self,
        llm_scorer: Optional[LLMEvidenceScorer] = None,
        mode_manager: Optional[LLMModeManager] = None,
    ):
        """
        Initialize the scorer.

        Args:
            llm_scorer: LLM backend (default: LLMEvidenceScorer on the mode
                manager's client)
            mode_manager: LLM mode policy (default: from TRIAGE_LLM_MODE)
        """
        self.mode_manager = mode_manager or LLMModeManager()
        self.llm_scorer = llm_scorer or LLMEvidenceScorer(client=self.mode_manager.client)

    def score(self, record: Any, use_llm: bool = True) -> EvidenceAnalysis:
        """
        Score one record.

        Args:
            record: EvidenceRecord, NormalizedEvidence or anything exposing
                the prompt fields (content, sender, ...)
            use_llm: Whether the caller wants LLM scoring for this run

        Returns:
            EvidenceAnalysis with the tier derived from the final score
        """
        content = getattr(record, "content", None)
        categories = quick_pattern_scan(content)

        llm_requested = use_llm and self.mode_manager.mode != LLMMode.OFF
        warranted = bool(categories) or len(content or "") > LLM_CONTENT_THRESHOLD

        if llm_requested and warranted:
            if self.mode_manager.is_enabled():
                try:
                    answer = self.llm_scorer.score(record)
                    return EvidenceAnalysis(
                        priority_score=answer.priority_score,
                        flags=_dedupe(categories + answer.flags),
                        summary=answer.summary,
                        sentiment=answer.sentiment,
                        entities=answer.entities,
                        analyzed_at=_utcnow_naive(),
                    )
                except LLMResponseError as e:
                    logger.warning(
                        f"LLM scoring failed for record {getattr(record, 'id', '?')}, "
                        f"using fallback: {e}"
                    )

            if categories:
                return EvidenceAnalysis(
                    priority_score=PATTERN_FALLBACK_SCORE,
                    flags=categories,
                    summary=LLM_UNAVAILABLE_SUMMARY,
                    analyzed_at=_utcnow_naive(),
                )

        elif categories:
            return EvidenceAnalysis(
                priority_score=PATTERN_ONLY_SCORE,
                flags=categories,
                summary=f"Detected: {', '.join(categories)}",
                analyzed_at=_utcnow_naive(),
            )

        return EvidenceAnalysis(
            priority_score=0,
            flags=categories,
            sentiment=Sentiment.NEUTRAL,
            analyzed_at=_utcnow_naive(),
        )
