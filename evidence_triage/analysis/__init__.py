"""Evidence scoring and behavioral pattern analytics."""

from evidence_triage.analysis.keyword_scan import DETECTION_PATTERNS, quick_pattern_scan
from evidence_triage.analysis.patterns import PatternEngine
from evidence_triage.analysis.scoring import HybridScorer

__all__ = [
    "DETECTION_PATTERNS",
    "quick_pattern_scan",
    "PatternEngine",
    "HybridScorer",
]
