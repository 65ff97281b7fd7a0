"""
Prompt templates for LLM evidence scoring.

The model sees one record at a time and must answer with a single JSON
object. The scoring guide uses the same tier boundaries as the stored
priority tiers, so a well-behaved model lands records in the tier its
reasoning implies.
"""

from typing import Any

SYSTEM_PROMPT = (
    "You are a forensic analyst AI. Respond only with valid JSON, "
    "no markdown or extra text."
)

ANALYSIS_PROMPT_TEMPLATE = """You are a digital forensic analyst assistant. Analyze the following communication record and provide:
1. Priority score (0-100) based on investigative relevance
2. Flags for suspicious content categories
3. Brief summary (1-2 sentences)
4. Sentiment classification

Priority Scoring Guide:
- 80-100 (Critical): Direct evidence of criminal activity
- 60-79 (High): Suspicious content requiring review
- 40-59 (Medium): Potentially relevant context
- 0-39 (Low): Likely irrelevant, casual conversation

Detection Categories:
- drug_reference: Drug-related content
- violence_threat: Violence or threatening language
- financial_crime: Money laundering, fraud indicators
- conspiracy: Planning, secrecy indicators
- evasion: Evidence destruction, anti-forensic mentions
- key_entity: Important names, locations, organizations

Communication Record:
Timestamp: {timestamp}
Type: {type}
Sender: {sender}
Receiver: {receiver}
Content: {content}
Source App: {source}

Respond ONLY with valid JSON in this exact format:
{{
  "priorityScore": <number 0-100>,
  "flags": [<array of category strings>],
  "summary": "<brief summary>",
  "sentiment": "<positive|neutral|negative>",
  "entities": [{{"type": "<person|location|organization|phone|email>", "value": "<entity value>"}}]
}}"""


def _field(record: Any, name: str) -> Any:
    if isinstance(record, dict):
        return record.get(name)
    return getattr(record, name, None)


def build_analysis_prompt(record: Any) -> str:
    """
    Render the scoring prompt for one record.

    Only timestamp, type, sender, receiver, content and source are sent to
    the model. Accepts an EvidenceRecord, NormalizedEvidence or plain dict.
    """
    timestamp = _field(record, "timestamp")
    record_type = _field(record, "type")

    return ANALYSIS_PROMPT_TEMPLATE.format(
        timestamp=timestamp.isoformat() if hasattr(timestamp, "isoformat") else (timestamp or "Unknown"),
        type=getattr(record_type, "value", record_type) or "other",
        sender=_field(record, "sender") or "Unknown",
        receiver=_field(record, "receiver") or "Unknown",
        content=_field(record, "content") or "No content",
        source=_field(record, "source") or "Unknown",
    )
