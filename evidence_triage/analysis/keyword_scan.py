"""
Keyword pre-scan for evidence content.

A fast, LLM-free signal: lower-cased substring membership against fixed
keyword lists. A match says the record deserves a closer look; it is not a
score by itself.
"""

from typing import Optional

# Category -> keywords. Category order is the order matches are reported in.
DETECTION_PATTERNS: dict[str, tuple[str, ...]] = {
    "drug_reference": (
        "weed", "coke", "meth", "heroin", "pills", "dealer", "stash",
        "gram", "ounce", "score", "plug", "dope", "high", "smoke",
    ),
    "violence_threat": (
        "kill", "hurt", "gun", "knife", "weapon", "attack", "threat",
        "beat", "shoot", "stab", "die", "dead", "murder",
    ),
    "financial_crime": (
        "launder", "cash", "wire", "offshore", "fraud", "scam",
        "bitcoin", "crypto", "account", "transfer", "payment",
    ),
    "conspiracy": (
        "plan", "secret", "meeting", "nobody knows", "dont tell",
        "keep quiet", "between us", "delete this",
    ),
    "evasion": (
        "delete", "erase", "destroy", "evidence", "burner", "vpn",
        "encrypted", "disappear", "hide",
    ),
}


def quick_pattern_scan(content: Optional[str]) -> list[str]:
    """
    Return the categories whose keywords occur in the content.

    Matching is plain substring search, so "skill" matches "kill". Empty or
    missing content matches nothing.
    """
    if not content:
        return []

    lowered = content.lower()
    return [
        category
        for category, keywords in DETECTION_PATTERNS.items()
        if any(keyword in lowered for keyword in keywords)
    ]
