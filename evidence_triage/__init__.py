"""Evidence Triage - forensic export normalization, priority scoring and
behavioral pattern analytics for mobile device extractions."""

__version__ = "0.3.0"
