"""Output serialization for triage reports."""

from evidence_triage.output.json_export import (
    JSONExporter,
    TriageJSONEncoder,
    export_to_json,
)

__all__ = [
    "JSONExporter",
    "TriageJSONEncoder",
    "export_to_json",
]
