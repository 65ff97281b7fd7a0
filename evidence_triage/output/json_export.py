"""JSON export functionality for triage reports.

This module provides JSON serialization for evidence listings, job snapshots
and pattern reports, handling Pydantic models, datetime objects, paths,
UUIDs, decimals and enums.
"""

import json
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
from uuid import UUID


class TriageJSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for triage data types.

    Handles serialization of:
    - datetime, date and time objects (ISO 8601 format)
    - UUID, Path and Decimal objects (string representation)
    - Enum values (value extraction)
    - Pydantic models (dict conversion)

    Anything else falls back to ``str()`` so that arbitrary spreadsheet cell
    values can always be stored as part of a record's raw data.
    """

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date, time)):
            return obj.isoformat()
        if isinstance(obj, (UUID, Path, Decimal)):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json")
        return str(obj)


class JSONExporter:
    """Exporter for triage results to JSON format."""

    def __init__(self, indent: int = 2, sort_keys: bool = False):
        """Initialize the JSON exporter.

        Args:
            indent: Number of spaces for indentation (default: 2)
            sort_keys: Whether to sort keys alphabetically (default: False)
        """
        self.indent = indent
        self.sort_keys = sort_keys

    def to_json(self, payload: Any) -> str:
        """Convert a model, list of models or plain structure to a JSON string."""
        return json.dumps(
            payload,
            cls=TriageJSONEncoder,
            indent=self.indent,
            sort_keys=self.sort_keys,
            ensure_ascii=False,
        )

    def to_file(
        self,
        payload: Any,
        file_path: Union[str, Path],
        encoding: str = "utf-8",
    ) -> None:
        """Save a payload to a JSON file, creating parent directories."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding=encoding) as f:
            f.write(self.to_json(payload))


def export_to_json(
    payload: Any,
    output_path: Optional[Union[str, Path]] = None,
    indent: int = 2,
) -> str:
    """Convenience function to export a report to JSON.

    Args:
        payload: Model or structure to export
        output_path: Optional path to save JSON file
        indent: Number of spaces for indentation (default: 2)

    Returns:
        JSON string representation of the payload
    """
    exporter = JSONExporter(indent=indent)
    json_str = exporter.to_json(payload)

    if output_path:
        exporter.to_file(payload, output_path)

    return json_str
