"""
Runtime settings for evidence triage.

Settings resolve in three layers: built-in defaults, then an optional YAML
or JSON settings file, then TRIAGE_* environment variables.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "TRIAGE_"
DEFAULT_CONFIG_FILE = "evidence_triage.yaml"


@dataclass
class TriageSettings:
    """Settings shared by the CLI, ingestion and analysis jobs."""
    db_path: str = "evidence_triage.db"
    ollama_url: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.1"
    ollama_timeout: int = 60
    llm_mode: str = "auto"
    batch_size: int = 10
    inter_batch_delay_ms: int = 100
    max_workers: int = 2
    audit_log_dir: str = "logs"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce(name: str, raw: Any, target: type) -> Any:
    if target is int:
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValueError(f"Setting '{name}' must be an integer, got {raw!r}")
    return str(raw)


def _read_settings_file(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Settings file not found: {config_path}")

    suffix = config_path.suffix.lower()
    with open(config_path, "r", encoding="utf-8") as f:
        if suffix in [".yaml", ".yml"]:
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported format: {suffix}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a mapping")
    return data


def load_settings(config_path: Optional[Path] = None) -> TriageSettings:
    """
    Resolve settings from defaults, a settings file and the environment.

    Args:
        config_path: Explicit settings file. When None, ./evidence_triage.yaml
            is used if present.

    Returns:
        Resolved TriageSettings

    Raises:
        FileNotFoundError: If an explicit settings file does not exist
        ValueError: If a value has the wrong type or a key is unknown
    """
    settings = TriageSettings()
    types = {f.name: f.type for f in fields(TriageSettings)}
    type_map = {"int": int, "str": str, int: int, str: str}

    if config_path is None:
        candidate = Path.cwd() / DEFAULT_CONFIG_FILE
        config_path = candidate if candidate.exists() else None

    if config_path is not None:
        data = _read_settings_file(Path(config_path))
        unknown = set(data) - set(types)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")
        for name, value in data.items():
            setattr(settings, name, _coerce(name, value, type_map[types[name]]))
        logger.debug(f"Loaded settings from {config_path}")

    for name, field_type in types.items():
        env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value is not None and env_value != "":
            setattr(settings, name, _coerce(name, env_value, type_map[field_type]))

    return settings
