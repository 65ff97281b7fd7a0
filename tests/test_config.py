"""Tests for settings resolution."""

import json

import pytest

from evidence_triage.config import TriageSettings, load_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, temp_dir):
    """Run each test from an empty directory with no TRIAGE_* overrides."""
    for name in TriageSettings().to_dict():
        monkeypatch.delenv(f"TRIAGE_{name.upper()}", raising=False)
    monkeypatch.chdir(temp_dir)


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self):
        settings = load_settings()
        assert settings.db_path == "evidence_triage.db"
        assert settings.ollama_model == "llama3.1"
        assert settings.batch_size == 10
        assert settings.llm_mode == "auto"

    def test_yaml_file(self, temp_dir):
        path = temp_dir / "settings.yaml"
        path.write_text("batch_size: 25\nollama_model: mistral\n")

        settings = load_settings(path)

        assert settings.batch_size == 25
        assert settings.ollama_model == "mistral"
        assert settings.inter_batch_delay_ms == 100

    def test_json_file(self, temp_dir):
        path = temp_dir / "settings.json"
        path.write_text(json.dumps({"max_workers": 4}))
        assert load_settings(path).max_workers == 4

    def test_default_file_in_working_directory(self, temp_dir):
        (temp_dir / "evidence_triage.yaml").write_text("db_path: cases.db\n")
        assert load_settings().db_path == "cases.db"

    def test_environment_overrides_file(self, temp_dir, monkeypatch):
        path = temp_dir / "settings.yaml"
        path.write_text("batch_size: 25\n")
        monkeypatch.setenv("TRIAGE_BATCH_SIZE", "5")

        assert load_settings(path).batch_size == 5

    def test_missing_explicit_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_settings(temp_dir / "nope.yaml")

    def test_unknown_key(self, temp_dir):
        path = temp_dir / "settings.yaml"
        path.write_text("batch_sise: 25\n")
        with pytest.raises(ValueError, match="batch_sise"):
            load_settings(path)

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("TRIAGE_MAX_WORKERS", "many")
        with pytest.raises(ValueError):
            load_settings()

    def test_empty_file(self, temp_dir):
        path = temp_dir / "settings.yml"
        path.write_text("")
        assert load_settings(path) == TriageSettings()
