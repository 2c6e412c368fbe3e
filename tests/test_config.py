"""
Tests for Configuration Loading
===============================
Verifies pydantic settings defaults, environment overrides and the JSON
config bridge.
"""

import json
import os

import pytest
from pydantic import ValidationError

from pipeline_mapper.infrastructure.config import (
    AppSettings,
    BackendSettings,
    LogLevel,
    get_settings_from_working_directory,
    load_app_settings_from_json,
)


class TestSettingsDefaults:
    """Test built-in defaults"""

    def test_backend_defaults(self):
        settings = BackendSettings()
        assert settings.base_url == "http://localhost:5100/api"
        assert settings.timeout_seconds == 30.0

    def test_editor_defaults(self):
        settings = AppSettings()
        assert settings.editor.default_version == "1.0.0"
        assert settings.editor.node_id_prefix == "node"
        assert settings.logging.level == LogLevel.INFO


class TestBackendValidation:
    """Test backend field validators"""

    def test_trailing_slash_is_stripped(self):
        assert BackendSettings(base_url="https://pipelines.example.org/api/").base_url == \
            "https://pipelines.example.org/api"

    def test_non_http_url_rejected(self):
        with pytest.raises(ValidationError):
            BackendSettings(base_url="ftp://example.org")

    def test_url_without_scheme_names_the_value(self):
        with pytest.raises(ValidationError, match="Invalid backend URL: 'localhost:5100/api'"):
            BackendSettings(base_url="localhost:5100/api")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            BackendSettings(timeout_seconds=0)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("BACKEND_BASE_URL", "http://backend:8080/api")
        monkeypatch.setenv("BACKEND_TIMEOUT_SECONDS", "12.5")
        settings = BackendSettings()
        assert settings.base_url == "http://backend:8080/api"
        assert settings.timeout_seconds == 12.5


class TestJsonConfig:
    """Test config.json loading"""

    def _write(self, path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    def test_sections_are_mapped(self, tmp_path):
        path = self._write(tmp_path / "config.json", {
            "logging": {"level": "debug", "file_enabled": True, "log_dir": "var/log"},
            "backend": {"base_url": "http://exec.local/api/", "timeout_seconds": 5},
            "editor": {"default_version": "3.0.0", "node_id_prefix": "step"},
            "unrelated": {"ignored": True}
        })
        settings = load_app_settings_from_json(path)

        assert settings.logging.level == LogLevel.DEBUG
        assert settings.logging.file_enabled is True
        assert settings.logging.log_dir == "var/log"
        assert settings.backend.base_url == "http://exec.local/api"
        assert settings.backend.timeout_seconds == 5
        assert settings.editor.default_version == "3.0.0"
        assert settings.editor.node_id_prefix == "step"

    def test_env_placeholders(self, tmp_path, monkeypatch):
        monkeypatch.setenv("EXEC_HOST", "exec.internal")
        path = self._write(tmp_path / "config.json", {
            "backend": {"base_url": "http://${EXEC_HOST}:${EXEC_PORT:-5100}/api"}
        })
        settings = load_app_settings_from_json(path)
        assert settings.backend.base_url == "http://exec.internal:5100/api"

    def test_bad_backend_url_fails_loudly(self, tmp_path):
        path = self._write(tmp_path / "config.json", {"backend": {"base_url": "not-a-url"}})
        with pytest.raises(ValidationError):
            load_app_settings_from_json(path)

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        settings = load_app_settings_from_json(str(tmp_path / "missing.json"))
        assert settings.backend.base_url == "http://localhost:5100/api"

    def test_working_directory_lookup_reads_dotenv(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PIPELINE_MAPPER_TEST_VERSION", raising=False)
        (tmp_path / ".env").write_text("PIPELINE_MAPPER_TEST_VERSION=9.9.9\n", encoding="utf-8")
        self._write(tmp_path / "config" / "config.json", {
            "editor": {"default_version": "${PIPELINE_MAPPER_TEST_VERSION}"}
        })

        try:
            settings = get_settings_from_working_directory()
        finally:
            os.environ.pop("PIPELINE_MAPPER_TEST_VERSION", None)

        assert settings.editor.default_version == "9.9.9"
