import json
import logging
from pathlib import Path

from dms.config import Settings, storage_config_from_settings
from dms.logs import JsonFormatter


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        """Test default settings."""
        monkeypatch.delenv("DMS_STORAGE_ROOT", raising=False)

        settings = Settings(_env_file=None)

        assert settings.hide_forbidden is True
        assert settings.deny_unlinked is False
        assert settings.folder_size == 1000
        assert settings.storage_root == Path("storage/dms")

    def test_environment_overrides(self, monkeypatch):
        """Test settings read from the environment."""
        monkeypatch.setenv("DMS_HIDE_FORBIDDEN", "false")
        monkeypatch.setenv("DMS_FOLDER_SIZE", "10")

        settings = Settings(_env_file=None)

        assert settings.hide_forbidden is False
        assert settings.folder_size == 10

    def test_storage_config_uses_folder_size(self, tmp_path):
        """Test the storage config shards by folder size."""
        config = storage_config_from_settings(Settings(_env_file=None, storage_root=tmp_path, folder_size=10))

        assert config.root == tmp_path
        assert config.shard_fn(42) == "4"


class TestJsonFormatter:
    """Tests for structured log output."""

    def test_format(self):
        """Test the JSON log record fields."""
        record = logging.LogRecord("dms.storage", logging.INFO, __file__, 1, "Stored %s", ("a.pdf",), None)
        record.document_id = 42

        data = json.loads(JsonFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["name"] == "dms.storage"
        assert data["msg"] == "Stored a.pdf"
        assert data["document_id"] == 42

    def test_without_document_id(self):
        """Test document_id is left out when not set."""
        record = logging.LogRecord("dms", logging.WARNING, __file__, 1, "plain", (), None)

        assert "document_id" not in json.loads(JsonFormatter().format(record))
