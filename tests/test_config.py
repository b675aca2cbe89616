"""Tests for HelperConfig and JSON persistence helpers."""

import pytest

from shared.exceptions.errors import StorageUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperPersistence import atomic_json_save, load_json
from shared.logging.logging_setup import setup_logging


class TestHelperConfig:
    def test_overrides_take_precedence_over_environment(self, logger, monkeypatch):
        monkeypatch.setenv("KB_WINDOW_TOKENS", "800")
        config = HelperConfig(logger=logger, overrides={"kb_window_tokens": 300})

        assert config.get_number_val("KB_WINDOW_TOKENS") == 300
        assert HelperConfig(logger=logger).get_number_val("KB_WINDOW_TOKENS") == 800

    def test_empty_values_count_as_unset(self, logger, monkeypatch):
        monkeypatch.setenv("EMBED_MODEL", "")
        config = HelperConfig(logger=logger, overrides={"LLM_ENGINE": ""})

        assert config.get_string_val("EMBED_MODEL", default="nomic") == "nomic"
        assert config.get_optional_string_val("LLM_ENGINE") is None

    def test_missing_required_value_raises(self, logger, monkeypatch):
        monkeypatch.delenv("KB_ENGINE_MISSING_KEY", raising=False)
        config = HelperConfig(logger=logger)

        with pytest.raises(ValueError):
            config.get_string_val("KB_ENGINE_MISSING_KEY")
        with pytest.raises(ValueError):
            config.get_number_val("KB_ENGINE_MISSING_KEY")

    def test_number_parsing(self, logger):
        config = HelperConfig(logger=logger, overrides={"A": "3", "B": "0.25", "C": "many"})

        assert config.get_number_val("A") == 3
        assert config.get_number_val("B") == 0.25
        with pytest.raises(ValueError):
            config.get_number_val("C")

    def test_bool_and_list_values(self, logger):
        config = HelperConfig(logger=logger, overrides={"FLAG": "Yes", "ORIGINS": "[a, b ,c]", "BROKEN": "a,b"})

        assert config.get_bool_val("FLAG") is True
        assert config.get_list_val("ORIGINS") == ["a", "b", "c"]
        with pytest.raises(ValueError):
            config.get_list_val("BROKEN")


class TestPersistence:
    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "state.json"

        atomic_json_save(str(path), {"documents": [{"id": "d1"}]})

        assert load_json(str(path), default=None) == {"documents": [{"id": "d1"}]}
        assert [p.name for p in path.parent.iterdir()] == ["state.json"]

    def test_missing_file_loads_default(self, tmp_path):
        assert load_json(str(tmp_path / "absent.json"), default=[]) == []

    def test_corrupt_file_is_storage_error(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StorageUnavailable):
            load_json(str(path), default=None)


class TestLogging:
    def test_file_handler_writes_plain_app_log(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ROOT_DIR", str(tmp_path))
        try:
            logger = setup_logging("info")
            logger.info("Engine started", color="green")

            content = (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")
            assert "Engine started" in content
            assert "\033[" not in content
        finally:
            # back to console-only handlers for the rest of the session
            monkeypatch.delenv("ROOT_DIR")
            setup_logging("debug")
