"""
Tests for ConfigManager and the dataclasses built from its sections.
"""

from pathlib import Path

import pytest
import yaml

from meetingmind.meeting.capture import AudioSettings
from meetingmind.meeting.session import SessionConfig
from meetingmind.providers import ProviderPreferences
from meetingmind.utils import ConfigManager

SCHEMA_PATH = Path(__file__).parent.parent.parent / "src" / "meetingmind" / "config_schema.yaml"


@pytest.fixture
def fresh_config():
    """Run each test against its own ConfigManager singleton."""
    original = ConfigManager._instance
    ConfigManager.reset()
    yield ConfigManager
    ConfigManager._instance = original


class TestConfigManager:
    """Tests for ConfigManager functionality."""

    def test_yaml_safe_load_used(self):
        """Verify yaml.safe_load is used (not yaml.load)."""
        utils_path = Path(__file__).parent.parent.parent / "src" / "meetingmind" / "utils.py"
        content = utils_path.read_text()

        assert "yaml.safe_load" in content
        assert "yaml.load(" not in content or "Loader=" in content

    def test_config_validation_type_checking(self):
        manager = ConfigManager()

        assert manager._validate_config_value("test", {"type": "str", "value": ""}, "test.path")
        assert manager._validate_config_value(42, {"type": "int", "value": 0}, "test.path")
        assert manager._validate_config_value(True, {"type": "bool", "value": False}, "test.path")
        assert manager._validate_config_value(12, {"type": "float", "value": 1.5}, "test.path")

        # None is allowed (optional values)
        assert manager._validate_config_value(None, {"type": "str", "value": ""}, "test.path")

        assert not manager._validate_config_value("42", {"type": "int", "value": 0}, "test.path")
        assert not manager._validate_config_value(True, {"type": "int", "value": 0}, "test.path")

    def test_config_validation_options_checking(self):
        manager = ConfigManager()
        schema_item = {"type": "str", "value": "claude", "options": ["claude", "local_llm"]}

        assert manager._validate_config_value("claude", schema_item, "providers.ai")
        assert manager._validate_config_value("local_llm", schema_item, "providers.ai")
        assert not manager._validate_config_value("gpt", schema_item, "providers.ai")

    def test_deep_update_preserves_structure(self):
        base = {"level1": {"level2": {"value1": "original", "value2": "original"}}}
        ConfigManager.deep_update(base, {"level1": {"level2": {"value1": "changed"}}})

        assert base["level1"]["level2"]["value1"] == "changed"
        assert base["level1"]["level2"]["value2"] == "original"

    def test_user_config_is_validated_and_merged(self, fresh_config, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text(yaml.dump({
            "providers": {"ai": "local_llm", "transcription": "not-a-provider"},
            "session_options": {"question_word_threshold": 30, "summary_timeout_seconds": "soon"},
        }))

        fresh_config.initialize(config_path=config_path)

        assert fresh_config.get_config_value("providers", "ai") == "local_llm"
        # Invalid values fall back to the schema defaults
        assert fresh_config.get_config_value("providers", "transcription") == "local_streaming"
        assert fresh_config.get_config_value("session_options", "summary_timeout_seconds") == 30
        assert fresh_config.get_config_value("session_options", "question_word_threshold") == 30
        # Untouched values keep their defaults
        assert fresh_config.get_config_value("session_options", "chunk_interval_seconds") == 12

    def test_broken_yaml_uses_defaults(self, fresh_config, temp_dir):
        config_path = temp_dir / "config.yaml"
        config_path.write_text("providers: [unclosed")

        fresh_config.initialize(config_path=config_path)
        assert fresh_config.get_config_value("providers", "ai") == "claude"

    def test_save_config_round_trip(self, fresh_config, temp_dir):
        config_path = temp_dir / "nested" / "config.yaml"
        fresh_config.initialize(config_path=config_path)
        fresh_config.set_config_value("local_llm", "providers", "ai")
        fresh_config.save_config()

        assert yaml.safe_load(config_path.read_text())["providers"]["ai"] == "local_llm"
        assert not config_path.with_suffix(".tmp").exists()

    def test_initialize_twice_is_an_error(self, fresh_config, temp_dir):
        fresh_config.initialize(config_path=temp_dir / "missing.yaml")
        with pytest.raises(RuntimeError):
            fresh_config.initialize()


class TestConfigManagerSingleton:
    """Tests for ConfigManager singleton behavior."""

    def test_get_config_value_nested_keys(self, fresh_config):
        manager = ConfigManager()
        manager.config = {"level1": {"level2": {"value": "test"}}}
        ConfigManager._instance = manager

        assert ConfigManager.get_config_value("level1", "level2", "value") == "test"
        assert ConfigManager.get_config_value("level1", "nonexistent") is None
        assert ConfigManager.get_config_section("level1", "nonexistent") == {}

    def test_set_config_value_creates_nested(self, fresh_config):
        manager = ConfigManager()
        manager.config = {}
        ConfigManager._instance = manager

        ConfigManager.set_config_value("new_value", "level1", "level2", "key")
        assert manager.config["level1"]["level2"]["key"] == "new_value"


class TestConfigSchema:
    """Tests for config schema compliance."""

    def test_schema_has_required_sections(self):
        with open(SCHEMA_PATH) as f:
            schema = yaml.safe_load(f)

        for section in ["providers", "session_options", "audio", "storage", "misc"]:
            assert section in schema, f"Missing required section: {section}"

    def test_every_leaf_has_value_and_type(self):
        with open(SCHEMA_PATH) as f:
            schema = yaml.safe_load(f)

        for section, settings in schema.items():
            for key, item in settings.items():
                assert "value" in item and "type" in item, f"{section}.{key} is incomplete"

    def test_defaults(self):
        manager = ConfigManager()
        manager.schema = manager.load_config_schema()
        config = manager.load_default_config()

        assert config["session_options"]["question_word_threshold"] == 50
        assert config["session_options"]["chunk_interval_seconds"] == 12
        assert config["session_options"]["drain_grace_seconds"] == 5
        assert config["session_options"]["summary_timeout_seconds"] == 30
        assert config["providers"]["default_locale"] == "es-MX"
        assert config["audio"]["sample_rate"] == 16000


class TestSectionDataclasses:
    """Settings objects handed to the session, factory and capture."""

    def test_session_config(self, mock_config):
        config = SessionConfig.from_config(mock_config["session_options"])
        assert config.question_word_threshold == 30
        assert config.chunk_interval_seconds == 6.0
        assert config.context_hint_chars == 200
        assert config.timer_interval_seconds == 1.0

    def test_session_config_defaults(self):
        config = SessionConfig.from_config({})
        assert config.question_word_threshold == 50
        assert config.summary_timeout_seconds == 30.0

    def test_provider_preferences(self, mock_config):
        prefs = ProviderPreferences.from_config(mock_config["providers"])
        assert prefs.transcription == "whisper_api"
        assert prefs.ai == "local_llm"
        assert prefs.llm_base_url == "http://localhost:11434"
        assert prefs.llm_model is None

    def test_audio_settings(self, mock_config):
        settings = AudioSettings.from_config(mock_config["audio"])
        assert (settings.sample_rate, settings.channels, settings.blocksize) == (48000, 2, 512)
