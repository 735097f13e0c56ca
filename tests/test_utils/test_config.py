"""Tests for configuration loading and validation."""

import pytest

from echo_reverse.utils.config import (
    CONFIG_SCHEMA,
    ConfigManager,
    get_default_config,
    load_config,
)
from echo_reverse.utils.errors import ConfigurationError


class TestConfigManager:
    def test_dot_notation(self):
        config = ConfigManager({"audio": {"sample_rate": 44100}})
        assert config.get("audio.sample_rate") == 44100
        assert config.get("audio.missing", default=7) == 7
        assert config.get("nope.deeper") is None

    def test_required_key_missing(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigManager({}).get("audio.sample_rate", required=True)
        assert exc_info.value.config_key == "audio.sample_rate"

    def test_set_creates_sections(self):
        config = ConfigManager()
        config.set("visualization.fft_size", 1024)
        assert config.get("visualization") == {"fft_size": 1024}

    def test_set_replaces_non_dict_section(self):
        config = ConfigManager({"export": "oops"})
        config.set("export.filename", "take.wav")
        assert config.get("export.filename") == "take.wav"

    def test_merge_is_deep(self):
        config = ConfigManager(get_default_config())
        config.merge({"audio": {"sample_rate": 16000}})

        assert config.get("audio.sample_rate") == 16000
        assert config.get("audio.channels") == 1

    def test_to_dict_is_a_copy(self):
        config = ConfigManager({"audio": {"channels": 1}})
        snapshot = config.to_dict()
        snapshot["audio"]["channels"] = 2
        assert config.get("audio.channels") == 1

    def test_env_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ECHO_EXPORT_DIR", "/tmp/exports")
        path = tmp_path / "config.yaml"
        path.write_text(
            "export:\n"
            "  directory: ${ECHO_EXPORT_DIR}/takes\n"
            "  filename: ${UNSET_ECHO_VARIABLE}.wav\n"
        )

        config = ConfigManager.from_file(path)

        assert config.get("export.directory") == "/tmp/exports/takes"
        assert config.get("export.filename") == "${UNSET_ECHO_VARIABLE}.wav"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigManager.from_file(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("audio: [unclosed\n")
        with pytest.raises(ConfigurationError, match="parse"):
            ConfigManager.from_file(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            ConfigManager.from_file(path)


class TestValidation:
    def test_defaults_are_valid(self):
        ConfigManager(get_default_config()).validate(CONFIG_SCHEMA)

    def test_wrong_type(self):
        config = ConfigManager(get_default_config())
        config.set("audio.sample_rate", "fast")
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate(CONFIG_SCHEMA)
        assert exc_info.value.config_key == "audio.sample_rate"

    def test_bool_is_not_a_number(self):
        config = ConfigManager(get_default_config())
        config.set("visualization.fft_size", True)
        with pytest.raises(ConfigurationError):
            config.validate(CONFIG_SCHEMA)

    def test_float_frame_rate_allowed(self):
        config = ConfigManager(get_default_config())
        config.set("visualization.frame_rate", 30.0)
        config.validate(CONFIG_SCHEMA)

    def test_required_missing(self):
        config = ConfigManager(get_default_config())
        config.set("export.filename", None)
        with pytest.raises(ConfigurationError, match="export.filename"):
            config.validate(CONFIG_SCHEMA)


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config() == get_default_config()

    def test_discovers_config_dir(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "config.yaml").write_text("audio:\n  sample_rate: 22050\n")

        config = load_config()

        assert config["audio"]["sample_rate"] == 22050
        assert config["visualization"]["fft_size"] == 2048

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("export:\n  filename: take.wav\n")
        assert load_config(str(path))["export"]["filename"] == "take.wav"

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_invalid_override_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("audio:\n  channels: two\n")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_unwritable_chunk_format_rejected(self, tmp_path):
        path = tmp_path / "webm.yaml"
        path.write_text("audio:\n  chunk_format: WEBM\n")
        with pytest.raises(ConfigurationError) as exc_info:
            load_config(str(path))
        assert exc_info.value.config_key == "audio.chunk_format"

    def test_chunk_format_normalized(self, tmp_path):
        path = tmp_path / "ogg.yaml"
        path.write_text("audio:\n  chunk_format: ogg\n")
        assert load_config(str(path))["audio"]["chunk_format"] == "OGG"
