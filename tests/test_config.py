"""
Unit tests for configuration loading and run settings.
"""

import dataclasses

import pytest

from audiosweet.config import (
    Action,
    ApplyMode,
    ChainTokenSource,
    ChannelPolicy,
    Config,
    ConfigError,
    CopyPosition,
    EffectMode,
    RunSettings,
)


@pytest.fixture
def toml_file(tmp_path):
    """Write a TOML config and return its path."""
    def _write(text):
        path = tmp_path / "audiosweet.toml"
        path.write_text(text)
        return path
    return _write


class TestConfigDefaults:
    """Test default configuration."""

    def test_defaults_build_settings(self):
        """Defaults produce the documented run settings."""
        settings = RunSettings.from_config(Config.defaults())

        assert settings.mode is EffectMode.FOCUSED
        assert settings.action is Action.APPLY
        assert settings.apply_mode is ApplyMode.AUTO
        assert settings.multi_policy is ChannelPolicy.SOURCE_PLAYBACK
        assert settings.max_fx_tokens == 3
        assert settings.chain_token_source is ChainTokenSource.TRACK
        assert settings.split_threshold == pytest.approx(0.002)
        assert settings.engine == "audiosweet.render.offline:OfflineRenderEngine"

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        """A missing config file yields the defaults."""
        config = Config.load(str(tmp_path / "missing.toml"))

        assert config.get("naming", "max_fx_tokens") == 3

    def test_missing_section_filled(self):
        """Missing sections are filled from DEFAULT_CONFIG."""
        config = Config({"run": {"mode": "chain"}})

        assert config.get("run", "mode") == "chain"
        assert config.get("run", "action") == "apply"
        assert config["copy"]["position"] == "tail"

    def test_missing_param_filled(self):
        """Missing parameters (including False defaults) are filled."""
        config = Config({"run": {"mode": "focused"}})

        assert config.get("run", "external_undo") is False


class TestConfigValidation:
    """Test bounds and allowed values."""

    def test_token_cap_out_of_bounds(self):
        """max_fx_tokens above 32 is rejected."""
        with pytest.raises(ConfigError):
            Config({"naming": {"max_fx_tokens": 99}})

    def test_split_threshold_not_numeric(self):
        """Non-numeric split threshold is rejected."""
        with pytest.raises(ConfigError):
            Config({"window": {"split_threshold_ms": "fast"}})

    def test_unknown_mode(self):
        """Unknown enumerated value is rejected."""
        with pytest.raises(ConfigError):
            Config({"run": {"mode": "banana"}})

    def test_unknown_policy(self):
        """Unknown channel policy is rejected."""
        with pytest.raises(ConfigError):
            Config({"channels": {"multi_policy": "widest"}})


class TestConfigLoad:
    """Test loading TOML files."""

    def test_load_from_path(self, toml_file):
        """Values from the file override defaults."""
        path = toml_file(
            '[naming]\nmax_fx_tokens = 0\nchain_token_source = "aliases"\n'
            '[copy]\nposition = "head"\n'
            '[window]\nsplit_threshold_ms = 5.0\n'
        )
        settings = RunSettings.from_config(Config.load(str(path)))

        assert settings.max_fx_tokens == 0
        assert settings.chain_token_source is ChainTokenSource.ALIASES
        assert settings.copy_position is CopyPosition.HEAD
        assert settings.split_threshold == pytest.approx(0.005)

    def test_load_from_env(self, toml_file, monkeypatch):
        """AUDIOSWEET_CONFIG_PATH is used when no path is given."""
        path = toml_file('[run]\nmode = "chain"\naction = "copy"\n')
        monkeypatch.setenv("AUDIOSWEET_CONFIG_PATH", str(path))

        settings = RunSettings.from_config(Config.load())

        assert settings.mode is EffectMode.CHAIN
        assert settings.action is Action.COPY

    def test_load_invalid_toml(self, toml_file):
        """Unparseable TOML raises ConfigError."""
        path = toml_file("[run\nmode = ")

        with pytest.raises(ConfigError):
            Config.load(str(path))


class TestRunSettings:
    """Test RunSettings construction."""

    def test_strings_coerced_to_enums(self):
        """Plain strings become enum members."""
        settings = RunSettings(mode="chain", apply_mode="multi", multi_policy="target_track")

        assert settings.mode is EffectMode.CHAIN
        assert settings.apply_mode is ApplyMode.MULTI
        assert settings.multi_policy is ChannelPolicy.TARGET_TRACK
        assert settings.focused is False

    def test_invalid_enum_string(self):
        """Unknown strings raise ConfigError."""
        with pytest.raises(ConfigError):
            RunSettings(action="delete")

    def test_negative_token_cap(self):
        """Negative token cap is rejected."""
        with pytest.raises(ConfigError):
            RunSettings(max_fx_tokens=-1)

    def test_settings_are_frozen(self):
        """RunSettings cannot be mutated mid-run."""
        settings = RunSettings()

        with pytest.raises(dataclasses.FrozenInstanceError):
            settings.max_fx_tokens = 5
