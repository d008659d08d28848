"""
Configuration management for AudioSweet.

Loads and validates TOML config against strict bounds and allowed values.
All tunable parameters are validated at startup, then frozen into a typed
RunSettings object that is passed explicitly through one pipeline run.
"""

import copy
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, Type, TypeVar
import toml
import logging

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


class EffectMode(str, Enum):
    """Which effects on the processing track take part in a render."""

    FOCUSED = "focused"
    CHAIN = "chain"


class Action(str, Enum):
    """What a run does with the effect(s)."""

    APPLY = "apply"
    COPY = "copy"
    APPLY_AFTER_COPY = "apply_after_copy"


class ApplyMode(str, Enum):
    """Explicit channel mode override for rendering."""

    AUTO = "auto"
    MONO = "mono"
    MULTI = "multi"


class ChannelPolicy(str, Enum):
    """Rule for deciding the output channel count of a multichannel render."""

    SOURCE_PLAYBACK = "source_playback"
    SOURCE_TRACK = "source_track"
    TARGET_TRACK = "target_track"


class ChainTokenSource(str, Enum):
    """Where the naming token comes from in chain mode."""

    TRACK = "track"
    FXCHAIN = "fxchain"
    ALIASES = "aliases"


class CopyScope(str, Enum):
    ACTIVE = "active"
    ALL_TAKES = "all_takes"


class CopyPosition(str, Enum):
    TAIL = "tail"
    HEAD = "head"


class Config:
    """Configuration loader and validator."""

    # Numeric parameter bounds
    PARAM_BOUNDS = {
        "run": {
            "mode": None,
            "action": None,
            "external_undo": None,
            "debug": None,
        },
        "channels": {
            "apply_mode": None,
            "multi_policy": None,
        },
        "naming": {
            "max_fx_tokens": (0, 32),
            "chain_token_source": None,
            "chain_alias_joiner": None,
            "show_type": None,
            "show_vendor": None,
            "strip_symbols": None,
            "trackname_strip_symbols": None,
        },
        "copy": {
            "scope": None,
            "position": None,
        },
        "window": {
            "split_threshold_ms": (0.0, 50.0),
        },
        "render": {
            "engine": None,
            "embed_time_reference": None,
        },
    }

    # Enumerated parameters
    ALLOWED_VALUES = {
        ("run", "mode"): EffectMode,
        ("run", "action"): Action,
        ("channels", "apply_mode"): ApplyMode,
        ("channels", "multi_policy"): ChannelPolicy,
        ("naming", "chain_token_source"): ChainTokenSource,
        ("copy", "scope"): CopyScope,
        ("copy", "position"): CopyPosition,
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "run": {
            "mode": "focused",
            "action": "apply",
            "external_undo": False,
            "debug": False,
        },
        "channels": {
            "apply_mode": "auto",
            "multi_policy": "source_playback",
        },
        "naming": {
            "max_fx_tokens": 3,  # 0 = unlimited
            "chain_token_source": "track",
            "chain_alias_joiner": "",
            "show_type": False,
            "show_vendor": False,
            "strip_symbols": True,
            "trackname_strip_symbols": True,
        },
        "copy": {
            "scope": "active",
            "position": "tail",
        },
        "window": {
            "split_threshold_ms": 2.0,
        },
        "render": {
            "engine": "audiosweet.render.offline:OfflineRenderEngine",
            "embed_time_reference": True,
        },
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def defaults(cls) -> "Config":
        """Config built purely from DEFAULT_CONFIG."""
        return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to audiosweet.toml. If None, uses AUDIOSWEET_CONFIG_PATH
                        env var or defaults to configs/audiosweet.toml.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or cannot be parsed.
        """
        if config_path is None:
            config_path = os.getenv("AUDIOSWEET_CONFIG_PATH", "configs/audiosweet.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls.defaults()

        try:
            config_dict = toml.load(config_path)
        except Exception as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict)

    def _validate(self) -> None:
        """
        Fill missing values from defaults and validate bounds and enumerations.

        Raises:
            ConfigError: If any parameter is out of bounds or not an allowed value.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG.get(section, {}))
                continue

            section_data = self.data[section]

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG.get(section, {}).get(param)
                    if default_val is not None:
                        logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                        section_data[param] = default_val
                    continue

                value = section_data[param]

                enum_cls = self.ALLOWED_VALUES.get((section, param))
                if enum_cls is not None:
                    allowed = [member.value for member in enum_cls]
                    if value not in allowed:
                        raise ConfigError(
                            f"Parameter {section}.{param}={value!r} not one of {allowed}"
                        )
                    continue

                if bounds is None:
                    continue

                if isinstance(bounds, tuple) and len(bounds) == 2:
                    min_val, max_val = bounds
                    if isinstance(value, bool) or not isinstance(value, (int, float)):
                        raise ConfigError(f"Parameter {section}.{param}={value!r} is not numeric")
                    if not (min_val <= value <= max_val):
                        raise ConfigError(
                            f"Parameter {section}.{param}={value} out of bounds "
                            f"[{min_val}, {max_val}]"
                        )

        logger.debug("Config validation passed")

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["naming"]"""
        return self.data.get(section, {})

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"


def _enum_value(enum_cls: Type[E], value: Any, where: str) -> E:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ConfigError(f"{where}={value!r} not one of {allowed}")


@dataclass(frozen=True)
class RunSettings:
    """
    Typed, immutable settings for one pipeline run.

    Built once at the top of a run and passed by reference; nothing below
    the orchestrator reads configuration from anywhere else.
    """

    mode: EffectMode = EffectMode.FOCUSED
    action: Action = Action.APPLY
    apply_mode: ApplyMode = ApplyMode.AUTO
    multi_policy: ChannelPolicy = ChannelPolicy.SOURCE_PLAYBACK
    max_fx_tokens: int = 3
    external_undo: bool = False
    debug: bool = False
    chain_token_source: ChainTokenSource = ChainTokenSource.TRACK
    chain_alias_joiner: str = ""
    show_type: bool = False
    show_vendor: bool = False
    strip_symbols: bool = True
    trackname_strip_symbols: bool = True
    copy_scope: CopyScope = CopyScope.ACTIVE
    copy_position: CopyPosition = CopyPosition.TAIL
    split_threshold: float = 0.002
    engine: str = "audiosweet.render.offline:OfflineRenderEngine"
    embed_time_reference: bool = True

    def __post_init__(self):
        # Coerce plain strings (e.g. from tests or callers) into the closed enums
        for name, enum_cls in (
            ("mode", EffectMode),
            ("action", Action),
            ("apply_mode", ApplyMode),
            ("multi_policy", ChannelPolicy),
            ("chain_token_source", ChainTokenSource),
            ("copy_scope", CopyScope),
            ("copy_position", CopyPosition),
        ):
            object.__setattr__(self, name, _enum_value(enum_cls, getattr(self, name), name))
        if self.max_fx_tokens < 0:
            raise ConfigError(f"max_fx_tokens={self.max_fx_tokens} must be >= 0")
        if self.split_threshold < 0:
            raise ConfigError(f"split_threshold={self.split_threshold} must be >= 0")

    @property
    def focused(self) -> bool:
        return self.mode is EffectMode.FOCUSED

    @classmethod
    def from_config(cls, config: Config) -> "RunSettings":
        """
        Build run settings from a validated Config.

        Args:
            config: Loaded Config instance.

        Returns:
            RunSettings instance.

        Raises:
            ConfigError: If an enumerated value is invalid.
        """
        return cls(
            mode=config.get("run", "mode"),
            action=config.get("run", "action"),
            external_undo=bool(config.get("run", "external_undo", False)),
            debug=bool(config.get("run", "debug", False)),
            apply_mode=config.get("channels", "apply_mode"),
            multi_policy=config.get("channels", "multi_policy"),
            max_fx_tokens=int(config.get("naming", "max_fx_tokens", 3)),
            chain_token_source=config.get("naming", "chain_token_source"),
            chain_alias_joiner=str(config.get("naming", "chain_alias_joiner", "")),
            show_type=bool(config.get("naming", "show_type", False)),
            show_vendor=bool(config.get("naming", "show_vendor", False)),
            strip_symbols=bool(config.get("naming", "strip_symbols", True)),
            trackname_strip_symbols=bool(config.get("naming", "trackname_strip_symbols", True)),
            copy_scope=config.get("copy", "scope"),
            copy_position=config.get("copy", "position"),
            split_threshold=float(config.get("window", "split_threshold_ms", 2.0)) / 1000.0,
            engine=str(config.get("render", "engine")),
            embed_time_reference=bool(config.get("render", "embed_time_reference", True)),
        )
