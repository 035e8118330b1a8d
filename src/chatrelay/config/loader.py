# src/chatrelay/config/loader.py
"""
Layered configuration loading on top of pydantic-settings.

Sources, lowest precedence first: the packaged default_config.toml, the
user config file (or an explicit path), CHATRELAY_* environment variables,
and an overrides dictionary passed as init values. pydantic-settings
deep-merges the sources and validates the result into AppConfig.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import ValidationError
from pydantic_settings import (BaseSettings, PydanticBaseSettingsSource, SettingsError,
                               TomlConfigSettingsSource)

from ..exceptions import ConfigError
from .models import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).with_name("default_config.toml")
USER_CONFIG_PATH = Path("~/.config/chatrelay/config.toml")


def _layered_config_class(toml_files: Sequence[Path], use_env: bool) -> Type[AppConfig]:
    """AppConfig variant reading `toml_files` (later files win) below env and init values."""

    class LayeredAppConfig(AppConfig):
        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: Type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource,
        ) -> Tuple[PydanticBaseSettingsSource, ...]:
            sources = [init_settings]
            if use_env:
                sources.append(env_settings)
            sources.extend(
                TomlConfigSettingsSource(settings_cls, toml_file=path) for path in reversed(toml_files)
            )
            return tuple(sources)

    return LayeredAppConfig


def _config_files(config_file_path: Optional[Union[str, Path]]) -> Sequence[Path]:
    files = [DEFAULT_CONFIG_PATH]
    if config_file_path is not None:
        path = Path(config_file_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path}")
        files.append(path)
    else:
        user_path = USER_CONFIG_PATH.expanduser()
        if user_path.is_file():
            files.append(user_path)
    return files


def load_config(
    config_file_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    use_env: bool = True,
) -> AppConfig:
    """
    Builds the application configuration from all sources.

    Args:
        config_file_path: Explicit TOML file. When given it must exist. When
            omitted, ~/.config/chatrelay/config.toml is used if present.
        overrides: Highest-precedence values, e.g. from command-line flags.
        use_env: Whether CHATRELAY_* environment variables are applied.

    Raises:
        ConfigError: If a file cannot be read or the merged values are invalid.
    """
    files = _config_files(config_file_path)
    logger.debug("Loading configuration from %s", ", ".join(str(f) for f in files))
    settings_cls = _layered_config_class(files, use_env)
    try:
        return settings_cls(**dict(overrides or {}))
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in config file: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")
    except (ValidationError, SettingsError) as e:
        raise ConfigError(f"Invalid configuration: {e}")
