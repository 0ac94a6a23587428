"""Configuration management for the user directory.

Settings come from the process environment, optionally seeded from a
``.env`` file:

- ``DATABASE_PATH``: SQLite file holding the directory
- ``LOGGING_LEVEL``: root logging level name, INFO when unset or unknown
- ``DEFAULT_MUTE_MINUTES``: mute length used when none is given
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dotenv import load_dotenv

if TYPE_CHECKING:
    from pathlib import Path

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

_DEFAULT_DATABASE_PATH = "./userdir_sqlite.db"
_DEFAULT_LOGGING_LEVEL = "INFO"
_DEFAULT_MUTE_MINUTES = 5


def configure_logging(app_config: AppConfig) -> None:
    """Point the root logger at the configured level.

    :param app_config: The loaded configuration
    """
    name = (app_config.logging_level or _DEFAULT_LOGGING_LEVEL).upper()
    level = logging.getLevelNamesMapping().get(name)
    if level is None:
        LOGGER.warning(
            "Unknown LOGGING_LEVEL %r, using INFO",
            app_config.logging_level,
        )
        level = logging.INFO
    logging.basicConfig(level=level, force=True)


@dataclass
class AppConfig:
    """Directory settings."""

    database_path: str
    logging_level: str | None
    default_mute_minutes: int = _DEFAULT_MUTE_MINUTES

    def __post_init__(self) -> None:
        if not self.database_path.strip():
            msg = "DATABASE_PATH must not be blank"
            raise ValueError(msg)
        if self.default_mute_minutes < 0:
            msg = "DEFAULT_MUTE_MINUTES must not be negative"
            raise ValueError(msg)


def get_env_str(var_name: str, default: str | None) -> str:
    """Read a string setting. Unset or blank values fall back to ``default``.

    :raises ValueError: If the setting is absent and has no default
    """
    value = os.getenv(var_name, "").strip()
    if value:
        return value
    if default is None:
        msg = f"Environment variable {var_name} is required"
        raise ValueError(msg)
    return default


def get_env_int(var_name: str, default: int) -> int:
    """Read an integer setting. Unset or blank values fall back to ``default``.

    :raises ValueError: If the value is not an integer
    """
    raw = os.getenv(var_name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        msg = f"Environment variable {var_name} must be an integer, got: {raw}"
        raise ValueError(msg) from None


def load_config_from_env(env_file: str | Path | None = None) -> AppConfig:
    """Build an :class:`AppConfig` from the environment.

    :param env_file: Optional .env file loaded first. Variables already set
        in the environment win over the file.
    :raises ValueError: If a setting is malformed or out of range
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)

    return AppConfig(
        database_path=get_env_str("DATABASE_PATH", _DEFAULT_DATABASE_PATH),
        logging_level=get_env_str("LOGGING_LEVEL", _DEFAULT_LOGGING_LEVEL),
        default_mute_minutes=get_env_int(
            "DEFAULT_MUTE_MINUTES",
            _DEFAULT_MUTE_MINUTES,
        ),
    )
