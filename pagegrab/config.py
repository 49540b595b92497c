"""Configuration objects and constants for the downloader."""

from __future__ import annotations

import configparser
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigError

logger = logging.getLogger("pagegrab.config")

CONFIG_FILE = "config.ini"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)
FILENAME_STRATEGIES = ("title", "id")


@dataclass
class DownloadConfig:
    """Top-level settings that control rendering, output and the local server."""

    output_root: Path = Path("output")
    filename_strategy: str = "title"
    render_time_ms: int = 100
    settle_delay: float = 1.0
    navigation_timeout: float = 60.0
    database_path: Path = Path("history.db")
    host: str = "127.0.0.1"
    port: int = 4173
    max_scroll_steps: int = 5000
    max_stalled_steps: int = 50
    user_agent: str = DEFAULT_USER_AGENT

    def with_overrides(self, **changes) -> "DownloadConfig":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


class EnvironmentOverrides(BaseSettings):
    """Environment variables that win over the INI file."""

    model_config = SettingsConfigDict(env_ignore_empty=True, extra="ignore")

    pagegrab_output: Optional[str] = None
    ui_port: Optional[int] = None


def _read_int(parser: configparser.ConfigParser, section: str, key: str, fallback: int) -> int:
    raw = parser.get(section, key, fallback=None)
    if raw is None:
        return fallback
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"Config value [{section}] {key} is not a number: {raw}") from exc


def _read_float(parser: configparser.ConfigParser, section: str, key: str, fallback: float) -> float:
    raw = parser.get(section, key, fallback=None)
    if raw is None:
        return fallback
    try:
        return float(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"Config value [{section}] {key} is not a number: {raw}") from exc


def load_config(path: Optional[Union[str, Path]] = None) -> DownloadConfig:
    """Load settings from an INI file, falling back to the documented defaults.

    The file is optional. Recognised sections are ``DIRECTORY`` (``output``,
    ``filename``), ``SCRIBD`` (``rendertime``), ``BROWSER`` (``settle``,
    ``timeout``), ``DATABASE`` (``path``) and ``SERVER`` (``host``, ``port``).
    ``PAGEGRAB_OUTPUT`` and ``UI_PORT`` environment variables win over the file.
    """
    defaults = DownloadConfig()
    config_path = Path(path) if path is not None else Path.cwd() / CONFIG_FILE
    parser = configparser.ConfigParser(inline_comment_prefixes=(";", "#"))
    if config_path.exists():
        try:
            parser.read(config_path, encoding="utf-8")
        except configparser.Error as exc:
            raise ConfigError(f"Config load error in {config_path}: {exc}") from exc
        logger.debug("Loaded configuration from %s", config_path)
    elif path is not None:
        logger.warning("Config file %s does not exist; using defaults", config_path)

    filename_strategy = parser.get("DIRECTORY", "filename", fallback=defaults.filename_strategy).strip()
    if filename_strategy not in FILENAME_STRATEGIES:
        raise ConfigError(
            f"Config value [DIRECTORY] filename must be one of {FILENAME_STRATEGIES}: {filename_strategy}"
        )

    config = DownloadConfig(
        output_root=Path(parser.get("DIRECTORY", "output", fallback=str(defaults.output_root)).strip()),
        filename_strategy=filename_strategy,
        render_time_ms=_read_int(parser, "SCRIBD", "rendertime", defaults.render_time_ms),
        settle_delay=_read_float(parser, "BROWSER", "settle", defaults.settle_delay),
        navigation_timeout=_read_float(parser, "BROWSER", "timeout", defaults.navigation_timeout),
        database_path=Path(parser.get("DATABASE", "path", fallback=str(defaults.database_path)).strip()),
        host=parser.get("SERVER", "host", fallback=defaults.host).strip(),
        port=_read_int(parser, "SERVER", "port", defaults.port),
    )

    try:
        overrides = EnvironmentOverrides()
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid environment override: {exc}") from exc
    if overrides.pagegrab_output:
        config.output_root = Path(overrides.pagegrab_output).expanduser()
    if overrides.ui_port is not None:
        config.port = overrides.ui_port
    return config
