"""
Configuration file support.

Provides:
- Config dataclasses for locales, paths, writes, site and logging
- TOML config file loading (portfolio.toml)
- Environment overrides (PORTFOLIO_DB, PORTFOLIO_LOCALES, PORTFOLIO_FALLBACK)
- Precedence: CLI > environment > config file > defaults

Example portfolio.toml::

    [locales]
    supported = ["ko", "en", "ja"]
    fallback = ["ko", "en"]

    [paths]
    db = "data/db/portfolio.db"

    [writes]
    atomic = true

    [site]
    base_url = "https://www.example.com"

    [logging]
    level = "INFO"
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError
from .locales import DEFAULT_FALLBACK_LOCALES, DEFAULT_LOCALE, SUPPORTED_LOCALES, normalize_locale
from .store import DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "portfolio.toml"
DEFAULT_BASE_URL = "https://www.thxx.xyz"

ENV_DB = "PORTFOLIO_DB"
ENV_LOCALES = "PORTFOLIO_LOCALES"
ENV_FALLBACK = "PORTFOLIO_FALLBACK"


class ConfigError(ConfigurationError):
    """Error loading or parsing configuration."""


@dataclass
class LocalesConfig:
    """Locale set and translation fallback order."""

    supported: List[str] = field(default_factory=lambda: list(SUPPORTED_LOCALES))
    fallback: List[str] = field(default_factory=lambda: list(DEFAULT_FALLBACK_LOCALES))
    default: str = DEFAULT_LOCALE


@dataclass
class PathsConfig:
    """Path configuration."""

    db: Optional[str] = None


@dataclass
class WritesConfig:
    """Write coordination settings."""

    atomic: bool = True


@dataclass
class SiteConfig:
    """Public site settings."""

    base_url: str = DEFAULT_BASE_URL


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"
    log_file: Optional[str] = None


@dataclass
class Config:
    """Complete configuration."""

    locales: LocalesConfig = field(default_factory=LocalesConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    writes: WritesConfig = field(default_factory=WritesConfig)
    site: SiteConfig = field(default_factory=SiteConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_path: Optional[Path] = None) -> "Config":
        """Create Config from a dictionary (parsed TOML)."""
        locales_data = data.get("locales", {})
        paths_data = data.get("paths", {})
        writes_data = data.get("writes", {})
        site_data = data.get("site", {})
        logging_data = data.get("logging", {})

        config = cls(
            locales=LocalesConfig(
                supported=_locale_list(locales_data.get("supported"), SUPPORTED_LOCALES),
                fallback=_locale_list(locales_data.get("fallback"), DEFAULT_FALLBACK_LOCALES),
                default=normalize_locale(locales_data.get("default", DEFAULT_LOCALE)),
            ),
            paths=PathsConfig(db=paths_data.get("db")),
            writes=WritesConfig(atomic=bool(writes_data.get("atomic", True))),
            site=SiteConfig(base_url=site_data.get("base_url", DEFAULT_BASE_URL)),
            logging=LoggingConfig(
                level=logging_data.get("level", "WARNING"),
                log_file=logging_data.get("log_file"),
            ),
            config_path=config_path,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """
        Check that the locale settings are consistent.

        Raises:
            ConfigError: If the supported set is empty or a fallback or the
                default locale is not part of it.
        """
        if not self.locales.supported:
            raise ConfigError("[locales] supported must list at least one locale")
        unknown = [code for code in self.locales.fallback if code not in self.locales.supported]
        if unknown:
            raise ConfigError(
                f"[locales] fallback contains unsupported locale(s): {', '.join(unknown)}"
            )
        if self.locales.default not in self.locales.supported:
            raise ConfigError(f"[locales] default '{self.locales.default}' is not supported")

    @property
    def db_path(self) -> Path:
        return Path(self.paths.db) if self.paths.db else DEFAULT_DB_PATH


def _locale_list(value: Any, default) -> List[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list):
        raise ConfigError(f"Expected a list of locale codes, got {value!r}")
    codes: List[str] = []
    for item in value:
        code = normalize_locale(item)
        if code and code not in codes:
            codes.append(code)
    return codes


def find_config_file(config_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find the configuration file.

    Search order:
    1. Explicit path if provided
    2. portfolio.toml in the current directory
    """
    if config_path is not None:
        if config_path.exists():
            return config_path
        raise ConfigError(f"Config file not found: {config_path}")

    cwd_config = Path.cwd() / DEFAULT_CONFIG_NAME
    if cwd_config.exists():
        return cwd_config

    return None


def apply_env_overrides(config: Config, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Apply PORTFOLIO_* environment variables on top of file values."""
    environ = os.environ if environ is None else environ

    if environ.get(ENV_DB):
        config.paths.db = environ[ENV_DB]
        logger.debug(f"Database path from {ENV_DB}: {config.paths.db}")
    if environ.get(ENV_LOCALES):
        config.locales.supported = _locale_list(environ[ENV_LOCALES], SUPPORTED_LOCALES)
    if environ.get(ENV_FALLBACK):
        config.locales.fallback = _locale_list(environ[ENV_FALLBACK], DEFAULT_FALLBACK_LOCALES)

    config.validate()
    return config


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Config:
    """
    Load configuration from a TOML file and the environment.

    If no config file is found, starts from the defaults.

    Raises:
        ConfigError: If the file cannot be read or parsed, or the resulting
            locale settings are inconsistent.
    """
    config_file = find_config_file(config_path)

    if config_file is None:
        logger.debug("No config file found, using defaults")
        config = Config()
    else:
        logger.debug(f"Loading config from: {config_file}")
        try:
            with open(config_file, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_file}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_file}: {e}") from e
        config = Config.from_dict(data, config_path=config_file)
        logger.info(f"Loaded config from: {config_file}")

    return apply_env_overrides(config, environ)
