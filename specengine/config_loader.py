"""Engine settings: schema and TOML loading."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

from .config import Configuration
from .constants import (
    BULK_BATCH_DELAY,
    BULK_CONCURRENCY,
    COMPLETIONS_DIR,
    CONFIG_FILE,
    DISCOVERED_MAX_AGE_DAYS,
    DISCOVERED_SPECS_DIR,
    GENERATOR_CACHE_TTL,
    GENERATOR_HARD_TIMEOUT,
    GENERATOR_SOFT_TIMEOUT,
    MAX_RECURSION_DEPTH,
    PROJECT_ROOT_MAX_DEPTH,
    PROJECT_SPEC_TTL,
    USER_SPECS_DIR,
)
from .logging_setup import get_logger
from .models import ConfigError
from .validation import ConfigField, ConfigItems, ConfigValidator

if TYPE_CHECKING:
    import logging

__all__ = ["ENGINE_CONFIG_SCHEMA", "SETTINGS_SECTION", "default_configuration", "load_configuration"]

SETTINGS_SECTION = "specs"


def _positive(value: float) -> list[str]:
    if value <= 0:
        return [f"must be positive, got {value}"]
    return []


ENGINE_CONFIG_SCHEMA = ConfigItems(
    ConfigField("enabled", bool, default=True, description="Look up specs at all"),
    ConfigField("auto_generate", bool, default=True, description="Build specs from project manifests"),
    ConfigField("discover_from_help", bool, default=False, description="Discover unknown commands by parsing --help"),
    ConfigField("discover_blocklist", list, item_type=str, description="Commands never queried for --help"),
    ConfigField("trust_project_generators", bool, default=False, description="Run generators declared in project-local specs"),
    ConfigField("generator_timeout_ms", int, default=int(GENERATOR_SOFT_TIMEOUT * 1000), validator=_positive),
    ConfigField("generator_hard_timeout_ms", int, default=int(GENERATOR_HARD_TIMEOUT * 1000), validator=_positive),
    ConfigField("generator_cache_ttl", (int, float), default=GENERATOR_CACHE_TTL, description="Seconds a generator result is reused"),
    ConfigField("project_spec_ttl", (int, float), default=PROJECT_SPEC_TTL, description="Seconds user and project specs are cached"),
    ConfigField("discovered_max_age_days", (int, float), default=DISCOVERED_MAX_AGE_DAYS),
    ConfigField("bulk_concurrency", int, default=BULK_CONCURRENCY, validator=_positive),
    ConfigField("bulk_delay_ms", int, default=int(BULK_BATCH_DELAY * 1000)),
    ConfigField("max_recursion_depth", int, default=MAX_RECURSION_DEPTH, validator=_positive),
    ConfigField("project_root_max_depth", int, default=PROJECT_ROOT_MAX_DEPTH),
    ConfigField("user_specs_dir", str, default=str(USER_SPECS_DIR)),
    ConfigField("discovered_specs_dir", str, default=str(DISCOVERED_SPECS_DIR)),
    ConfigField("completions_dir", str, default=str(COMPLETIONS_DIR)),
)


def default_configuration(logger: logging.Logger | None = None) -> Configuration:
    """Return a configuration holding only the schema defaults."""
    return Configuration(logger=logger or get_logger("specengine.config"), schema=ENGINE_CONFIG_SCHEMA)


def load_configuration(filename: str | Path | None = None, logger: logging.Logger | None = None) -> Configuration:
    """Load the `[specs]` section of the configuration file.

    A missing file yields the defaults. Validation problems are logged, and
    the offending values fall back to their defaults through the typed accessors.

    Args:
        filename: Path to the TOML file (defaults to the XDG location)
        logger: Logger instance

    Returns:
        The engine configuration

    Raises:
        ConfigError: If the file exists but cannot be read or parsed
    """
    log = logger or get_logger("specengine.config")
    path = Path(os.path.expandvars(str(filename))).expanduser() if filename else CONFIG_FILE
    if not path.exists():
        log.debug("No config file at %s, using defaults", path)
        return default_configuration(log)

    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        log.critical("Problem reading %s: %s", path, e)
        msg = f"Cannot load configuration {path}: {e}"
        raise ConfigError(msg) from e

    section = data.get(SETTINGS_SECTION, {})
    if not isinstance(section, dict):
        msg = f"[{SETTINGS_SECTION}] must be a table in {path}"
        log.critical(msg)
        raise ConfigError(msg)

    validator = ConfigValidator(section, SETTINGS_SECTION, log)
    for error in validator.validate(ENGINE_CONFIG_SCHEMA):
        log.warning(error)
    validator.warn_unknown_keys(ENGINE_CONFIG_SCHEMA)
    return Configuration(section, logger=log, schema=ENGINE_CONFIG_SCHEMA)
