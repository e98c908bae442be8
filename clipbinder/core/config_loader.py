"""Configuration loader for acquisition settings.

Acquisition defaults live in code (``clipbinder.config.acquisition``). A YAML
file may override any subset of them; this module loads, validates and
caches that file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from clipbinder.config import AcquisitionConfig
from clipbinder.core.config import get_config
from clipbinder.core.exceptions import ConfigError, ConfigNotFoundError, ConfigValidationError
from clipbinder.core.logging import get_logger

logger = get_logger(__name__)


def load_acquisition_config(path: Path | str | None = None) -> AcquisitionConfig:
    """Load acquisition settings from YAML.

    Args:
        path: YAML file. Defaults to ``Config.acquisition_config_path``;
            when neither is set, built-in defaults are returned.

    Returns:
        Validated AcquisitionConfig

    Raises:
        ConfigNotFoundError: If an explicit path does not exist
        ConfigError: If the file is not a YAML mapping
        ConfigValidationError: If values fail validation
    """
    if path is None:
        path = get_config().acquisition_config_path
    if path is None:
        logger.debug("No acquisition config file, using defaults")
        return AcquisitionConfig()
    return _load_cached(Path(path).resolve())


@lru_cache(maxsize=8)
def _load_cached(path: Path) -> AcquisitionConfig:
    raw = _load_yaml_file(path, "acquisition")
    return _validate(raw, path)


def _load_yaml_file(path: Path, name: str) -> dict[str, Any]:
    """Load a YAML file from disk.

    Args:
        path: Path to the YAML file.
        name: Human-readable name for error messages.

    Returns:
        Parsed YAML content as dictionary (empty for an empty file).

    Raises:
        ConfigNotFoundError: If the file doesn't exist.
        ConfigError: If parsing fails or the content is not a mapping.
    """
    if not path.exists():
        logger.error("Config file not found", name=name, path=str(path))
        raise ConfigNotFoundError(name, config_path=str(path))

    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error("YAML parsing failed", name=name, path=str(path), error=str(e))
        raise ConfigError(f"Invalid YAML in {path}: {e}", config_path=str(path)) from e
    except OSError as e:
        logger.error("Failed to read config file", name=name, path=str(path), error=str(e))
        raise ConfigError(f"Cannot read {path}: {e}", config_path=str(path)) from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"Config file must contain a YAML object: {path}", config_path=str(path))

    logger.debug("Loaded config file", name=name, path=str(path))
    return content


def _validate(raw: dict[str, Any], path: Path) -> AcquisitionConfig:
    try:
        return AcquisitionConfig(**raw)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(loc_part) for loc_part in error["loc"])
            error_messages.append(f"{loc}: {error['msg']}")

        logger.error("Config validation failed", path=str(path), errors=error_messages)
        raise ConfigValidationError(
            "Invalid acquisition configuration:\n" + "\n".join(error_messages),
            config_path=str(path),
        ) from e


def clear_config_cache() -> None:
    """Clear cached acquisition configurations.

    Call this if config files are modified at runtime and need to be reloaded.
    """
    _load_cached.cache_clear()
    logger.info("Acquisition config cache cleared")


__all__ = ["clear_config_cache", "load_acquisition_config"]
