"""
Loading and saving of the project configuration files.

A project keeps its settings in ``<project>/config``:
- ``config.yml``: RenderConfig (original key layout or field names)
- ``iban.yml``: IbanConfig

Missing files fall back to defaults; missing keys fall back field by field.
"""

from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from .config import CONFIG_FILE_NAME, IBAN_FILE_NAME, logger
from .exceptions import ConfigurationError
from .schemas import IbanConfig, RenderConfig


def _read_yaml(path: Path) -> dict[str, Any]:
    """
    Read a YAML mapping, returning an empty dict when the file does not exist.

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    if not path.exists():
        logger.info(f"{path.name} not found, using defaults")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}", {"reason": str(e)}) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Expected a mapping in {path}",
            {"type": type(data).__name__},
        )

    logger.info(f"Loaded {path.name}")
    return data


def load_render_config(config_dir: Union[str, Path]) -> RenderConfig:
    """Load ``config.yml`` from the config directory."""
    path = Path(config_dir) / CONFIG_FILE_NAME
    try:
        return RenderConfig.model_validate(_read_yaml(path))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}", {"reason": str(e)}) from e


def load_iban_config(config_dir: Union[str, Path]) -> IbanConfig:
    """Load ``iban.yml`` from the config directory."""
    path = Path(config_dir) / IBAN_FILE_NAME
    try:
        return IbanConfig.model_validate(_read_yaml(path))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings in {path}", {"reason": str(e)}) from e


def save_iban_config(config_dir: Union[str, Path], iban: str) -> IbanConfig:
    """
    Store the IBAN in ``iban.yml``, creating the config directory if needed.

    Returns:
        The stored IbanConfig
    """
    iban_config = IbanConfig(iban=iban.strip())
    config_dir = Path(config_dir)
    config_dir.mkdir(parents=True, exist_ok=True)

    path = config_dir / IBAN_FILE_NAME
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(iban_config.model_dump(), f, allow_unicode=True)

    logger.info(f"IBAN saved to {path}")
    return iban_config


def save_render_config(config_dir: Union[str, Path], config: RenderConfig) -> Path:
    """Write ``config.yml`` using the model's field names."""
    config_dir = Path(config_dir)
    config_dir.mkdir(parents=True, exist_ok=True)

    path = config_dir / CONFIG_FILE_NAME
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config.model_dump(), f, allow_unicode=True, sort_keys=False)

    logger.info(f"Settings saved to {path}")
    return path
