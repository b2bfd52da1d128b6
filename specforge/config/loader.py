# specforge/config/loader.py
"""
Configuration loading with auto-creation of defaults.

Uses platformdirs for cross-platform config directory management. The
SPECFORGE_CONFIG environment variable points at an alternative file.
"""

import logging
import os
from pathlib import Path

import yaml
from platformdirs import user_config_path
from pydantic import ValidationError

from specforge.errors import ErrorCode, SpecforgeError, make_error, normalize_exception

from .schema import SpecforgeConfig

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SPECFORGE_CONFIG"


def get_config_path() -> Path:
    """Get path to config file, ensuring the config directory exists."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    config_dir = user_config_path("specforge", ensure_exists=True)
    return config_dir / "config.yaml"


def load_config(path: Path | None = None) -> SpecforgeConfig:
    """
    Load configuration from YAML file.

    If the config file doesn't exist, creates it with defaults.
    Returns validated Pydantic model.

    Raises:
        SpecforgeError: CONFIG_INVALID for a broken config file, filesystem
            category if it cannot be read or created
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        default_config = SpecforgeConfig()
        config_dict = default_config.model_dump(mode="json")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with config_path.open("w", encoding="utf-8") as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise SpecforgeError(normalize_exception(e, str(config_path))) from e

        logger.info(f"Created default config at {config_path}")
        return default_config

    try:
        with config_path.open("r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise SpecforgeError(
            make_error(
                ErrorCode.CONFIG_INVALID, f"Config file {config_path} is not valid YAML: {e}", path=str(config_path)
            )
        ) from e
    except OSError as e:
        raise SpecforgeError(normalize_exception(e, str(config_path))) from e

    if not isinstance(config_data, dict):
        raise SpecforgeError(
            make_error(
                ErrorCode.CONFIG_INVALID,
                f"Config file {config_path} must contain a YAML mapping",
                path=str(config_path),
            )
        )

    try:
        config = SpecforgeConfig(**config_data)
    except ValidationError as e:
        raise SpecforgeError(
            make_error(
                ErrorCode.CONFIG_INVALID,
                f"Config file {config_path} has {e.error_count()} invalid setting(s)",
                path=str(config_path),
                errors=[
                    {"path": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ],
            )
        ) from e
    logger.info(f"Loaded config from {config_path}")
    return config
