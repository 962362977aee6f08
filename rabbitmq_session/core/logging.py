"""Logging configuration for rabbitmq-session.

Logger levels, including pika's, live in the YAML files next to this module.
"""

import logging
import logging.config
import os
import sys
from pathlib import Path
from typing import Optional

import yaml

CONFIG_DIR = Path(__file__).parent

logger = logging.getLogger(__name__)


def _config_file(config_path: Optional[str], env_key: str) -> Path:
    override = os.getenv(env_key, config_path)
    if override is not None:
        return Path(override)

    environment = os.getenv("ENVIRONMENT", "development").lower()
    candidate = CONFIG_DIR / f"logging.{environment}.yaml"
    return candidate if candidate.exists() else CONFIG_DIR / "logging.yaml"


def setup_logging(
    config_path: Optional[str] = None,
    default_level: int = logging.INFO,
    env_key: str = "LOG_CFG",
) -> None:
    """
    Configure logging from a YAML dictConfig file.

    Lookup order: the ``env_key`` environment variable, ``config_path``,
    ``logging.<ENVIRONMENT>.yaml`` and finally ``logging.yaml`` in this
    package. Falls back to ``basicConfig`` when the file is missing or broken.
    """
    path = _config_file(config_path, env_key)

    if not path.exists():
        logging.basicConfig(level=default_level)
        logger.warning(f"Logging config file not found at {path}, using basic config")
        return

    try:
        with open(path, "r") as f:
            logging.config.dictConfig(yaml.safe_load(f))
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        logging.basicConfig(level=default_level)
        logger.warning(f"Failed to load logging config from {path}: {e}")
        return

    logger.info(f"Logging configured from {path}")


def log_startup_info(component: str) -> None:
    """Log worker startup information."""
    rule = "=" * 50
    logger.info(rule)
    logger.info(f"{component} starting up")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Working directory: {os.getcwd()}")
    logger.info(f"Environment: {os.getenv('ENVIRONMENT', 'development')}")
    logger.info(rule)


def log_shutdown_info(component: str) -> None:
    """Log worker shutdown information."""
    logger.info(f"{component} shutting down")
