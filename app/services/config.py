"""Loader for the optional ``llm.config.json`` file."""

import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from app.models.config import LlmConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "llm.config.json"


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> LlmConfig:
    """Read *path* into an :class:`LlmConfig`.

    A missing file yields an empty configuration.

    Raises:
        ValueError: when the file is not valid JSON or does not match the schema.
    """
    config_path = Path(path).resolve()
    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return LlmConfig()

    try:
        config = LlmConfig.model_validate_json(config_path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise ValueError(f"Invalid config file {config_path}: {exc}") from exc

    logger.info("Loaded config from %s", config_path)
    return config
