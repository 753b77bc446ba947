"""
Loading keys, prompts and configuration from disk.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Sequence

from layer_airdrop.errors import KeySourceError
from layer_airdrop.types import BotConfig

logger = logging.getLogger(__name__)


def read_lines(path: str | Path) -> list[str] | None:
    """Non-blank, non-comment lines of a text file; ``None`` if it is missing."""
    path = Path(path)
    if not path.is_file():
        return None
    content = path.read_text(encoding="utf-8")
    lines = (line.strip() for line in content.splitlines())
    return [line for line in lines if line and not line.startswith("#")]


def read_private_keys(path: str | Path) -> list[str]:
    """Secret keys, one per line.

    Raises:
        KeySourceError: If the file does not exist.
    """
    keys = read_lines(path)
    if keys is None:
        raise KeySourceError(f"Private keys file not found: {path}")
    return keys


def read_chat_prompts(path: str | Path | None, default_prompts: Sequence[str]) -> list[str]:
    """Prompts from ``path``, or ``default_prompts`` when it is absent or empty."""
    if path is not None:
        prompts = read_lines(path)
        if prompts:
            return prompts
    return list(default_prompts)


def load_config(path: str | Path | None) -> BotConfig:
    """Validate a JSON config file; defaults when ``path`` is missing.

    Raises:
        pydantic.ValidationError: If the file does not match :class:`BotConfig`.
    """
    if path is None or not Path(path).is_file():
        if path is not None:
            logger.info("Config file %s not found; using defaults", path)
        return BotConfig()
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return BotConfig.model_validate(data)
