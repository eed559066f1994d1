# prompt_writer.py
# Description: Latest optimized prompt text (prompt.md). History lives in the versions/ archive.
from __future__ import annotations

from typing import Optional

from loguru import logger

from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths


def normalize_prompt(text: str) -> str:
    return text.strip() + "\n"


def write_prompt(paths: OptimizationPaths, text: str) -> None:
    paths.ensure_data_dir()
    paths.prompt.write_text(normalize_prompt(text), encoding="utf-8")


def read_prompt(paths: OptimizationPaths) -> Optional[str]:
    """Trimmed prompt text, or None when the file is missing, unreadable or blank."""
    try:
        content = paths.prompt.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.debug(f"prompt_writer: failed to read {paths.prompt}: {e}")
        return None
    return content.strip() or None
