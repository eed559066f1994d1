# sample_store.py
# Description: Loads recorded chat sessions from samples.json.
#
# Two on-disk shapes are accepted and normalized to SamplesDocument:
#   {"samples": [...]}                 current
#   {"good": [...], "bad": [...]}      legacy
# Reads never raise; every fallback to an empty collection is logged.
from __future__ import annotations

import json
from typing import Any, List

from loguru import logger
from pydantic import ValidationError

from promptopt_Server_API.app.core.Optimization.models import (
    ChatSession,
    LegacySamplesDocument,
    SamplesDocument,
)
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths


def decode_samples(parsed: Any) -> SamplesDocument:
    """Normalize a parsed samples document to the current shape.

    Raises:
        ValueError: the document matches neither shape.
        ValidationError: a session or pair has the wrong fields.
    """
    if isinstance(parsed, dict):
        if isinstance(parsed.get("samples"), list):
            return SamplesDocument.model_validate(parsed)
        if isinstance(parsed.get("good"), list) and isinstance(parsed.get("bad"), list):
            return LegacySamplesDocument.model_validate(parsed).to_canonical()
    raise ValueError("samples document has neither a 'samples' list nor 'good'/'bad' lists")


def read_samples(paths: OptimizationPaths) -> SamplesDocument:
    path = paths.samples
    try:
        paths.ensure_data_dir()
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug(f"sample_store: no samples file at {path}")
        return SamplesDocument()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"sample_store: failed to read {path}: {e}")
        return SamplesDocument()
    try:
        return decode_samples(json.loads(raw))
    except (json.JSONDecodeError, ValueError, ValidationError) as e:
        logger.warning(f"sample_store: ignoring unusable samples file {path}: {e}")
        return SamplesDocument()


def load_sessions(paths: OptimizationPaths) -> List[ChatSession]:
    return read_samples(paths).samples
