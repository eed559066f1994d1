# archive.py
# Description: Complete-optimization records, latest copy and per-run versioned snapshots.
#
# Layout under the data directory:
#   complete-optimization.json               latest run, overwritten each time
#   versions/<versionId>/prompt.md           immutable copy per run
#   versions/<versionId>/complete-optimization.json
from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Dict, Optional

from loguru import logger

from promptopt_Server_API.app.core.Optimization.models import utc_now_iso
from promptopt_Server_API.app.core.Optimization.paths import (
    COMPLETE_OPTIMIZATION_FILENAME,
    PROMPT_FILENAME,
    OptimizationPaths,
)
from promptopt_Server_API.app.core.Optimization.prompt_writer import normalize_prompt
from promptopt_Server_API.app.core.Optimization.status_store import write_json_atomic


RECORD_VERSION = "2.0"
DEFAULT_OPTIMIZER_TYPE = "GEPA"


def optimized_program(result: Any) -> Dict[str, Any]:
    """The ``optimizedProgram`` block of an optimizer response, or an empty dict."""
    if isinstance(result, dict) and isinstance(result.get("optimizedProgram"), dict):
        return result["optimizedProgram"]
    return {}


def build_complete_optimization(
    result: Dict[str, Any],
    *,
    best_score: float,
    instruction: Optional[str],
    timestamp: Optional[str] = None,
) -> Dict[str, Any]:
    """Assemble the record for one run.

    Values reported inside ``optimizedProgram`` take precedence over the
    top-level ones. Fields with no value are left out of the document.
    """
    program = optimized_program(result)

    def _pick(key: str, fallback: Any = None) -> Any:
        value = program.get(key)
        return fallback if value is None else value

    record: Dict[str, Any] = {
        "version": RECORD_VERSION,
        "bestScore": _pick("bestScore", best_score),
        "instruction": _pick("instruction", instruction),
        "demos": _pick("demos", []),
        "modelConfig": _pick("modelConfig"),
        "optimizerType": _pick("optimizerType", DEFAULT_OPTIMIZER_TYPE),
        "optimizationTime": _pick("optimizationTime"),
        "totalRounds": _pick("totalRounds"),
        "converged": _pick("converged"),
        "stats": _pick("stats"),
        "result": result,
        "timestamp": timestamp or utc_now_iso(),
    }
    return {k: v for k, v in record.items() if v is not None}


def version_id_for(timestamp: Optional[str]) -> str:
    """Filesystem-safe run id derived from the record timestamp.

    ``2025-01-02T03:04:05.678Z`` becomes ``2025-01-02T03-04-05-678Z``; an empty
    timestamp falls back to the current epoch milliseconds.
    """
    vid = (timestamp or "").replace(":", "-").replace(".", "-")
    return vid or str(int(time.time() * 1000))


def write_complete_optimization(paths: OptimizationPaths, record: Dict[str, Any]) -> Path:
    paths.ensure_data_dir()
    write_json_atomic(paths.complete_optimization, json.dumps(record, indent=2, ensure_ascii=False))
    return paths.complete_optimization


def read_complete_optimization(paths: OptimizationPaths) -> Dict[str, Any]:
    """Load the latest record.

    Raises:
        OSError, json.JSONDecodeError: missing or unreadable file.
        ValueError: the document is not a JSON object.
    """
    data = json.loads(paths.complete_optimization.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("complete-optimization document is not an object")
    return data


def archive_run(paths: OptimizationPaths, prompt_text: str, record: Dict[str, Any]) -> Path:
    """Write the versioned snapshot for one run and return its directory."""
    version_path = paths.versions_dir / version_id_for(record.get("timestamp"))
    version_path.mkdir(parents=True, exist_ok=True)
    (version_path / PROMPT_FILENAME).write_text(normalize_prompt(prompt_text), encoding="utf-8")
    (version_path / COMPLETE_OPTIMIZATION_FILENAME).write_text(
        json.dumps(record, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    return version_path


def try_archive_run(paths: OptimizationPaths, prompt_text: str, record: Dict[str, Any]) -> Optional[Path]:
    """archive_run, logging instead of raising. The run outcome does not depend on the archive."""
    try:
        version_path = archive_run(paths, prompt_text, record)
    except (OSError, TypeError, ValueError) as e:
        logger.warning(f"Failed to save versioned optimization run: {e}")
        return None
    logger.info(f"Saved versioned run at {version_path}")
    return version_path
