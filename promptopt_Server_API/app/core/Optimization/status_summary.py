# status_summary.py
# Description: Builds the document served by GET /optimize-status.
#
# Running and failed jobs are reported verbatim from the status store. Anything
# else is summarized from the latest complete-optimization record; when that
# cannot be read the service reports itself idle.
from __future__ import annotations

from typing import Any, Dict, Optional

from loguru import logger

from promptopt_Server_API.app.core.Optimization.archive import optimized_program, read_complete_optimization
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths
from promptopt_Server_API.app.core.Optimization.prompt_writer import read_prompt
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore


IDLE_STATUS: Dict[str, Any] = {"status": "idle"}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def success_rate(stats: Dict[str, Any]) -> Optional[str]:
    successful = stats.get("successfulDemos")
    total = stats.get("totalCalls")
    if not successful or not total:
        return None
    try:
        return f"{successful / total * 100:.1f}%"
    except (TypeError, ZeroDivisionError):
        return None


def summarize_complete_optimization(record: Dict[str, Any], prompt_text: Optional[str]) -> Dict[str, Any]:
    """Reshape a complete-optimization record for display."""
    program = optimized_program(record.get("result"))
    stats = _as_dict(record.get("stats"))
    model_config = _as_dict(record.get("modelConfig"))

    instruction = record.get("instruction")
    if not (isinstance(instruction, str) and instruction):
        instruction = program.get("instruction") or prompt_text

    demos = record.get("demos")
    if isinstance(demos, list) and demos:
        demos_count = len(demos)
    else:
        program_demos = program.get("demos")
        demos_count = len(program_demos) if isinstance(program_demos, list) else 0

    used = program.get("examples")
    return {
        "status": "completed",
        "bestScore": record.get("bestScore"),
        "totalRounds": record.get("totalRounds"),
        "converged": record.get("converged"),
        "optimizerType": record.get("optimizerType"),
        "optimizationTimeMs": record.get("optimizationTime"),
        "updatedAt": record.get("timestamp"),
        "instructionLength": len(prompt_text) if prompt_text else 0,
        "instruction": instruction,
        "temperature": model_config.get("temperature"),
        "demosCount": demos_count,
        "totalCalls": stats.get("totalCalls"),
        "successRate": success_rate(stats),
        "usedSamples": {"total": len(used) if isinstance(used, list) else 0},
    }


def build_status_response(paths: OptimizationPaths) -> Dict[str, Any]:
    current = StatusStore(paths).read()
    if current is not None and current.is_active_or_failed:
        return current.to_document()
    try:
        record = read_complete_optimization(paths)
    except FileNotFoundError:
        return dict(IDLE_STATUS)
    except (OSError, ValueError) as e:
        logger.warning(f"status_summary: unreadable complete-optimization record: {e}")
        return dict(IDLE_STATUS)
    try:
        return summarize_complete_optimization(record, read_prompt(paths))
    except Exception as e:
        logger.warning(f"status_summary: failed to summarize complete-optimization record: {e}")
        return dict(IDLE_STATUS)
