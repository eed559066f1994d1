# orchestrator.py
# Description: Runs one optimization: examples -> optimizer service -> prompt, records, status.
#
# The run executes as a background task. Failures never propagate to an HTTP
# caller; run_optimization_job records them in the status document instead.
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from loguru import logger

from promptopt_Server_API.app.core.config import settings, DEFAULT_MAX_METRIC_CALLS
from promptopt_Server_API.app.core.Logging.log_context import log_context
from promptopt_Server_API.app.core.Optimization.archive import (
    build_complete_optimization,
    optimized_program,
    try_archive_run,
    write_complete_optimization,
)
from promptopt_Server_API.app.core.Optimization.example_builder import (
    build_examples,
    partition_by_tool_usage,
    unique_tools,
)
from promptopt_Server_API.app.core.Optimization.exceptions import NoTrainingExamplesError
from promptopt_Server_API.app.core.Optimization.models import (
    OptimizationSettings,
    OptimizationStatus,
    TrainingExample,
)
from promptopt_Server_API.app.core.Optimization.optimizer_client import OptimizerClient, build_optimize_request
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths
from promptopt_Server_API.app.core.Optimization.prompt_writer import write_prompt
from promptopt_Server_API.app.core.Optimization.sample_store import load_sessions
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore


FALLBACK_INSTRUCTION = "You are an assistant. Answer questions helpfully and professionally."
CANCELLED_MESSAGE = "Optimization cancelled"


@dataclass
class OptimizationOutcome:
    best_score: float
    instruction_source: str  # "optimized" | "fallback"
    prompt_text: str
    record: Dict[str, Any]


def extract_best_score(result: Dict[str, Any]) -> float:
    score = result.get("bestScore")
    return score if isinstance(score, (int, float)) and not isinstance(score, bool) else -1


def extract_instruction(result: Dict[str, Any]) -> Optional[str]:
    """Instruction from ``optimizedProgram.instruction``, else a top-level ``instruction``."""
    for candidate in (optimized_program(result).get("instruction"), result.get("instruction")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    return None


def compose_prompt(instruction: str, demos: Optional[List[Any]], examples: List[TrainingExample]) -> str:
    """Instruction followed by the optimizer's demos, or the training examples when there are none."""
    parts = [instruction]
    if demos:
        blocks = [
            f"Example {i}:\n{json.dumps(demo, indent=2, ensure_ascii=False)}"
            for i, demo in enumerate(demos, start=1)
        ]
        parts.append("\n\nOptimized Examples:\n" + "\n\n".join(blocks))
        logger.info(f"Using {len(demos)} optimized demos")
    elif examples:
        blocks = [
            f"Example {i}:\n{ex.conversation_context}\n→ {ex.expected_turn_response}"
            for i, ex in enumerate(examples, start=1)
        ]
        parts.append("\n\nExamples:\n" + "\n\n".join(blocks))
        logger.info(f"Using {len(examples)} original training examples")
    return "".join(parts)


def _log_training_analysis(examples: List[TrainingExample]) -> None:
    with_tools, without_tools = partition_by_tool_usage(examples)
    logger.info(
        f"Training analysis: conversations with tools={len(with_tools)} without tools={len(without_tools)}"
    )
    if with_tools:
        logger.info(f"Unique tools used: {', '.join(unique_tools(with_tools))}")


def _persist_run(
    paths: OptimizationPaths,
    prompt_text: str,
    source: str,
    record: Dict[str, Any],
    job_id: Optional[str],
) -> None:
    """Write prompt, record, archive and the completed status, in that order."""
    write_prompt(paths, prompt_text)
    logger.info(f"Saved {source} instruction to {paths.prompt}")
    write_complete_optimization(paths, record)
    logger.info(f"Optimization saved to {paths.complete_optimization}")
    try_archive_run(paths, prompt_text, record)
    StatusStore(paths).write(OptimizationStatus.completed(job_id=job_id))


async def run_optimization(
    opt_settings: Optional[OptimizationSettings],
    *,
    paths: OptimizationPaths,
    client: OptimizerClient,
    job_id: Optional[str] = None,
) -> OptimizationOutcome:
    """Execute one optimization run and mark the status completed.

    Raises:
        NoTrainingExamplesError: no session produced an example.
        OptimizerRemoteError: the optimizer rejected the job.
        httpx.HTTPError: the optimizer could not be reached for /optimize.
    """
    examples = build_examples(await asyncio.to_thread(load_sessions, paths))
    logger.info(f"Processing samples: {len(examples)} training examples")
    if examples:
        logger.debug(f"Sample conversation: {examples[0].conversation_context[:150]}...")
    if not examples:
        raise NoTrainingExamplesError()

    await client.check_health()
    _log_training_analysis(examples)

    default_calls = settings.get("DEFAULT_MAX_METRIC_CALLS") or DEFAULT_MAX_METRIC_CALLS
    payload = build_optimize_request(examples, opt_settings, default_max_metric_calls=default_calls)
    logger.info(f"Submitting {len(examples)} examples to optimizer (maxMetricCalls={payload['maxMetricCalls']})")
    result = await client.optimize(payload)
    logger.info(f"Optimizer finished; result keys: {sorted(result.keys())}")

    best_score = extract_best_score(result)
    if best_score >= 0:
        logger.info(f"Best score found: {best_score:.3f}")
    instruction = extract_instruction(result)
    demos = optimized_program(result).get("demos")
    prompt_text = compose_prompt(
        instruction or FALLBACK_INSTRUCTION,
        demos if isinstance(demos, list) else None,
        examples,
    )
    source = "optimized" if instruction else "fallback"
    record = build_complete_optimization(result, best_score=best_score, instruction=instruction)
    await asyncio.to_thread(_persist_run, paths, prompt_text, source, record, job_id)
    return OptimizationOutcome(
        best_score=best_score,
        instruction_source=source,
        prompt_text=prompt_text,
        record=record,
    )


async def run_optimization_job(
    job_id: str,
    opt_settings: Optional[OptimizationSettings],
    *,
    paths: OptimizationPaths,
    client: OptimizerClient,
) -> Optional[OptimizationOutcome]:
    """Background entry point: run_optimization with failures recorded as ``error`` status.

    Cancellation is recorded the same way and then re-raised so the task
    finishes as cancelled.
    """
    store = StatusStore(paths)
    with log_context(job_id=job_id, opt_component="orchestrator") as log:
        log.info("Optimization job started")
        try:
            outcome = await run_optimization(opt_settings, paths=paths, client=client, job_id=job_id)
        except asyncio.CancelledError:
            log.warning("Optimization job cancelled")
            store.write(OptimizationStatus.failed(CANCELLED_MESSAGE, job_id=job_id))
            raise
        except Exception as e:
            log.error(f"Optimization failed: {e}")
            store.write(OptimizationStatus.failed(str(e) or type(e).__name__, job_id=job_id))
            return None
        log.info(f"Optimization job completed (bestScore={outcome.best_score})")
        return outcome
