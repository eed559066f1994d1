# optimize.py
# Description: Endpoints that start, observe and cancel background prompt-optimization jobs.
#
# POST /optimize-start   schedule a job, 202 immediately
# GET  /optimize-status  running/error status verbatim, else a summary of the latest run
# GET  /optimize-job     in-process job handle
# POST /optimize-cancel  cancel the live job
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from promptopt_Server_API.app.api.v1.API_Deps.Optimization_Deps import (
    get_optimization_job_registry,
    get_optimization_paths,
    get_optimizer_client,
    get_status_store,
)
from promptopt_Server_API.app.api.v1.schemas.optimize_schemas import (
    OptimizeCancelledResponse,
    OptimizeErrorResponse,
    OptimizeJobResponse,
    OptimizeStartedResponse,
    OptimizeStatusResponse,
)
from promptopt_Server_API.app.core.Logging.log_context import ensure_request_id, log_context
from promptopt_Server_API.app.core.Optimization.exceptions import JobAlreadyRunningError, NoActiveJobError
from promptopt_Server_API.app.core.Optimization.job_registry import OptimizationJobRegistry
from promptopt_Server_API.app.core.Optimization.models import OptimizationSettings
from promptopt_Server_API.app.core.Optimization.optimizer_client import OptimizerClient
from promptopt_Server_API.app.core.Optimization.orchestrator import run_optimization_job
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore
from promptopt_Server_API.app.core.Optimization.status_summary import build_status_response


router = APIRouter(tags=["optimization"])


async def _read_client_settings(request: Request) -> Optional[OptimizationSettings]:
    """Optional ``{"settings": {...}}`` body. Absent or malformed bodies mean no settings."""
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return OptimizationSettings.from_raw(body.get("settings"))


@router.get(
    "/optimize-status",
    responses={200: {"model": OptimizeStatusResponse}},
)
def get_optimization_status(paths: OptimizationPaths = Depends(get_optimization_paths)) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_200_OK, content=build_status_response(paths))


@router.post(
    "/optimize-start",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=OptimizeStartedResponse,
    responses={409: {"model": OptimizeErrorResponse}, 500: {"model": OptimizeErrorResponse}},
)
async def start_optimization(
    request: Request,
    paths: OptimizationPaths = Depends(get_optimization_paths),
    status_store: StatusStore = Depends(get_status_store),
    client: OptimizerClient = Depends(get_optimizer_client),
    registry: OptimizationJobRegistry = Depends(get_optimization_job_registry),
):
    opt_settings = await _read_client_settings(request)

    async def _runner(job_id: str, job_settings: Optional[OptimizationSettings]):
        return await run_optimization_job(job_id, job_settings, paths=paths, client=client)

    with log_context(request_id=ensure_request_id(request), opt_component="optimize_start") as log:
        try:
            job = await registry.start(opt_settings, runner=_runner, status_store=status_store)
        except JobAlreadyRunningError as e:
            log.info(f"Rejected start request: {e}")
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=OptimizeErrorResponse(error=str(e), job_id=e.job_id).model_dump(by_alias=True),
            )
        except Exception as e:
            logger.exception(f"Failed to start optimization: {e}")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"error": str(e) or "Unknown error"},
            )
        log.info(f"Optimization job {job.job_id} accepted")
    return OptimizeStartedResponse(job_id=job.job_id)


@router.get("/optimize-job", response_model=OptimizeJobResponse)
def get_optimization_job(
    registry: OptimizationJobRegistry = Depends(get_optimization_job_registry),
) -> Dict[str, Any]:
    job = registry.current()
    if job is None:
        return {"state": "none"}
    return job.snapshot()


@router.post(
    "/optimize-cancel",
    response_model=OptimizeCancelledResponse,
    responses={409: {"model": OptimizeErrorResponse}},
)
async def cancel_optimization(
    registry: OptimizationJobRegistry = Depends(get_optimization_job_registry),
):
    try:
        job = await registry.cancel()
    except NoActiveJobError as e:
        return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": str(e)})
    return OptimizeCancelledResponse(job_id=job.job_id)
