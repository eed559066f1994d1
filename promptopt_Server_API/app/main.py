# main.py
# Description: FastAPI application exposing background prompt-optimization jobs.
#
# Imports
import logging
import os
import sys
from contextlib import asynccontextmanager
#
# 3rd-party Libraries
from loguru import logger
from fastapi import FastAPI
#
# Local Imports
from promptopt_Server_API.app.core.config import settings
from promptopt_Server_API.app.core.Optimization.job_registry import get_job_registry
from promptopt_Server_API.app.api.v1.endpoints.optimize import router as optimize_router
#
########################################################################################################################
#
# Logging

class InterceptHandler(logging.Handler):
    """Route stdlib (and uvicorn) logging records into Loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        # Walk back through frames to skip logging internals
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _ensure_log_extra_fields(record: dict) -> bool:
    extra = record.setdefault("extra", {})
    # Provide defaults to avoid KeyError in format templates
    extra.setdefault("request_id", "")
    extra.setdefault("job_id", "")
    extra.setdefault("opt_component", "")
    return True


def _log_format(record: dict) -> str:
    # Returning a template keeps message braces (e.g. JSON) out of Loguru's markup parsing.
    return (
        "<dim>{time:YYYY-MM-DD HH:mm:ss.SSS}</dim> | "
        "<level>{level: <8}</level> | "
        "<yellow>req={extra[request_id]}</yellow> <yellow>job={extra[job_id]}</yellow> "
        "<yellow>opt={extra[opt_component]}</yellow> | "
        "<blue>{name}</blue>:<magenta>{function}</magenta>:<cyan>{line}</cyan> - {message}\n{exception}"
    )


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def configure_logging() -> None:
    """Reset Loguru to a single stderr sink (plus an optional JSON sink) and intercept stdlib logging."""
    logger.remove()
    log_level = settings.get("LOG_LEVEL") or "INFO"
    sink = sys.stdout if os.getenv("LOG_STREAM", "stderr").lower() == "stdout" else sys.stderr
    use_color = _env_flag("FORCE_COLOR") or (sink.isatty() and not _env_flag("NO_COLOR"))
    logger.add(
        sink,
        level=log_level,
        format=_log_format,
        colorize=use_color,
        filter=_ensure_log_extra_fields,
        enqueue=False,
    )
    if _env_flag("LOG_JSON"):
        logger.add(
            sys.stdout,
            level=log_level,
            serialize=True,
            backtrace=False,
            diagnose=False,
            filter=_ensure_log_extra_fields,
        )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for _name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        _lg = logging.getLogger(_name)
        _lg.handlers = [InterceptHandler()]
        _lg.propagate = False


configure_logging()

#
########################################################################################################################
#
# Application

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the effective configuration on startup; cancel any live optimization job on shutdown."""
    logger.info(
        f"App Startup: optimizer endpoint={settings.get('OPTIMIZER_ENDPOINT')} "
        f"data dir={settings.get('OPTIMIZATION_DATA_DIR')}"
    )
    yield
    registry = get_job_registry()
    if registry.is_running():
        logger.info("App Shutdown: cancelling running optimization job")
    await registry.shutdown()
    logger.info("App Shutdown: complete")


app = FastAPI(
    title="Prompt Optimization Server",
    description="Starts background prompt optimizations against an external optimizer and serves their status.",
    lifespan=lifespan,
)

app.include_router(optimize_router)


@app.get("/health", tags=["health"])
async def health_check():
    return {"status": "ok"}

#
## Entry point for running the server
########################################################################################################################
def run_server():
    """Run the FastAPI server using uvicorn."""
    import uvicorn
    uvicorn.run(
        "promptopt_Server_API.app.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8080")),
        log_level="info",
    )


if __name__ == "__main__":
    run_server()

#
## End of main.py
########################################################################################################################
