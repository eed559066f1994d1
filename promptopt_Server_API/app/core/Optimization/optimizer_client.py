# optimizer_client.py
# Description: HTTP client for the external optimizer service (GET /health, POST /optimize).
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import httpx
from loguru import logger

from promptopt_Server_API.app.core.config import settings, DEFAULT_HEALTH_TIMEOUT_SEC, DEFAULT_OPTIMIZER_ENDPOINT
from promptopt_Server_API.app.core.http_client import create_async_client, post_json_async
from promptopt_Server_API.app.core.Optimization.exceptions import OptimizationError, OptimizerRemoteError
from promptopt_Server_API.app.core.Optimization.models import OptimizationSettings, TrainingExample


def build_optimize_request(
    examples: Iterable[TrainingExample],
    opt_settings: Optional[OptimizationSettings],
    *,
    default_max_metric_calls: int,
) -> Dict[str, Any]:
    """Body for POST /optimize. Tuning parameters that were not supplied are omitted."""
    tuning = opt_settings.to_document() if opt_settings else {}
    tuning.setdefault("maxMetricCalls", default_max_metric_calls)
    return {"examples": [ex.to_document() for ex in examples], **tuning}


class OptimizerClient:
    """Talks to the optimizer service at ``base_url``.

    ``timeout`` applies to /optimize and defaults to no timeout at all; the
    optimizer may legitimately run for a long time.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        health_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or DEFAULT_OPTIMIZER_ENDPOINT).rstrip("/")
        self.timeout = timeout
        self.health_timeout = health_timeout if health_timeout is not None else DEFAULT_HEALTH_TIMEOUT_SEC
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "OptimizerClient":
        return cls(
            settings.get("OPTIMIZER_ENDPOINT"),
            timeout=settings.get("OPTIMIZER_TIMEOUT_SEC"),
            health_timeout=settings.get("OPTIMIZER_HEALTH_TIMEOUT_SEC"),
            transport=transport,
        )

    async def check_health(self) -> bool:
        """Best-effort liveness probe. Never raises."""
        health_url = f"{self.base_url}/health"
        try:
            async with create_async_client(self.health_timeout, transport=self._transport) as client:
                resp = await client.get(health_url)
        except Exception as e:
            logger.warning(
                f"Could not reach optimizer at {self.base_url}. Set OPTIMIZER_ENDPOINT and ensure "
                f"the service is running. Error: {e}"
            )
            return False
        if resp.is_success:
            logger.info(f"Optimizer healthy at {health_url}")
            return True
        logger.warning(f"Optimizer responded with status {resp.status_code} at {health_url}")
        return False

    async def optimize(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST the job and return the decoded response.

        Raises:
            OptimizerRemoteError: non-success HTTP status; carries the response body.
            OptimizationError: the response body is not a JSON object.
            httpx.HTTPError: transport failure.
        """
        async with create_async_client(self.timeout, transport=self._transport) as client:
            resp = await post_json_async(client, f"{self.base_url}/optimize", payload)
        if not resp.is_success:
            raise OptimizerRemoteError(resp.status_code, resp.text)
        try:
            result = resp.json()
        except ValueError as e:
            raise OptimizationError(f"Optimizer returned invalid JSON: {e}") from e
        if not isinstance(result, dict):
            raise OptimizationError("Optimizer returned a non-object response")
        return result
