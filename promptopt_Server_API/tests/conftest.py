"""
Pytest configuration and shared fixtures.

Every test gets its own data directory under tmp_path, a fresh settings cache
and a fresh job registry. Calls to the optimizer service are answered by an
in-process httpx.MockTransport.
"""

import json
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional

import httpx
import pytest
from loguru import logger

from promptopt_Server_API.app.core.config import clear_config_cache
from promptopt_Server_API.app.core.Optimization.job_registry import reset_job_registry
from promptopt_Server_API.app.core.Optimization.optimizer_client import OptimizerClient
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths


OPTIMIZER_URL = "http://optimizer.test"


@pytest.fixture
def data_dir(tmp_path, monkeypatch) -> Generator[Path, None, None]:
    d = tmp_path / "data"
    monkeypatch.setenv("OPTIMIZATION_DATA_DIR", str(d))
    monkeypatch.setenv("OPTIMIZER_ENDPOINT", OPTIMIZER_URL)
    for name in ("OPTIMIZER_TIMEOUT_SEC", "OPTIMIZER_HEALTH_TIMEOUT_SEC", "DEFAULT_MAX_METRIC_CALLS"):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    reset_job_registry()
    yield d
    clear_config_cache()
    reset_job_registry()


@pytest.fixture
def paths(data_dir) -> OptimizationPaths:
    return OptimizationPaths(data_dir=data_dir)


@pytest.fixture
def write_samples(paths):
    def _write(doc: Any) -> Path:
        paths.ensure_data_dir()
        if isinstance(doc, bytes):
            paths.samples.write_bytes(doc)
            return paths.samples
        text = doc if isinstance(doc, str) else json.dumps(doc)
        paths.samples.write_text(text, encoding="utf-8")
        return paths.samples

    return _write


@pytest.fixture
def make_session():
    def _make(*pairs: Dict[str, Any], session_id: str = "s1") -> Dict[str, Any]:
        return {"id": session_id, "createdAt": "2025-01-01T00:00:00.000Z", "pairs": list(pairs)}

    return _make


class OptimizerStub:
    """Stand-in for the optimizer service; records every request it receives."""

    def __init__(self):
        self.health_status = 200
        self.health_error: Optional[Exception] = None
        self.optimize_status = 200
        self.optimize_json: Any = {"bestScore": 0.5, "optimizedProgram": {"instruction": "Be helpful.", "demos": []}}
        self.optimize_text: Optional[str] = None
        self.requests: List[httpx.Request] = []

    @property
    def optimize_payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path == "/optimize"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/health":
            if self.health_error is not None:
                raise self.health_error
            return httpx.Response(self.health_status, json={"status": "ok"})
        if request.url.path == "/optimize":
            if self.optimize_text is not None:
                return httpx.Response(self.optimize_status, text=self.optimize_text)
            return httpx.Response(self.optimize_status, json=self.optimize_json)
        return httpx.Response(404, text="not found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def optimizer_stub() -> OptimizerStub:
    return OptimizerStub()


@pytest.fixture
def optimizer_client(optimizer_stub) -> OptimizerClient:
    return OptimizerClient(OPTIMIZER_URL, transport=optimizer_stub.transport())


@pytest.fixture
def log_records() -> Generator[List[Dict[str, Any]], None, None]:
    """Capture Loguru records emitted during the test."""
    records: List[Dict[str, Any]] = []
    sink_id = logger.add(lambda msg: records.append(msg.record), level="DEBUG")
    yield records
    logger.remove(sink_id)
