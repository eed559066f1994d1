import pytest

from promptopt_Server_API.app.core.Optimization.archive import write_complete_optimization
from promptopt_Server_API.app.core.Optimization.models import OptimizationStatus
from promptopt_Server_API.app.core.Optimization.prompt_writer import write_prompt
from promptopt_Server_API.app.core.Optimization.status_store import StatusStore
from promptopt_Server_API.app.core.Optimization.status_summary import (
    build_status_response,
    success_rate,
    summarize_complete_optimization,
)


pytestmark = pytest.mark.optimization


RECORD = {
    "version": "2.0",
    "bestScore": 0.87,
    "instruction": "Be concise.",
    "demos": [{"a": 1}, {"b": 2}],
    "modelConfig": {"temperature": 0.7},
    "optimizerType": "GEPA",
    "optimizationTime": 4200,
    "totalRounds": 4,
    "converged": True,
    "stats": {"totalCalls": 40, "successfulDemos": 10},
    "result": {"optimizedProgram": {"examples": [1, 2, 3]}},
    "timestamp": "2025-06-01T10:20:30.456Z",
}


def test_idle_when_nothing_recorded(paths):
    assert build_status_response(paths) == {"status": "idle"}


@pytest.mark.parametrize(
    "status",
    [OptimizationStatus.running(job_id="j1"), OptimizationStatus.failed("Optimizer error 500: boom")],
)
def test_running_and_error_are_returned_verbatim(paths, status):
    StatusStore(paths).write(status)
    # a previous run's record must not mask the live status
    write_complete_optimization(paths, RECORD)
    assert build_status_response(paths) == status.to_document()


def test_completed_run_is_summarized(paths):
    StatusStore(paths).write(OptimizationStatus.completed())
    write_complete_optimization(paths, RECORD)
    write_prompt(paths, "Be concise.\n\nExamples:\n...")
    assert build_status_response(paths) == {
        "status": "completed",
        "bestScore": 0.87,
        "totalRounds": 4,
        "converged": True,
        "optimizerType": "GEPA",
        "optimizationTimeMs": 4200,
        "updatedAt": "2025-06-01T10:20:30.456Z",
        "instructionLength": len("Be concise.\n\nExamples:\n..."),
        "instruction": "Be concise.",
        "temperature": 0.7,
        "demosCount": 2,
        "totalCalls": 40,
        "successRate": "25.0%",
        "usedSamples": {"total": 3},
    }


def test_record_without_status_file_is_summarized(paths):
    write_complete_optimization(paths, RECORD)
    assert build_status_response(paths)["status"] == "completed"


def test_unreadable_record_reports_idle(paths, log_records):
    paths.ensure_data_dir()
    paths.complete_optimization.write_text("{broken", encoding="utf-8")
    assert build_status_response(paths) == {"status": "idle"}
    assert any("status_summary" in r["message"] for r in log_records)


def test_summary_falls_back_to_program_and_prompt():
    record = {"result": {"optimizedProgram": {"demos": [1]}}}
    summary = summarize_complete_optimization(record, "prompt text")
    assert summary["instruction"] == "prompt text"
    assert summary["demosCount"] == 1
    assert summary["instructionLength"] == len("prompt text")
    assert summary["successRate"] is None
    assert summary["usedSamples"] == {"total": 0}

    record = {"result": {"optimizedProgram": {"instruction": "from program"}}}
    assert summarize_complete_optimization(record, None)["instruction"] == "from program"


def test_success_rate():
    assert success_rate({"successfulDemos": 1, "totalCalls": 3}) == "33.3%"
    assert success_rate({"successfulDemos": 0, "totalCalls": 3}) is None
    assert success_rate({"totalCalls": 3}) is None
    assert success_rate({"successfulDemos": "x", "totalCalls": 2}) is None


def test_undecodable_status_falls_through_to_record(paths):
    paths.ensure_data_dir()
    paths.status.write_bytes(b'{"status": "\xff\xfe"}')
    write_complete_optimization(paths, RECORD)
    body = build_status_response(paths)
    assert body["status"] == "completed"
    assert body["bestScore"] == 0.87


def test_undecodable_prompt_still_reports_completed_run(paths):
    write_complete_optimization(paths, RECORD)
    paths.prompt.write_bytes(b"\xff\xfe not text")
    body = build_status_response(paths)
    assert body["status"] == "completed"
    assert body["instruction"] == "Be concise."
    assert body["instructionLength"] == 0
