from pathlib import Path

import pytest

from promptopt_Server_API.app.core import config as config_mod
from promptopt_Server_API.app.core.config import clear_config_cache, load_settings, settings
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths


ENV_KEYS = (
    "OPTIMIZER_ENDPOINT",
    "OPTIMIZATION_DATA_DIR",
    "OPTIMIZER_TIMEOUT_SEC",
    "OPTIMIZER_HEALTH_TIMEOUT_SEC",
    "DEFAULT_MAX_METRIC_CALLS",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    clear_config_cache()
    yield monkeypatch
    clear_config_cache()


def test_defaults_from_config_file(clean_env, tmp_path):
    clean_env.chdir(tmp_path)
    s = load_settings()
    assert s["OPTIMIZER_ENDPOINT"] == "http://localhost:8000"
    assert s["OPTIMIZATION_DATA_DIR"] == tmp_path / "data"
    assert s["OPTIMIZER_TIMEOUT_SEC"] is None
    assert s["OPTIMIZER_HEALTH_TIMEOUT_SEC"] == 10.0
    assert s["DEFAULT_MAX_METRIC_CALLS"] == 50
    assert s["LOG_LEVEL"] == "INFO"


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("OPTIMIZER_ENDPOINT", "http://gepa:9000")
    clean_env.setenv("OPTIMIZATION_DATA_DIR", str(tmp_path / "store"))
    clean_env.setenv("OPTIMIZER_TIMEOUT_SEC", "300")
    clean_env.setenv("OPTIMIZER_HEALTH_TIMEOUT_SEC", "2.5")
    clean_env.setenv("DEFAULT_MAX_METRIC_CALLS", "80")
    clean_env.setenv("LOG_LEVEL", "debug")
    s = load_settings()
    assert s["OPTIMIZER_ENDPOINT"] == "http://gepa:9000"
    assert s["OPTIMIZATION_DATA_DIR"] == tmp_path / "store"
    assert s["OPTIMIZER_TIMEOUT_SEC"] == 300.0
    assert s["OPTIMIZER_HEALTH_TIMEOUT_SEC"] == 2.5
    assert s["DEFAULT_MAX_METRIC_CALLS"] == 80
    assert s["LOG_LEVEL"] == "DEBUG"


def test_relative_data_dir_resolves_against_cwd(clean_env, tmp_path):
    clean_env.chdir(tmp_path)
    clean_env.setenv("OPTIMIZATION_DATA_DIR", "runs/opt")
    assert load_settings()["OPTIMIZATION_DATA_DIR"] == tmp_path / "runs" / "opt"


def test_invalid_numbers_fall_back_to_defaults(clean_env):
    clean_env.setenv("OPTIMIZER_TIMEOUT_SEC", "soon")
    clean_env.setenv("DEFAULT_MAX_METRIC_CALLS", "many")
    s = load_settings()
    assert s["OPTIMIZER_TIMEOUT_SEC"] is None
    assert s["DEFAULT_MAX_METRIC_CALLS"] == 50


def test_missing_config_file_uses_defaults(clean_env, tmp_path):
    clean_env.setattr(config_mod, "_project_root", lambda: tmp_path)
    clear_config_cache()
    assert load_settings()["OPTIMIZER_HEALTH_TIMEOUT_SEC"] == 10.0


def test_lazy_settings_reload_after_cache_clear(clean_env, tmp_path):
    clean_env.setenv("OPTIMIZATION_DATA_DIR", str(tmp_path / "first"))
    clear_config_cache()
    assert OptimizationPaths.from_settings().data_dir == tmp_path / "first"

    clean_env.setenv("OPTIMIZATION_DATA_DIR", str(tmp_path / "second"))
    assert settings.get("OPTIMIZATION_DATA_DIR") == tmp_path / "first"
    clear_config_cache()
    assert settings.OPTIMIZATION_DATA_DIR == tmp_path / "second"
    assert OptimizationPaths.from_settings().samples == Path(tmp_path / "second" / "samples.json")
