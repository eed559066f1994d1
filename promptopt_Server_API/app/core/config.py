# config.py
# Description: Configuration settings for the prompt optimization server.
#
# Imports
import configparser
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional, Dict, Any
from collections.abc import MutableMapping
#
# 3rd-party Libraries
from dotenv import load_dotenv
from loguru import logger

# Guard logging during module import so Loguru does not emit records before
# the sinks are configured in main. Messages emitted before `_LOGGER_READY`
# flips to True are buffered and flushed once initialization completes.
_LOGGER_READY = False
_STARTUP_LOG_BUFFER: list[tuple[str, str, dict[str, Any]]] = []


def _buffered_log(level: str, message: str, **kwargs: Any) -> None:
    if _LOGGER_READY:
        logger.log(level, message, **kwargs)
    else:
        _STARTUP_LOG_BUFFER.append((level, message, kwargs))


def _log_info(message: str, **kwargs: Any) -> None:
    _buffered_log("INFO", message, **kwargs)


def _log_warning(message: str, **kwargs: Any) -> None:
    _buffered_log("WARNING", message, **kwargs)


def _log_debug(message: str, **kwargs: Any) -> None:
    _buffered_log("DEBUG", message, **kwargs)


def _flush_startup_logs() -> None:
    global _STARTUP_LOG_BUFFER
    for level, message, kwargs in _STARTUP_LOG_BUFFER:
        logger.log(level, message, **kwargs)
    _STARTUP_LOG_BUFFER = []


def _project_root() -> Path:
    # __file__ is .../promptopt_Server_API/app/core/config.py
    return Path(__file__).resolve().parent.parent.parent


def _load_env_files_early() -> None:
    """Load .env files before any environment reads.

    Keeping override=False ensures explicit environment variables are not replaced.
    """
    if str(os.getenv("TEST_MODE", "")).lower() in {"1", "true", "yes", "on"}:
        return
    project_root = _project_root()
    candidate_env_paths = [
        project_root / '.env',
        project_root / '.ENV',
        project_root / 'Config_Files' / '.env',
        project_root / 'Config_Files' / '.ENV',
    ]
    loaded_any = False
    for p in candidate_env_paths:
        try:
            if p.exists():
                _log_info(f"Loading environment variables from: {str(p)}")
                load_dotenv(dotenv_path=str(p), override=False)
                loaded_any = True
        except Exception as e:
            _log_debug(f"Skipping env file {p}: {e}")
    if not loaded_any:
        _log_debug("No .env file found; relying on process env")

#
########################################################################################################################
#
# Functions:

# --- Defaults ---
DEFAULT_OPTIMIZER_ENDPOINT = "http://localhost:8000"
DEFAULT_MAX_METRIC_CALLS = 50
DEFAULT_HEALTH_TIMEOUT_SEC = 10.0
DEFAULT_LOG_LEVEL = "INFO"


@lru_cache(maxsize=1)
def load_comprehensive_config() -> configparser.ConfigParser:
    """Parse Config_Files/config.txt.

    A missing file is not fatal: every setting has a default and an env override.
    """
    config_path_obj = _project_root() / 'Config_Files' / 'config.txt'
    config_parser = configparser.ConfigParser()
    if not config_path_obj.exists():
        _log_warning(f"Config file not found at {str(config_path_obj)}; using defaults and env")
        return config_parser
    try:
        config_parser.read(config_path_obj)
    except configparser.Error as e:
        _log_warning(f"Error parsing config file {str(config_path_obj)}: {e}")
        return configparser.ConfigParser()
    _log_debug(f"load_comprehensive_config(): Sections found in config: {config_parser.sections()}")
    return config_parser


def _as_float(val: Optional[str], default: Optional[float]) -> Optional[float]:
    if val is None or not str(val).strip():
        return default
    try:
        return float(str(val).strip())
    except (TypeError, ValueError):
        _log_warning(f"Invalid numeric setting {val!r}; using default {default}")
        return default


def _as_int(val: Optional[str], default: int) -> int:
    if val is None or not str(val).strip():
        return default
    try:
        return int(str(val).strip())
    except (TypeError, ValueError):
        _log_warning(f"Invalid integer setting {val!r}; using default {default}")
        return default


def load_settings() -> Dict[str, Any]:
    """
    Assemble runtime settings from environment variables and Config_Files/config.txt.

    Environment variables win over the config file, which wins over built-in defaults.

    Returns:
        dict: OPTIMIZER_ENDPOINT, OPTIMIZATION_DATA_DIR, OPTIMIZER_TIMEOUT_SEC,
        OPTIMIZER_HEALTH_TIMEOUT_SEC, DEFAULT_MAX_METRIC_CALLS, LOG_LEVEL and PROJECT_ROOT.
    """
    _load_env_files_early()
    cfg = load_comprehensive_config()

    def _section_get(section: str, key: str) -> Optional[str]:
        return cfg.get(section, key, fallback=None) if cfg.has_section(section) else None

    endpoint = (
        os.getenv("OPTIMIZER_ENDPOINT")
        or _section_get('Optimization', 'optimizer_endpoint')
        or DEFAULT_OPTIMIZER_ENDPOINT
    )

    data_dir_raw = os.getenv("OPTIMIZATION_DATA_DIR") or _section_get('Optimization', 'data_dir')
    # Relative paths resolve against the working directory, like the default.
    data_dir = Path(data_dir_raw) if data_dir_raw else Path.cwd() / "data"
    if not data_dir.is_absolute():
        data_dir = Path.cwd() / data_dir

    optimizer_timeout = _as_float(
        os.getenv("OPTIMIZER_TIMEOUT_SEC") or _section_get('Optimization', 'optimizer_timeout_sec'),
        None,
    )
    health_timeout = _as_float(
        os.getenv("OPTIMIZER_HEALTH_TIMEOUT_SEC") or _section_get('Optimization', 'health_timeout_sec'),
        DEFAULT_HEALTH_TIMEOUT_SEC,
    )
    max_metric_calls = _as_int(
        os.getenv("DEFAULT_MAX_METRIC_CALLS") or _section_get('Optimization', 'default_max_metric_calls'),
        DEFAULT_MAX_METRIC_CALLS,
    )
    log_level = (
        os.getenv("LOG_LEVEL")
        or _section_get('Logging', 'log_level')
        or DEFAULT_LOG_LEVEL
    ).upper()

    _log_info(f"Optimizer endpoint: {endpoint}; data dir: {data_dir}")
    return {
        "PROJECT_ROOT": _project_root(),
        "OPTIMIZER_ENDPOINT": endpoint,
        "OPTIMIZATION_DATA_DIR": data_dir,
        "OPTIMIZER_TIMEOUT_SEC": optimizer_timeout,
        "OPTIMIZER_HEALTH_TIMEOUT_SEC": health_timeout,
        "DEFAULT_MAX_METRIC_CALLS": max_metric_calls,
        "LOG_LEVEL": log_level,
    }


# --- Lazy Configuration Proxies ---

class _LazyMapping(MutableMapping[str, Any]):
    """MutableMapping proxy that materializes its data on first access."""

    __slots__ = ("_loader", "_data")

    def __init__(self, loader):
        object.__setattr__(self, "_loader", loader)
        object.__setattr__(self, "_data", None)

    def _ensure(self):
        if object.__getattribute__(self, "_data") is None:
            loader = object.__getattribute__(self, "_loader")
            data = loader()
            if data is None:
                data = {}
            object.__setattr__(self, "_data", data)

    def __getitem__(self, key):
        self._ensure()
        return object.__getattribute__(self, "_data")[key]

    def __setitem__(self, key, value):
        self._ensure()
        object.__getattribute__(self, "_data")[key] = value

    def __delitem__(self, key):
        self._ensure()
        del object.__getattribute__(self, "_data")[key]

    def __iter__(self):
        self._ensure()
        return iter(object.__getattribute__(self, "_data"))

    def __len__(self):
        self._ensure()
        return len(object.__getattribute__(self, "_data"))

    def get(self, key, default=None):
        self._ensure()
        return object.__getattribute__(self, "_data").get(key, default)

    def __contains__(self, item):
        self._ensure()
        return item in object.__getattribute__(self, "_data")


class LazySettings(_LazyMapping):
    """Lazy settings mapping that also supports attribute-style access."""

    def __getattr__(self, name):
        if name in {"_loader", "_data"}:
            return object.__getattribute__(self, name)
        self._ensure()
        data = object.__getattribute__(self, "_data")
        try:
            return data[name]
        except KeyError as exc:
            raise AttributeError(name) from exc


settings = LazySettings(load_settings)

_LOGGER_READY = True
_flush_startup_logs()


def clear_config_cache() -> None:
    """Clear cached configuration loaders (for tests or dynamic reloads)."""
    load_comprehensive_config.cache_clear()
    object.__setattr__(settings, "_data", None)
#
# End of config.py
#######################################################################################################################
