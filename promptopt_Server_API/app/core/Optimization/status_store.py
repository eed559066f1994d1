# status_store.py
# Description: Persists the single optimization status document (opt-status.json).
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError

from promptopt_Server_API.app.core.Optimization.models import OptimizationStatus
from promptopt_Server_API.app.core.Optimization.paths import OptimizationPaths


def write_json_atomic(path: Path, text: str) -> None:
    """Write text next to ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class StatusStore:
    """Read/write access to the status document.

    There is exactly one document; each write replaces it.
    """

    def __init__(self, paths: OptimizationPaths):
        self.paths = paths

    @property
    def path(self) -> Path:
        return self.paths.status

    def read(self) -> Optional[OptimizationStatus]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"status_store: failed to read {self.path}: {e}")
            return None
        try:
            return OptimizationStatus.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"status_store: ignoring corrupt status file {self.path}: {e}")
            return None

    def write(self, status: OptimizationStatus) -> None:
        self.paths.ensure_data_dir()
        write_json_atomic(self.path, json.dumps(status.to_document(), indent=2, ensure_ascii=False))
        logger.debug(f"status_store: wrote status={status.status} job_id={status.job_id}")
