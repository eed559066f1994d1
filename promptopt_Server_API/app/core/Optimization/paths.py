# paths.py
# Description: Locations of the optimization data files under the data directory.
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from promptopt_Server_API.app.core.config import settings


SAMPLES_FILENAME = "samples.json"
PROMPT_FILENAME = "prompt.md"
STATUS_FILENAME = "opt-status.json"
COMPLETE_OPTIMIZATION_FILENAME = "complete-optimization.json"
VERSIONS_DIRNAME = "versions"


@dataclass(frozen=True)
class OptimizationPaths:
    data_dir: Path

    @classmethod
    def from_settings(cls, data_dir: Optional[Union[str, Path]] = None) -> "OptimizationPaths":
        base = data_dir if data_dir is not None else settings.get("OPTIMIZATION_DATA_DIR")
        return cls(data_dir=Path(base) if base else Path.cwd() / "data")

    @property
    def samples(self) -> Path:
        return self.data_dir / SAMPLES_FILENAME

    @property
    def prompt(self) -> Path:
        return self.data_dir / PROMPT_FILENAME

    @property
    def status(self) -> Path:
        return self.data_dir / STATUS_FILENAME

    @property
    def complete_optimization(self) -> Path:
        return self.data_dir / COMPLETE_OPTIMIZATION_FILENAME

    @property
    def versions_dir(self) -> Path:
        return self.data_dir / VERSIONS_DIRNAME

    def ensure_data_dir(self) -> Path:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.data_dir
