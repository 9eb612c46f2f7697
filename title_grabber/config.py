"""Configuration objects and constants for the title grabber."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

DEFAULT_OUTPUT_PATH = Path("out.csv")
CONNECT_TIMEOUT = 10.0
READ_TIMEOUT = 15.0
MAX_REDIRECTS = 5
MAX_RETRIES = 3


def default_max_threads() -> int:
    """Number of logical processors, never less than one."""
    return os.cpu_count() or 1


@dataclass(frozen=True)
class GrabberConfig:
    """Settings that stay fixed for the duration of a run."""

    input_paths: Tuple[Path, ...] = ()
    output_path: Path = DEFAULT_OUTPUT_PATH
    connect_timeout: float = CONNECT_TIMEOUT
    read_timeout: float = READ_TIMEOUT
    max_redirects: int = MAX_REDIRECTS
    max_retries: int = MAX_RETRIES
    max_threads: int = field(default_factory=default_max_threads)
    debug: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_paths", tuple(Path(p) for p in self.input_paths))
        object.__setattr__(self, "output_path", Path(self.output_path))
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValueError("Timeouts must be positive")
        if self.max_redirects < 0:
            raise ValueError("max_redirects cannot be negative")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.max_threads < 1:
            raise ValueError("max_threads must be at least 1")
