"""Shared utility helpers for the attrition project."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from typing import Iterator

import numpy as np

LOGGER_NAME = "attrition"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure global logging once."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a namespaced logger anchored at LOGGER_NAME."""
    resolved_name = f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME
    return logging.getLogger(resolved_name)


def ensure_directory(path: str | Path) -> Path:
    """Create the directory if needed and return it as a Path."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def resolve_path(*parts: str | Path) -> Path:
    """Return a resolved path relative to the package directory."""
    return Path(__file__).resolve().parent.joinpath(*parts).resolve()


@lru_cache(maxsize=1)
def have_pyarrow() -> bool:
    """Return whether pyarrow is importable."""
    try:
        import pyarrow.csv  # noqa: F401
    except ImportError:
        return False
    return True


@contextmanager
def scoped_matrix(values) -> Iterator[np.ndarray]:
    """Yield a private float64 copy of ``values`` and free its storage on exit.

    The buffer is shrunk to zero elements when the block exits, whether it
    exits normally or through an exception, so callers must not keep
    references to it past the ``with`` statement.
    """
    buffer = np.array(values, dtype=np.float64, copy=True, order="C")
    try:
        yield buffer
    finally:
        buffer.resize(0, refcheck=False)
