"""Paths relative to the directory of the running program."""

from __future__ import annotations

import functools
import os
import sys


def exe_dir() -> str:
    """Return the directory holding the running program."""
    if getattr(sys, "frozen", False) or not sys.argv or not sys.argv[0]:
        program = sys.executable
    else:
        program = sys.argv[0]
    return os.path.dirname(os.path.abspath(program))


@functools.lru_cache(maxsize=None)
def _cached_exe_dir() -> str:
    return exe_dir()


def data_path(suffix: str) -> str:
    """Join ``suffix`` onto the program's directory (looked up once)."""
    return _cached_exe_dir() + "/" + suffix