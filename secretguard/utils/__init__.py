"""Utility helpers for the scanner."""

from .fileio import read_structured_file
from .logs import setup_logging

__all__ = [
    "read_structured_file",
    "setup_logging",
]
