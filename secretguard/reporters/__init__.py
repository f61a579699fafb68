"""Report rendering and delivery."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, TextIO

from ..errors import ReportWriteError
from ..result import ScanResult
from .json_report import render_json
from .sarif import render_sarif
from .text import format_summary_table, render_text

logger = logging.getLogger(__name__)

RENDERERS: Dict[str, Callable[[ScanResult], str]] = {
    "text": render_text,
    "json": render_json,
    "sarif": render_sarif,
}
FORMATS = tuple(RENDERERS)


def render(result: ScanResult, fmt: str = "text") -> str:
    try:
        renderer = RENDERERS[fmt]
    except KeyError:
        raise ValueError(f"unknown report format {fmt!r}; expected one of {', '.join(FORMATS)}") from None
    return renderer(result)


def emit_report(text: str, output_path: Optional[str | Path], stream: Optional[TextIO]) -> Optional[Path]:
    """Write ``text`` to ``output_path`` or, failing that, to ``stream``.

    Returns the path written, or None when the report went to the stream.
    A file that cannot be written is logged and the report falls back to
    the stream; ``ReportWriteError`` is raised only when no sink works.
    """

    if output_path:
        target = Path(output_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text + "\n", encoding="utf-8")
            return target
        except OSError as exc:
            logger.error("Cannot write report to %s (%s); writing to stdout instead", target, exc)

    if stream is None:
        raise ReportWriteError("no output stream available for the report")
    try:
        stream.write(text + "\n")
        stream.flush()
    except (OSError, ValueError) as exc:
        raise ReportWriteError(f"cannot write report: {exc}") from exc
    return None


__all__ = [
    "FORMATS",
    "emit_report",
    "format_summary_table",
    "render",
    "render_json",
    "render_sarif",
    "render_text",
]
