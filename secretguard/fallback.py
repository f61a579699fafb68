"""Coarse grep-based scan for environments where the full engine cannot run.

Uses ripgrep when it is on PATH and ``grep -E`` otherwise. The pattern set
is small, there are no severities and no allowlist, and the report lists
locations only: matched line content is never captured into the output.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from shutil import which
from typing import List, Optional, Sequence, Tuple

from .errors import ConfigurationError
from .walker import DEFAULT_SKIP_DIRS

logger = logging.getLogger(__name__)

# (label, POSIX ERE, ignore case)
FALLBACK_PATTERNS: Tuple[Tuple[str, str, bool], ...] = (
    ("AWS access key", r"AKIA[0-9A-Z]{16}", False),
    ("Private key block", r"-----BEGIN [A-Z ]*PRIVATE KEY( BLOCK)?-----", False),
    ("GitHub token", r"gh[pousr]_[A-Za-z0-9]{36}", False),
    ("Slack token", r"xox[baprs]-[0-9A-Za-z-]{10,}", False),
    ("Stripe key", r"[rs]k_(live|test)_[0-9A-Za-z]{24,}", False),
    ("Google API key", r"AIza[0-9A-Za-z_-]{35}", False),
    ("Hardcoded password", r"password['\"]?[[:space:]]*[:=][[:space:]]*['\"][^'\"[:space:]]{8,}['\"]", True),
)

_GREP_LOCATION = re.compile(r"^(?P<path>.+?):(?P<line>\d+):")


@dataclass(frozen=True)
class FallbackHit:
    path: str
    line: int
    label: str


def detect_tool() -> Optional[str]:
    for tool in ("rg", "grep"):
        if which(tool):
            return tool
    return None


def run_fallback_scan(
    root: str | Path,
    patterns: Sequence[Tuple[str, str, bool]] = FALLBACK_PATTERNS,
    *,
    tool: Optional[str] = None,
    timeout: Optional[float] = None,
) -> List[FallbackHit]:
    """Search ``root`` with an external tool and return sorted hit locations."""

    root_path = Path(root)
    if not root_path.is_dir():
        raise ConfigurationError(f"scan root is not a directory: {root_path}")
    tool = tool or detect_tool()
    if tool is None:
        raise ConfigurationError("fallback scan needs ripgrep (rg) or grep on PATH")

    logger.info("Running fallback scan of %s with %s", root_path, tool)
    hits = set()
    for label, pattern, ignore_case in patterns:
        if tool == "rg":
            found = _run_ripgrep(root_path, label, pattern, ignore_case, timeout)
        else:
            found = _run_grep(root_path, label, pattern, ignore_case, timeout)
        hits.update(found)
    return sorted(hits, key=lambda hit: (hit.path, hit.line, hit.label))


def _run_ripgrep(root: Path, label: str, pattern: str, ignore_case: bool, timeout: Optional[float]) -> List[FallbackHit]:
    cmd = ["rg", "--json", "--line-number", "--color", "never", "--hidden", "--no-ignore"]
    for name in DEFAULT_SKIP_DIRS:
        cmd.extend(["--glob", f"!{name}/"])
    if ignore_case:
        cmd.append("-i")
    cmd.extend(["-e", pattern, "."])
    stdout = _run(cmd, root, timeout)

    hits: List[FallbackHit] = []
    for line in stdout.splitlines():
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            continue
        if payload.get("type") != "match":
            continue
        data = payload.get("data", {})
        path = data.get("path", {}).get("text")
        line_number = data.get("line_number")
        if not path or not isinstance(line_number, int):
            continue
        hits.append(FallbackHit(path=_normalize(path), line=line_number, label=label))
    return hits


def _run_grep(root: Path, label: str, pattern: str, ignore_case: bool, timeout: Optional[float]) -> List[FallbackHit]:
    cmd = ["grep", "-r", "-n", "-I", "-E"]
    for name in DEFAULT_SKIP_DIRS:
        cmd.append(f"--exclude-dir={name}")
    if ignore_case:
        cmd.append("-i")
    cmd.extend(["-e", pattern, "."])
    stdout = _run(cmd, root, timeout)

    hits: List[FallbackHit] = []
    for line in stdout.splitlines():
        location = _GREP_LOCATION.match(line)
        if location is None:
            continue
        hits.append(FallbackHit(path=_normalize(location.group("path")), line=int(location.group("line")), label=label))
    return hits


def _run(cmd: List[str], cwd: Path, timeout: Optional[float]) -> str:
    try:
        process = subprocess.run(cmd, cwd=cwd, text=True, capture_output=True, errors="replace", timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise ConfigurationError(f"fallback scan timed out after {timeout}s") from exc
    except OSError as exc:
        raise ConfigurationError(f"cannot run {cmd[0]}: {exc}") from exc
    # 0 = matches, 1 = no matches; anything else is a tool error.
    if process.returncode not in {0, 1}:
        logger.warning("%s exited with %d: %s", cmd[0], process.returncode, process.stderr.strip()[:200])
    return process.stdout


def _normalize(path: str) -> str:
    return path[2:] if path.startswith("./") else path


def format_fallback_report(hits: Sequence[FallbackHit]) -> str:
    lines: List[str] = []
    lines.append("Fallback Secret Scan")
    lines.append("=" * 40)
    lines.append("Coarse pattern scan: no severities, no allowlist, content not shown.")
    lines.append("")
    if not hits:
        lines.append("No potential secrets found.")
        return "\n".join(lines)
    for hit in hits:
        lines.append(f"{hit.path}:{hit.line}: {hit.label}")
    lines.append("")
    lines.append(f"Potential secrets: {len(hits)}")
    return "\n".join(lines)
