"""Scan orchestration: walk, match and classify in a worker pool."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Set

from .allowlist import AllowlistEntry
from .classifier import classify
from .config import ScanConfig
from .errors import ConfigurationError, FileAccessError, PatternTimeoutError
from .matcher import match
from .policy import apply_visibility_filter, evaluate
from .result import Finding, ScanResult, SkippedFile, SkippedRule, Summary
from .rules import RuleRegistry, default_registry
from .walker import FileRef, walk

logger = logging.getLogger(__name__)


@dataclass
class _ScanSink:
    """Shared accumulator; workers append whole per-file batches under ``lock``."""

    findings: List[Finding] = field(default_factory=list)
    skipped_files: List[SkippedFile] = field(default_factory=list)
    skipped_rules: List[SkippedRule] = field(default_factory=list)
    suppressed: int = 0
    files_scanned: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def skip_file(self, path: str, reason: str, detail: str = "") -> None:
        with self.lock:
            self.skipped_files.append(SkippedFile(path=path, reason=reason, detail=detail))

    def record(self, findings: Sequence[Finding], suppressed: int, timeouts: Sequence[PatternTimeoutError]) -> None:
        rules = [SkippedRule(path=exc.path, rule_id=exc.rule_id, detail=str(exc)) for exc in timeouts]
        with self.lock:
            self.findings.extend(findings)
            self.skipped_rules.extend(rules)
            self.suppressed += suppressed
            self.files_scanned += 1


def run_scan(
    root: str | Path,
    config: Optional[ScanConfig] = None,
    *,
    registry: Optional[RuleRegistry] = None,
    allowlist: Sequence[AllowlistEntry] = (),
) -> ScanResult:
    """Scan ``root`` and return a fully evaluated ``ScanResult``.

    Files are read and classified by ``config.workers`` threads with at
    most twice that many files in flight. When ``config.deadline_seconds``
    runs out no further files are dispatched; the files already in flight
    complete and the result is marked partial.
    """

    config = config or ScanConfig()
    root_path = Path(root)
    if not root_path.exists():
        raise ConfigurationError(f"scan root does not exist: {root_path}")
    if not root_path.is_dir():
        raise ConfigurationError(f"scan root is not a directory: {root_path}")

    registry = registry if registry is not None else default_registry()
    rules = registry.all_rules()
    allowlist = tuple(allowlist)
    timestamp = datetime.now(timezone.utc).isoformat()
    started = time.monotonic()
    deadline = started + config.deadline_seconds if config.deadline_seconds is not None else None
    logger.info(
        "Scanning %s with %d rules, %d workers (environment=%s)",
        root_path,
        len(rules),
        config.workers,
        config.environment,
    )

    sink = _ScanSink()

    def scan_file(file_ref: FileRef) -> None:
        try:
            if file_ref.is_binary():
                logger.debug("Skipping binary file %s", file_ref.relative_path)
                return
            outcome = match(file_ref, rules, pattern_timeout=config.pattern_timeout_seconds)
        except FileAccessError as exc:
            logger.warning("Skipping unreadable file %s: %s", exc.path, exc.reason)
            sink.skip_file(exc.path, exc.reason, exc.detail)
            return
        classification = classify(outcome.matches, registry, allowlist, config.environment)
        sink.record(classification.findings, classification.suppressed_count, outcome.timed_out_rules)

    files_discovered = 0
    partial = False
    max_in_flight = max(1, config.workers * 2)
    candidates = walk(
        root_path,
        config.include_extensions,
        config.exclude_paths,
        skip_dirs=config.skip_dirs,
        max_file_size_bytes=config.max_file_size_bytes,
        on_skip=sink.skip_file,
    )
    with ThreadPoolExecutor(max_workers=config.workers, thread_name_prefix="secretguard") as pool:
        in_flight: Set[Future] = set()
        for file_ref in candidates:
            files_discovered += 1
            if deadline is not None and time.monotonic() >= deadline:
                partial = True
                logger.warning("Scan deadline of %.1fs reached; remaining files are not scanned", config.deadline_seconds)
                break
            if len(in_flight) >= max_in_flight:
                done, in_flight = wait(in_flight, return_when=FIRST_COMPLETED)
                _raise_failures(done)
            in_flight.add(pool.submit(scan_file, file_ref))
        done, _ = wait(in_flight)
        _raise_failures(done)

    visible, filtered = apply_visibility_filter(sink.findings, config.min_severity)
    visible.sort(key=lambda finding: (finding.sort_key, finding.column_start))
    duration_ms = int((time.monotonic() - started) * 1000)
    result = ScanResult(
        root_dir=str(root_path),
        timestamp=timestamp,
        findings=tuple(visible),
        summary=Summary.from_findings(visible),
        suppressed_count=sink.suppressed,
        filtered_count=filtered,
        partial=partial,
        files_discovered=files_discovered,
        files_scanned=sink.files_scanned,
        skipped_files=tuple(sorted(sink.skipped_files, key=lambda item: item.path)),
        skipped_rules=tuple(sorted(sink.skipped_rules, key=lambda item: (item.path, item.rule_id))),
        environment=config.environment,
        duration_ms=duration_ms,
    )
    blocked = evaluate(
        result,
        config.block_mode,
        config.min_severity,
        block_on_high=config.block_on_high,
        block_on_medium=config.block_on_medium,
    )
    logger.info(
        "Scanned %d/%d files in %dms: %d findings, %d suppressed, %d filtered",
        result.files_scanned,
        result.files_discovered,
        duration_ms,
        result.summary.total,
        result.suppressed_count,
        result.filtered_count,
    )
    return replace(result, should_block_deployment=blocked)


def _raise_failures(done: Set[Future]) -> None:
    for future in done:
        future.result()
