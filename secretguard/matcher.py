"""Apply rules to file content and produce raw regex hits."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence

from .errors import PatternTimeoutError
from .rules import Rule
from .walker import FileRef

logger = logging.getLogger(__name__)

DEFAULT_PATTERN_TIMEOUT = 2.0


@dataclass(frozen=True)
class RawMatch:
    """One regex hit. Line and column numbers are 1-based; ``column_end`` is exclusive."""

    rule_id: str
    file_path: str
    line_number: int
    column_start: int
    column_end: int
    matched_text: str
    context: str = ""
    end_line: Optional[int] = None
    unterminated: bool = False


@dataclass
class MatchOutcome:
    matches: List[RawMatch] = field(default_factory=list)
    timed_out_rules: List[PatternTimeoutError] = field(default_factory=list)


def split_lines(content: str) -> List[str]:
    """Split on ``\\n`` only so line numbers agree with editors and SARIF viewers."""

    return [line[:-1] if line.endswith("\r") else line for line in content.split("\n")]


def match(
    file_ref: FileRef,
    rules: Iterable[Rule],
    *,
    pattern_timeout: float = DEFAULT_PATTERN_TIMEOUT,
) -> MatchOutcome:
    """Run every rule against one file.

    Rules scoped by ``file_extensions`` to other file types are skipped.
    Rules are evaluated independently: a rule that exceeds its budget on
    this file loses only its own hits, which are replaced by an entry in
    ``timed_out_rules``.
    """

    lines = split_lines(file_ref.read())
    outcome = MatchOutcome()
    for rule in rules:
        if not rule.applies_to(file_ref.relative_path):
            continue
        try:
            if rule.is_block:
                hits = _match_blocks(rule, file_ref.relative_path, lines, pattern_timeout)
            else:
                hits = _match_lines(rule, file_ref.relative_path, lines, pattern_timeout)
        except PatternTimeoutError as exc:
            logger.warning("Abandoning rule %s on %s after %.2fs", rule.id, file_ref.relative_path, exc.budget)
            outcome.timed_out_rules.append(exc)
            continue
        outcome.matches.extend(hits)
    return outcome


class _Budget:
    """Wall-clock budget shared by every regex call of one (file, rule) pair."""

    def __init__(self, rule_id: str, path: str, seconds: float) -> None:
        self.rule_id = rule_id
        self.path = path
        self.seconds = seconds
        self.deadline = time.monotonic() + seconds

    def remaining(self) -> float:
        left = self.deadline - time.monotonic()
        if left <= 0:
            raise self.expired()
        return left

    def expired(self) -> PatternTimeoutError:
        return PatternTimeoutError(self.rule_id, self.path, self.seconds)


def _match_lines(rule: Rule, path: str, lines: Sequence[str], timeout: float) -> List[RawMatch]:
    budget = _Budget(rule.id, path, timeout)
    hits: List[RawMatch] = []
    try:
        for index, line in enumerate(lines, start=1):
            if not line:
                continue
            for found in rule.finditer(line, timeout=budget.remaining()):
                text = found.group(0)
                if not rule.accepts_length(len(text)):
                    continue
                hits.append(
                    RawMatch(
                        rule_id=rule.id,
                        file_path=path,
                        line_number=index,
                        column_start=found.start() + 1,
                        column_end=found.end() + 1,
                        matched_text=text,
                        context=line,
                    )
                )
    except TimeoutError as exc:
        raise budget.expired() from exc
    return hits


@dataclass
class _InsideKeyBlock:
    start_line: int
    column_start: int
    label: Optional[str]
    parts: List[str]


def _match_blocks(rule: Rule, path: str, lines: Sequence[str], timeout: float) -> List[RawMatch]:
    """Two-state scanner: ``Outside`` (state is None) or ``_InsideKeyBlock``.

    A BEGIN line opens a block and the next END with the same label closes
    it, on the same line or a later one. A block still open at EOF, or
    interrupted by another BEGIN, is emitted anchored at its BEGIN line and flagged ``unterminated``.
    """

    budget = _Budget(rule.id, path, timeout)
    hits: List[RawMatch] = []
    state: Optional[_InsideKeyBlock] = None

    def emit(block: _InsideKeyBlock, end_line: Optional[int] = None, end_column: Optional[int] = None) -> None:
        text = "\n".join(block.parts)
        unterminated = end_line is None
        # An unterminated block is always reported, whatever its length.
        if not unterminated and not rule.accepts_length(len(text)):
            return
        begin_line = lines[block.start_line - 1]
        hits.append(
            RawMatch(
                rule_id=rule.id,
                file_path=path,
                line_number=block.start_line,
                column_start=block.column_start,
                column_end=end_column if end_column is not None else len(begin_line) + 1,
                matched_text=text,
                context=begin_line,
                end_line=end_line if end_line is not None else block.start_line,
                unterminated=unterminated,
            )
        )

    def open_block(index: int, line: str, begin: Any) -> Optional[_InsideKeyBlock]:
        block = _open_block(index, line, begin)
        # Keys embedded as one escaped string (JSON "private_key") close on the BEGIN line.
        rest = line[begin.end():]
        end = rule.search_end(rest, timeout=budget.remaining()) if rest else None
        if end is None or _label(end) != block.label:
            return block
        close = begin.end() + end.end()
        block.parts = [line[begin.start():close]]
        emit(block, end_line=index, end_column=close + 1)
        return None

    try:
        for index, line in enumerate(lines, start=1):
            begin = rule.search(line, timeout=budget.remaining()) if line else None
            if state is None:
                if begin is not None:
                    state = open_block(index, line, begin)
                continue

            if begin is not None:
                emit(state)
                state = open_block(index, line, begin)
                continue

            end = rule.search_end(line, timeout=budget.remaining()) if line else None
            if end is not None and _label(end) == state.label:
                state.parts.append(line[: end.end()])
                emit(state, end_line=index, end_column=end.end() + 1)
                state = None
            else:
                state.parts.append(line)
    except TimeoutError as exc:
        raise budget.expired() from exc

    if state is not None:
        emit(state)
    return hits


def _open_block(index: int, line: str, begin: Any) -> _InsideKeyBlock:
    return _InsideKeyBlock(
        start_line=index,
        column_start=begin.start() + 1,
        label=_label(begin),
        parts=[line[begin.start():]],
    )


def _label(found: Any) -> Optional[str]:
    return found.groupdict().get("label")
