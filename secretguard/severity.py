"""Severity and confidence definitions for scanner findings."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Enumerate the supported severity levels for findings."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Return an integer ranking; higher means more severe."""

        ordering = {
            Severity.CRITICAL: 4,
            Severity.HIGH: 3,
            Severity.MEDIUM: 2,
            Severity.LOW: 1,
            Severity.INFO: 0,
        }
        return ordering[self]

    def downgrade(self) -> "Severity":
        """Return the next lower level (``info`` stays ``info``)."""

        index = SEVERITY_ORDER.index(self)
        return SEVERITY_ORDER[min(index + 1, len(SEVERITY_ORDER) - 1)]

    def at_least(self, other: "Severity") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: object) -> "Severity":
        """Convert user input (any case) to a severity, raising ``ValueError``."""

        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().lower())


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_ORDER = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
)
