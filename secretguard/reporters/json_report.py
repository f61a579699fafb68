"""Machine-readable JSON report."""

from __future__ import annotations

import json

from ..result import ScanResult


def render_json(result: ScanResult) -> str:
    return json.dumps(result.to_dict(), indent=2)
