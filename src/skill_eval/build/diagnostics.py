"""One-line diagnostics extracted from build output.

Signatures are checked in order over the whole output, so a more specific
compiler error anywhere in the log beats a generic ``error:`` line.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorSignature:
    label: str
    pattern: re.Pattern[str]
    strip: re.Pattern[str] | None = None  # prefix removed from the matching line

    def extract(self, lines: list[str]) -> str | None:
        for line in lines:
            if self.pattern.search(line):
                summary = self.strip.sub("", line, count=1) if self.strip else line
                return summary.strip() or line.strip()
        return None


ERROR_SIGNATURES: list[ErrorSignature] = [
    ErrorSignature("unresolved_reference", re.compile(r"Unresolved reference"), re.compile(r".*: ")),
    ErrorSignature("cannot_find_symbol", re.compile(r"cannot find symbol")),
    ErrorSignature("not_found", re.compile(r"[Nn]ot found"), re.compile(r".*: ")),
    ErrorSignature("expected", re.compile(r"expected")),
    ErrorSignature("error", re.compile(r"error:"), re.compile(r".*error: ")),
]


def extract_error_summary(output: str, signatures: list[ErrorSignature] | None = None) -> str:
    """First match among ``signatures``; otherwise the last non-empty line."""
    lines = output.splitlines()
    for signature in signatures if signatures is not None else ERROR_SIGNATURES:
        summary = signature.extract(lines)
        if summary:
            return summary
    for line in reversed(lines):
        if line.strip():
            return line.strip()
    return ""


def classify_error(output: str, signatures: list[ErrorSignature] | None = None) -> str:
    """Label of the first matching signature, or ``unknown``."""
    lines = output.splitlines()
    for signature in signatures if signatures is not None else ERROR_SIGNATURES:
        if signature.extract(lines) is not None:
            return signature.label
    return "unknown"
