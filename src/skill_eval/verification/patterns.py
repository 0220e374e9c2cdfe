"""Required / forbidden regex patterns over generated source."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class PatternCheck:
    """Result of a pattern scan."""
    found: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    forbidden_found: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.missing and not self.forbidden_found

    @property
    def message(self) -> str:
        parts = []
        if self.missing:
            parts.append(f"Missing patterns: {', '.join(self.missing)}")
        if self.forbidden_found:
            parts.append(f"Forbidden patterns found: {', '.join(self.forbidden_found)}")
        return "; ".join(parts) or "All patterns satisfied"


class PatternVerifier:
    """Recursive regex search over every text file under a source root.

    Patterns are compiled with ``re.MULTILINE`` so ``^`` and ``$`` anchor on
    lines, as with ``grep -E``. Read-only: the same tree always yields the
    same check.
    """

    def verify(self, source_dir: Path, required: list[str], forbidden: list[str]) -> PatternCheck:
        texts = list(_read_sources(source_dir))
        check = PatternCheck()

        for pattern in required:
            if not pattern:
                continue
            if _matches_any(pattern, texts):
                check.found.append(pattern)
            else:
                check.missing.append(pattern)

        for pattern in forbidden:
            if pattern and _matches_any(pattern, texts):
                check.forbidden_found.append(pattern)

        return check


def _read_sources(source_dir: Path):
    if not source_dir.is_dir():
        return
    for path in sorted(source_dir.rglob("*")):
        if not path.is_file():
            continue
        try:
            yield path.read_text(encoding="utf-8", errors="ignore")
        except OSError:
            continue


def _matches_any(pattern: str, texts: list[str]) -> bool:
    regex = re.compile(pattern, re.MULTILINE)
    return any(regex.search(text) for text in texts)
