"""Evaluation manifest loading and selection."""

from __future__ import annotations

import json
from pathlib import Path

from .base import EvaluationSpec


def load_manifest(path: str | Path) -> list[EvaluationSpec]:
    """Load the ordered list of evaluations from a JSON manifest.

    The manifest is a JSON array of objects with ``id``, ``name``, ``query``
    and optionally ``schema``, ``verify_patterns``, ``negative_patterns`` and
    ``setup_query``.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"Manifest must be a JSON array: {path}")

    specs = [EvaluationSpec(**row) for row in data]
    seen: set[str] = set()
    for spec in specs:
        if spec.id in seen:
            raise ValueError(f"Duplicate evaluation id in manifest: {spec.id}")
        seen.add(spec.id)
    return specs


def select_evaluations(specs: list[EvaluationSpec], name_filter: str | None = None) -> list[EvaluationSpec]:
    """Keep evaluations whose id or name contains ``name_filter``."""
    if not name_filter:
        return list(specs)
    return [s for s in specs if name_filter in s.id or name_filter in s.name]
