"""Evaluation specs, results and workspaces."""

from .base import (
    AttemptRecord,
    EvaluationResult,
    EvaluationSpec,
    EvaluationStatus,
    FailReason,
)
from .manifest import load_manifest, select_evaluations
from .workspace import ProvisionError, Workspace, WorkspaceProvisioner

__all__ = [
    "AttemptRecord",
    "EvaluationResult",
    "EvaluationSpec",
    "EvaluationStatus",
    "FailReason",
    "ProvisionError",
    "Workspace",
    "WorkspaceProvisioner",
    "load_manifest",
    "select_evaluations",
]
