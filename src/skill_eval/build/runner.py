"""Build runner: compile the workspace and classify the outcome."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from skill_eval.config import BuildConfig
from skill_eval.process import CancellationToken, run_command

from .diagnostics import extract_error_summary


@dataclass
class BuildOutcome:
    success: bool
    output: str
    diagnostic: str = ""
    exit_code: int = 0
    duration_seconds: float = 0.0
    timed_out: bool = False


class BuildRunner:
    """Runs the configured build command. Safe to call repeatedly on one workspace."""

    def __init__(self, config: BuildConfig, grace_seconds: float = 10.0):
        self.config = config
        self.grace_seconds = grace_seconds

    def build(self, workspace_dir: Path, token: CancellationToken | None = None) -> BuildOutcome:
        result = run_command(
            self.config.command,
            cwd=workspace_dir,
            timeout=self.config.timeout_seconds,
            token=token,
            grace_seconds=self.grace_seconds,
        )

        if result.success:
            return BuildOutcome(
                success=True,
                output=result.output,
                exit_code=0,
                duration_seconds=result.duration_seconds,
            )

        if result.timed_out:
            diagnostic = f"Build timed out after {self.config.timeout_seconds}s"
        elif result.cancelled:
            diagnostic = "Build cancelled at evaluation deadline"
        else:
            diagnostic = extract_error_summary(result.output) or f"exit code {result.returncode}"

        return BuildOutcome(
            success=False,
            output=result.output,
            diagnostic=diagnostic,
            exit_code=result.returncode,
            duration_seconds=result.duration_seconds,
            timed_out=result.timed_out,
        )
