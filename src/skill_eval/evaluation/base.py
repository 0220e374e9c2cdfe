"""Evaluation data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EvaluationSpec(BaseModel):
    """A single manifest entry. Unknown keys are ignored."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = ""
    query: str
    schema_fragment: str | None = Field(default=None, alias="schema")
    verify_patterns: list[str] = Field(default_factory=list)
    negative_patterns: list[str] = Field(default_factory=list)
    setup_query: str | None = None


class EvaluationStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SETUP_FAILED = "setup_failed"
    AUTH_FAILED = "auth_failed"
    TIMEOUT = "timeout"
    ERROR = "error"


class FailReason(str, Enum):
    BUILD_FAILED = "build_failed"
    MISSING_PATTERNS = "missing_patterns"
    FORBIDDEN_PATTERNS = "forbidden_patterns"


@dataclass(frozen=True)
class AttemptRecord:
    index: int
    success: bool
    diagnostic: str = ""


@dataclass(frozen=True)
class EvaluationResult:
    """Final outcome of one evaluation. Built once, never mutated."""
    eval_id: str
    name: str
    status: EvaluationStatus
    skill_mode: str = ""
    backend: str = ""
    fail_reasons: list[str] = field(default_factory=list)
    attempts: list[AttemptRecord] = field(default_factory=list)
    patterns_found: list[str] = field(default_factory=list)
    patterns_missing: list[str] = field(default_factory=list)
    forbidden_found: list[str] = field(default_factory=list)
    agent_transcript: str = ""
    build_output: str = ""
    setup_seconds: float = 0.0
    agent_seconds: float = 0.0
    build_seconds: float = 0.0
    total_seconds: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    cost_usd: float = 0.0
    archived_workspace: str = ""
    error: str = ""

    @property
    def passed(self) -> bool:
        return self.status == EvaluationStatus.PASSED

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)

    @property
    def one_shot(self) -> bool:
        return self.passed and self.attempt_count == 1

    @property
    def retry_errors(self) -> list[str]:
        return [a.diagnostic for a in self.attempts if not a.success]

    @property
    def total_tokens(self) -> int:
        return (self.input_tokens + self.cache_creation_input_tokens
                + self.cache_read_input_tokens + self.output_tokens)

    @property
    def reason(self) -> str:
        """Short failure label for status lines."""
        if self.status == EvaluationStatus.FAILED:
            return ",".join(self.fail_reasons)
        return self.status.value.upper()

    @property
    def error_lines(self) -> list[str]:
        lines = [f"Attempt {a.index}: {a.diagnostic}" for a in self.attempts if not a.success]
        if self.patterns_missing:
            lines.append(f"Missing patterns: {', '.join(self.patterns_missing)}")
        if self.forbidden_found:
            lines.append(f"Forbidden patterns found: {', '.join(self.forbidden_found)}")
        if self.error:
            lines.append(self.error)
        return lines

    def to_dict(self, include_transcripts: bool = False) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["passed"] = self.passed
        data["attempt_count"] = self.attempt_count
        if not include_transcripts:
            data.pop("agent_transcript")
            data.pop("build_output")
        return data

    @classmethod
    def aborted(
        cls,
        spec: EvaluationSpec,
        status: EvaluationStatus,
        error: str,
        skill_mode: str = "",
        backend: str = "",
    ) -> EvaluationResult:
        """Result for an evaluation that never reached the build loop."""
        return cls(
            eval_id=spec.id,
            name=spec.name,
            status=status,
            skill_mode=skill_mode,
            backend=backend,
            error=error,
        )
