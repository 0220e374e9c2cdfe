"""Mutable state for one evaluation run."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from skill_eval.agents.base import AgentResponse
    from skill_eval.evaluation.base import AttemptRecord, EvaluationSpec
    from skill_eval.evaluation.workspace import Workspace
    from skill_eval.verification.patterns import PatternCheck


@dataclass
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    total_cost_usd: float = 0.0

    @property
    def total(self) -> int:
        return self.total_input_tokens + self.output_tokens

    @property
    def total_input_tokens(self) -> int:
        """Total input tokens including cached ones."""
        return self.input_tokens + self.cache_creation_input_tokens + self.cache_read_input_tokens

    def add(self, input_tokens: int, output_tokens: int,
            cache_creation_input_tokens: int = 0,
            cache_read_input_tokens: int = 0,
            cost_usd: float = 0.0) -> None:
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens
        self.cache_creation_input_tokens += cache_creation_input_tokens
        self.cache_read_input_tokens += cache_read_input_tokens
        self.total_cost_usd += cost_usd


@dataclass
class PhaseTimings:
    setup: float = 0.0
    agent: float = 0.0
    build: float = 0.0
    total: float = 0.0


@dataclass
class EvaluationContext:
    """Everything one evaluation accumulates before its result is built."""
    spec: EvaluationSpec
    workspace: Workspace | None = None
    attempts: list[AttemptRecord] = field(default_factory=list)
    transcripts: list[str] = field(default_factory=list)
    build_output: str = ""
    check: PatternCheck | None = None
    token_usage: TokenUsage = field(default_factory=TokenUsage)
    timings: PhaseTimings = field(default_factory=PhaseTimings)
    start_time: float = field(default_factory=time.time)
    agent_calls: int = 0
    status: str = ""
    error: str = ""

    def record_agent_response(self, response: AgentResponse) -> None:
        self.agent_calls += 1
        self.transcripts.append(response.text)
        self.token_usage.add(
            response.input_tokens, response.output_tokens,
            cache_creation_input_tokens=response.cache_creation_input_tokens,
            cache_read_input_tokens=response.cache_read_input_tokens,
            cost_usd=response.cost_usd,
        )

    @property
    def build_succeeded(self) -> bool:
        return bool(self.attempts) and self.attempts[-1].success

    @property
    def elapsed_seconds(self) -> float:
        return time.time() - self.start_time
