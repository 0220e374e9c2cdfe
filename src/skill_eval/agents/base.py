"""Abstract base class for coding-agent CLI backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from skill_eval.config import AgentConfig
from skill_eval.process import CancellationToken, CommandResult, run_command

# Pricing per million tokens (USD), used when the CLI reports tokens but no cost
PRICING = {
    "claude-sonnet-4-6": {
        "input": 3.0,
        "output": 15.0,
        "cache_write": 3.75,   # 1.25x input
        "cache_read": 0.30,    # 0.1x input
    },
    "claude-opus-4-6": {
        "input": 5.0,
        "output": 25.0,
        "cache_write": 6.25,
        "cache_read": 0.50,
    },
    "gpt-5-codex": {
        "input": 1.25,
        "output": 10.0,
        "cache_write": 1.25,
        "cache_read": 0.125,
    },
    "gpt-5-mini": {
        "input": 0.25,
        "output": 2.0,
        "cache_write": 0.25,
        "cache_read": 0.025,
    },
}

ERROR_TAG = "[agent error]"


@dataclass
class AgentResponse:
    """Transcript and usage counters from one agent session."""
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0
    cost_usd: float = 0.0
    model: str = ""
    exit_code: int = 0
    duration_seconds: float = 0.0
    error: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.error

    def priced_cost(self) -> float:
        """Cost from the pricing table; 0.0 for unknown models."""
        pricing = PRICING.get(self.model)
        if not pricing:
            return 0.0
        return (
            self.input_tokens * pricing["input"] / 1_000_000
            + self.output_tokens * pricing["output"] / 1_000_000
            + self.cache_creation_input_tokens * pricing["cache_write"] / 1_000_000
            + self.cache_read_input_tokens * pricing["cache_read"] / 1_000_000
        )


@dataclass(frozen=True)
class Credentials:
    """Environment handed to every agent process of one run."""
    env: dict[str, str] = field(default_factory=dict)
    source: str = ""


class AgentBackend(ABC):
    """Runs a single-turn, tool-using edit session scoped to one directory."""

    def __init__(
        self,
        config: AgentConfig,
        credentials: Credentials | None = None,
        grace_seconds: float = 10.0,
    ):
        self.config = config
        self.credentials = credentials or Credentials()
        self.grace_seconds = grace_seconds

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def executable(self) -> str:
        return self.config.executable or self.name

    @abstractmethod
    def build_command(self, prompt: str, workspace_dir: Path) -> list[str]:
        """Command line for one blocking agent session."""
        ...

    @abstractmethod
    def parse_output(self, output: str) -> AgentResponse:
        """Extract transcript text and usage counters from CLI output."""
        ...

    def invoke(
        self,
        workspace_dir: Path,
        prompt: str,
        token: CancellationToken | None = None,
    ) -> AgentResponse:
        """Run the agent. Never raises; failures come back error-tagged."""
        try:
            result = run_command(
                self.build_command(prompt, workspace_dir),
                cwd=workspace_dir,
                timeout=self.config.timeout_seconds,
                env=self.credentials.env,
                token=token,
                grace_seconds=self.grace_seconds,
            )
        except Exception as e:
            return _error_response(f"{self.name} invocation failed: {e}")

        if result.cancelled:
            return _error_response("agent cancelled at evaluation deadline", result)
        if result.timed_out:
            return _error_response(
                f"agent timed out after {self.config.timeout_seconds}s", result,
            )

        try:
            response = self.parse_output(result.output)
        except Exception as e:
            response = AgentResponse(text=result.output, error=f"unparseable output: {e}")

        response.exit_code = result.returncode
        response.duration_seconds = result.duration_seconds
        if result.returncode != 0 and not response.error:
            response.error = f"exit code {result.returncode}"
        if response.error:
            response.text = f"{ERROR_TAG} {response.error}\n{response.text}"
        return response


def _error_response(message: str, result: CommandResult | None = None) -> AgentResponse:
    output = result.output if result else ""
    return AgentResponse(
        text=f"{ERROR_TAG} {message}\n{output}".rstrip("\n"),
        exit_code=result.returncode if result else -1,
        duration_seconds=result.duration_seconds if result else 0.0,
        error=message,
    )
