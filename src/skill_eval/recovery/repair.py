"""Build-and-repair loop: feed build failures back to the agent."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from skill_eval.evaluation.base import AttemptRecord

if TYPE_CHECKING:
    from skill_eval.agents.base import AgentBackend, AgentResponse
    from skill_eval.build.runner import BuildOutcome, BuildRunner
    from skill_eval.context import EvaluationContext
    from skill_eval.process import CancellationToken


class LoopState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def build_repair_prompt(build_output: str, workspace_dir: Path, tail_lines: int = 50) -> str:
    tail = "\n".join(build_output.rstrip("\n").splitlines()[-tail_lines:])
    return (
        f"Build failed. Fix it:\n"
        f"```\n{tail}\n```\n"
        f"Work ONLY in {workspace_dir}."
    )


class RepairLoop:
    """Attempting(n) -> Succeeded | Attempting(n+1) | Exhausted.

    Edits are never rolled back between attempts; each repair builds on the
    previous file state. Only build failures trigger a repair.
    """

    def __init__(
        self,
        build_runner: BuildRunner,
        backend: AgentBackend,
        max_retries: int = 3,
        tail_lines: int = 50,
        on_attempt: Callable[[AttemptRecord, BuildOutcome], None] | None = None,
        on_repair: Callable[[int, AgentResponse], None] | None = None,
    ):
        self.build_runner = build_runner
        self.backend = backend
        self.max_retries = max(1, max_retries)
        self.tail_lines = tail_lines
        self.on_attempt = on_attempt
        self.on_repair = on_repair

    def run(self, context: EvaluationContext, workspace_dir: Path, token: CancellationToken | None = None) -> LoopState:
        attempt = 1
        state = LoopState.ATTEMPTING
        while state == LoopState.ATTEMPTING:
            if token is not None:
                token.raise_if_cancelled()

            outcome = self.build_runner.build(workspace_dir, token)
            context.build_output = outcome.output
            record = AttemptRecord(index=attempt, success=outcome.success, diagnostic=outcome.diagnostic)
            context.attempts.append(record)
            if self.on_attempt:
                self.on_attempt(record, outcome)

            if outcome.success:
                state = LoopState.SUCCEEDED
            elif attempt >= self.max_retries:
                state = LoopState.EXHAUSTED
            else:
                if token is not None:
                    token.raise_if_cancelled()
                prompt = build_repair_prompt(outcome.output, workspace_dir, self.tail_lines)
                response = self.backend.invoke(workspace_dir, prompt, token)
                context.record_agent_response(response)
                if self.on_repair:
                    self.on_repair(attempt + 1, response)
                attempt += 1
        return state
