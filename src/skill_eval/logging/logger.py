"""Structured JSON-lines evaluation logger."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from skill_eval.build.diagnostics import classify_error

if TYPE_CHECKING:
    from skill_eval.agents.base import AgentResponse
    from skill_eval.build.runner import BuildOutcome
    from skill_eval.evaluation.base import EvaluationResult
    from skill_eval.verification.patterns import PatternCheck


class EvalLogger:
    """Logs evaluation events as structured JSON lines.

    Shared by every worker of a run; appends are serialized.
    """

    def __init__(self, run_id: str, output_dir: str = ".eval-outputs"):
        self.run_id = run_id
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = self.output_dir / f"{run_id}.jsonl"
        self._lock = threading.Lock()

    def _write_event(self, event: dict[str, Any]) -> None:
        event["run_id"] = self.run_id
        event["timestamp"] = time.time()
        line = json.dumps(event, default=str) + "\n"
        with self._lock:
            with open(self.log_path, "a") as f:
                f.write(line)

    def log_run_start(self, eval_id: str, config: dict[str, Any]) -> None:
        self._write_event({
            "event": "run_start",
            "eval_id": eval_id,
            "config": config,
        })

    def log_provision(self, eval_id: str, workspace: str, duration_seconds: float, error: str = "") -> None:
        self._write_event({
            "event": "provision",
            "eval_id": eval_id,
            "workspace": workspace,
            "duration_seconds": round(duration_seconds, 3),
            "error": error,
        })

    def log_agent_call(self, eval_id: str, phase: str, response: AgentResponse) -> None:
        self._write_event({
            "event": "agent_call",
            "eval_id": eval_id,
            "phase": phase,
            "input_tokens": response.input_tokens,
            "output_tokens": response.output_tokens,
            "cache_creation_input_tokens": response.cache_creation_input_tokens,
            "cache_read_input_tokens": response.cache_read_input_tokens,
            "cost_usd": round(response.cost_usd, 6),
            "exit_code": response.exit_code,
            "duration_seconds": round(response.duration_seconds, 3),
            "error": response.error,
        })

    def log_build_attempt(self, eval_id: str, attempt: int, outcome: BuildOutcome) -> None:
        self._write_event({
            "event": "build_attempt",
            "eval_id": eval_id,
            "attempt": attempt,
            "success": outcome.success,
            "diagnostic": outcome.diagnostic,
            "error_class": "" if outcome.success else classify_error(outcome.output),
            "exit_code": outcome.exit_code,
            "duration_seconds": round(outcome.duration_seconds, 3),
        })

    def log_repair(self, eval_id: str, attempt: int) -> None:
        self._write_event({
            "event": "repair",
            "eval_id": eval_id,
            "attempt": attempt,
        })

    def log_verification(self, eval_id: str, check: PatternCheck) -> None:
        self._write_event({
            "event": "verification",
            "eval_id": eval_id,
            "passed": check.passed,
            "missing": check.missing,
            "forbidden_found": check.forbidden_found,
        })

    def log_run_end(self, eval_id: str, result: EvaluationResult) -> None:
        self._write_event({
            "event": "run_end",
            "eval_id": eval_id,
            "result": result.to_dict(),
        })
