"""Claude Code CLI backend (rich agent, higher per-process cost)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .base import AgentBackend, AgentResponse


class ClaudeCodeBackend(AgentBackend):
    """``claude -p`` in print mode with a JSON result object.

    The result object carries the final text under ``result``, token counts
    under ``usage`` and the computed cost under ``total_cost_usd``.
    """

    @property
    def name(self) -> str:
        return "claude"

    def build_command(self, prompt: str, workspace_dir: Path) -> list[str]:
        cmd = [
            self.executable,
            "-p", prompt,
            "--dangerously-skip-permissions",
            "--no-session-persistence",
            "--output-format", "json",
        ]
        if self.config.model:
            cmd.extend(["--model", self.config.model])
        cmd.extend(self.config.extra_args)
        return cmd

    def parse_output(self, output: str) -> AgentResponse:
        payload = _last_json_object(output)
        if payload is None:
            return AgentResponse(text=output.strip())

        usage = payload.get("usage") or {}
        model = self.config.model or next(iter(payload.get("modelUsage") or {}), "")
        response = AgentResponse(
            text=str(payload.get("result") or ""),
            input_tokens=int(usage.get("input_tokens") or 0),
            output_tokens=int(usage.get("output_tokens") or 0),
            cache_creation_input_tokens=int(usage.get("cache_creation_input_tokens") or 0),
            cache_read_input_tokens=int(usage.get("cache_read_input_tokens") or 0),
            model=model,
            metadata={
                "num_turns": payload.get("num_turns", 0),
                "session_id": payload.get("session_id", ""),
            },
        )
        cost = payload.get("total_cost_usd")
        response.cost_usd = float(cost) if cost is not None else response.priced_cost()
        if payload.get("is_error"):
            response.error = f"agent reported error ({payload.get('subtype', 'unknown')})"
        return response


def _last_json_object(output: str) -> dict[str, Any] | None:
    """The result object is the last JSON line; stderr noise may precede it."""
    for line in reversed(output.strip().splitlines()):
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
