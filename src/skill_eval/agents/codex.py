"""Codex CLI backend (lightweight agent, higher safe parallelism)."""

from __future__ import annotations

import json
from pathlib import Path

from .base import AgentBackend, AgentResponse

DEFAULT_MODEL = "gpt-5-codex"


class CodexBackend(AgentBackend):
    """``codex exec --json``: one JSON event per line.

    Agent messages arrive as ``item.completed`` events and usage as
    ``turn.completed``. Codex reports no cost, so it is priced per model.
    """

    @property
    def name(self) -> str:
        return "codex"

    def build_command(self, prompt: str, workspace_dir: Path) -> list[str]:
        cmd = [
            self.executable, "exec",
            "--json",
            "--full-auto",
            "--skip-git-repo-check",
            "-C", str(workspace_dir),
        ]
        if self.config.model:
            cmd.extend(["-m", self.config.model])
        cmd.extend(self.config.extra_args)
        cmd.append(prompt)
        return cmd

    def parse_output(self, output: str) -> AgentResponse:
        messages: list[str] = []
        errors: list[str] = []
        other_lines: list[str] = []
        response = AgentResponse(text="", model=self.config.model or DEFAULT_MODEL)

        for line in output.splitlines():
            stripped = line.strip()
            try:
                event = json.loads(stripped) if stripped.startswith("{") else None
            except json.JSONDecodeError:
                event = None
            if not isinstance(event, dict):
                if stripped:
                    other_lines.append(stripped)
                continue

            kind = event.get("type", "")
            if kind == "item.completed":
                item = event.get("item") or {}
                if item.get("type") == "agent_message" and item.get("text"):
                    messages.append(item["text"])
            elif kind == "turn.completed":
                usage = event.get("usage") or {}
                cached = int(usage.get("cached_input_tokens") or 0)
                # input_tokens includes the cached part
                response.input_tokens += int(usage.get("input_tokens") or 0) - cached
                response.cache_read_input_tokens += cached
                response.output_tokens += int(usage.get("output_tokens") or 0)
            elif kind == "turn.failed":
                errors.append(str((event.get("error") or {}).get("message", "turn failed")))
            elif kind == "error":
                errors.append(str(event.get("message", "error")))

        response.text = "\n\n".join(messages) if messages else "\n".join(other_lines)
        response.cost_usd = response.priced_cost()
        if errors:
            response.error = "; ".join(errors)
        return response
