"""Shared fixtures: a tiny project template and a scriptable fake agent."""

from __future__ import annotations

import time
from pathlib import Path

import pytest

from skill_eval.agents.base import AgentBackend, AgentResponse
from skill_eval.config import AgentConfig, BuildConfig, HarnessConfig, WorkspaceConfig

# Fails with a Kotlin-style error until the agent drops BUILD_OK in the workspace
BUILD_COMMAND = [
    "sh", "-c",
    "test -f BUILD_OK || { echo 'w: some warning'; "
    "echo 'e: file:///ws/src/Foo.kt:3:5 Unresolved reference: FooResolver'; "
    "echo 'e: error: compilation failed'; exit 1; }",
]


class FakeBackend(AgentBackend):
    """Applies one scripted edit per call: a dict of relative path -> content."""

    def __init__(self, edits=None, delay: float = 0.0):
        super().__init__(AgentConfig())
        self.edits = list(edits or [])
        self.delay = delay
        self.prompts: list[str] = []
        self.workspaces: list[Path] = []

    @property
    def name(self) -> str:
        return "fake"

    def build_command(self, prompt, workspace_dir):
        return ["true"]

    def parse_output(self, output):
        return AgentResponse(text=output)

    def invoke(self, workspace_dir, prompt, token=None):
        self.prompts.append(prompt)
        self.workspaces.append(Path(workspace_dir))
        if self.delay:
            time.sleep(self.delay)
        call = len(self.prompts) - 1
        if call < len(self.edits):
            for rel, content in self.edits[call].items():
                target = Path(workspace_dir) / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content)
        return AgentResponse(
            text=f"edit {call + 1}",
            input_tokens=1000,
            output_tokens=200,
            cost_usd=0.01,
        )


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    template = tmp_path / "template"
    (template / "src" / "main" / "kotlin").mkdir(parents=True)
    (template / "src" / "main" / "kotlin" / "App.kt").write_text("fun main() {}\n")
    schema = template / "src" / "main" / "viaduct" / "schema" / "Schema.graphqls"
    schema.parent.mkdir(parents=True)
    schema.write_text("type Query {\n  hello: String\n}\n")
    return template


@pytest.fixture
def harness_config(tmp_path: Path, template_dir: Path) -> HarnessConfig:
    return HarnessConfig(
        workspace=WorkspaceConfig(
            template_dir=str(template_dir),
            work_root=str(tmp_path / "work"),
        ),
        build=BuildConfig(command=BUILD_COMMAND, timeout_seconds=30, prewarm=False),
        output_dir=str(tmp_path / "out"),
        kill_grace_seconds=1.0,
    )
