"""Configuration data models for the skill evaluation harness."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, Field


class SkillMode(str, Enum):
    SKILL = "skill"        # guidance installed into the workspace
    NO_SKILL = "no_skill"  # baseline

    @property
    def suffix(self) -> str:
        return "skill" if self is SkillMode.SKILL else "noskill"


class BackendType(str, Enum):
    CLAUDE = "claude"  # rich agent CLI
    CODEX = "codex"    # lightweight agent CLI


# Safe concurrent evaluations per backend, by per-process footprint
DEFAULT_PARALLELISM = {
    BackendType.CLAUDE: 4,
    BackendType.CODEX: 8,
}


class AuthConfig(BaseModel):
    """How the agent CLI obtains a credential.

    ``api_key_env`` wins when set in the environment. Otherwise
    ``token_command`` is run once and its stdout is exported to the agent
    as ``token_env_var``, together with ``extra_env``.
    """
    api_key_env: str | None = None
    token_command: list[str] = Field(default_factory=list)
    token_env_var: str | None = None
    extra_env: dict[str, str] = Field(default_factory=dict)
    token_timeout_seconds: int = 60


class AgentConfig(BaseModel):
    backend: BackendType = BackendType.CLAUDE
    executable: str | None = None
    model: str = ""
    timeout_seconds: int = 1200
    extra_args: list[str] = Field(default_factory=list)
    auth: AuthConfig = Field(default_factory=AuthConfig)


class WorkspaceConfig(BaseModel):
    template_dir: str | None = None
    repo_url: str | None = None
    revision: str | None = None
    work_root: str = "/tmp/skill-eval"
    schema_file: str = "src/main/viaduct/schema/Schema.graphqls"
    source_root: str = "src"
    codegen_command: list[str] = Field(default_factory=list)
    setup_timeout_seconds: int = 600
    keep_workspace: bool = False


class GuidanceConfig(BaseModel):
    docs_dir: str | None = None
    docs_dest: str = ".viaduct/agents"
    skills_dir: str | None = None
    skill_name: str = "viaduct"
    index_file: str | None = None
    project_name: str = "myapp"
    hint_phrases: list[str] = Field(default_factory=lambda: [
        "Use the viaduct skill for guidance.",
        "Use the viaduct skill for guidance",
    ])


class BuildConfig(BaseModel):
    command: list[str] = Field(
        default_factory=lambda: ["./gradlew", "viaductCodegen", "classes", "--daemon", "-q"],
    )
    timeout_seconds: int = 600
    prewarm: bool = True


class HarnessConfig(BaseModel):
    """Configuration shared by every evaluation in a run."""
    agent: AgentConfig = Field(default_factory=AgentConfig)
    workspace: WorkspaceConfig = Field(default_factory=WorkspaceConfig)
    guidance: GuidanceConfig = Field(default_factory=GuidanceConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    skill_mode: SkillMode = SkillMode.SKILL
    max_retries: int = Field(default=3, ge=1)
    eval_timeout_seconds: int = 3600
    kill_grace_seconds: float = 10.0
    repair_tail_lines: int = 50
    output_dir: str = ".eval-outputs"

    @property
    def run_suffix(self) -> str:
        """Suffix naming workspaces and artifacts of this mode/backend pair."""
        return f"-{self.skill_mode.suffix}-{self.agent.backend.value}"


class RunConfig(BaseModel):
    """Configuration for a full evaluation run."""
    run_id: str = "skill-eval"
    manifest: str = "evaluations.json"
    harness: HarnessConfig = Field(default_factory=HarnessConfig)
    max_parallel: int | None = None

    @property
    def parallelism(self) -> int:
        if self.max_parallel is not None:
            return max(1, self.max_parallel)
        return DEFAULT_PARALLELISM[self.harness.agent.backend]


def load_config(path: str | Path) -> RunConfig:
    """Load run config from YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    config = RunConfig(**data)

    # Relative paths in the file are relative to the file itself
    base = Path(path).resolve().parent
    ws = config.harness.workspace
    guidance = config.harness.guidance
    if ws.template_dir:
        ws.template_dir = str(base / ws.template_dir)
    for attr in ("docs_dir", "skills_dir", "index_file"):
        value = getattr(guidance, attr)
        if value:
            setattr(guidance, attr, str(base / value))
    config.manifest = str(base / config.manifest)
    return config


def apply_env_overrides(config: RunConfig, environ: Mapping[str, str] | None = None) -> RunConfig:
    """Apply MAX_RETRIES / MAX_PARALLEL environment overrides."""
    environ = os.environ if environ is None else environ
    if environ.get("MAX_RETRIES"):
        config.harness.max_retries = _env_int(environ, "MAX_RETRIES", minimum=1)
    if environ.get("MAX_PARALLEL"):
        config.max_parallel = _env_int(environ, "MAX_PARALLEL", minimum=1)
    return config


def _env_int(environ: Mapping[str, str], name: str, minimum: int) -> int:
    raw = environ[name]
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
    return value
