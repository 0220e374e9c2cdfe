"""Workspace provisioner: one isolated project copy per evaluation."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from skill_eval.config import HarnessConfig, SkillMode
from skill_eval.process import CancellationToken, run_command

from .base import EvaluationSpec
from .guidance import install_guidance


class ProvisionError(RuntimeError):
    """Workspace could not be created. Fatal for the evaluation."""


@dataclass(frozen=True)
class Workspace:
    eval_id: str
    path: Path
    source_root: str = "src"

    @property
    def source_dir(self) -> Path:
        return self.path / self.source_root


class WorkspaceProvisioner:
    """Create workspaces from a local template or a pinned git revision."""

    def __init__(self, config: HarnessConfig):
        self.config = config
        ws = config.workspace
        if not ws.template_dir and not ws.repo_url:
            raise ValueError("Workspace config needs either template_dir or repo_url")

    def workspace_path(self, eval_id: str) -> Path:
        """Deterministic path for (eval id, skill mode, backend)."""
        safe_id = eval_id.replace("/", "__")
        return Path(self.config.workspace.work_root) / f"{safe_id}{self.config.run_suffix}"

    def provision(self, spec: EvaluationSpec, token: CancellationToken | None = None) -> Workspace:
        path = self.workspace_path(spec.id)
        self._populate(path, token)

        if spec.schema_fragment:
            self._append_schema(path, spec.schema_fragment)

        if self.config.workspace.codegen_command:
            self._run_step(self.config.workspace.codegen_command, path, token, "Scaffold generation")

        if self.config.skill_mode == SkillMode.SKILL:
            try:
                install_guidance(path, self.config.guidance, self.config.agent.backend)
            except OSError as e:
                raise ProvisionError(f"Guidance install failed: {e}") from e

        return Workspace(eval_id=spec.id, path=path, source_root=self.config.workspace.source_root)

    def provision_scratch(self, name: str = "prewarm", token: CancellationToken | None = None) -> Workspace:
        """Bare project copy with no schema additions and no guidance."""
        path = Path(self.config.workspace.work_root) / f"{name}{self.config.run_suffix}"
        self._populate(path, token)
        return Workspace(eval_id=name, path=path, source_root=self.config.workspace.source_root)

    def _populate(self, path: Path, token: CancellationToken | None) -> None:
        ws = self.config.workspace
        try:
            if path.exists():
                shutil.rmtree(path)
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisionError(f"Could not clear workspace {path}: {e}") from e

        if ws.template_dir:
            try:
                shutil.copytree(ws.template_dir, path, symlinks=True)
            except OSError as e:
                raise ProvisionError(f"Template copy failed: {e}") from e
            return

        self._run_step(["git", "clone", ws.repo_url, str(path)], path.parent, token, "Clone")
        if ws.revision:
            self._run_step(["git", "checkout", ws.revision], path, token, "Checkout")

    def _append_schema(self, path: Path, fragment: str) -> None:
        schema_path = path / self.config.workspace.schema_file
        try:
            schema_path.parent.mkdir(parents=True, exist_ok=True)
            with open(schema_path, "a", encoding="utf-8") as f:
                f.write("\n" + fragment.rstrip("\n") + "\n")
        except OSError as e:
            raise ProvisionError(f"Schema append failed: {e}") from e

    def _run_step(self, command: list[str], cwd: Path, token: CancellationToken | None, label: str) -> None:
        result = run_command(
            command,
            cwd=cwd,
            timeout=self.config.workspace.setup_timeout_seconds,
            token=token,
            grace_seconds=self.config.kill_grace_seconds,
        )
        if not result.success:
            tail = "\n".join(result.output.strip().splitlines()[-10:])
            raise ProvisionError(f"{label} failed (exit code {result.returncode}): {tail}")


def archive_workspace(workspace: Workspace, dest: Path) -> Path:
    """Copy a workspace for postmortem inspection, replacing an older copy."""
    if dest.exists():
        shutil.rmtree(dest)
    shutil.copytree(workspace.path, dest, symlinks=True)
    return dest


def remove_workspace(workspace: Workspace) -> None:
    shutil.rmtree(workspace.path, ignore_errors=True)
