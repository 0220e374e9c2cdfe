"""Per-evaluation orchestration: provision -> agent -> build/repair -> verify."""

from __future__ import annotations

import time
from pathlib import Path

from skill_eval.agents.base import AgentBackend
from skill_eval.build.runner import BuildRunner
from skill_eval.config import HarnessConfig, SkillMode
from skill_eval.context import EvaluationContext
from skill_eval.evaluation.base import (
    EvaluationResult,
    EvaluationSpec,
    EvaluationStatus,
    FailReason,
)
from skill_eval.evaluation.workspace import (
    ProvisionError,
    Workspace,
    WorkspaceProvisioner,
    archive_workspace,
    remove_workspace,
)
from skill_eval.logging.logger import EvalLogger
from skill_eval.process import CancellationToken, EvaluationTimeout
from skill_eval.recovery.repair import RepairLoop
from skill_eval.verification.patterns import PatternVerifier


class EvaluationHarness:
    """Runs one evaluation end to end and always returns exactly one result."""

    def __init__(
        self,
        config: HarnessConfig,
        backend: AgentBackend,
        logger: EvalLogger | None = None,
    ):
        self.config = config
        self.backend = backend
        self.logger = logger
        self.provisioner = WorkspaceProvisioner(config)
        self.build_runner = BuildRunner(config.build, grace_seconds=config.kill_grace_seconds)
        self.verifier = PatternVerifier()
        self.output_dir = Path(config.output_dir)

    def run(self, spec: EvaluationSpec, token: CancellationToken | None = None) -> EvaluationResult:
        """Run the evaluation. Failures are recorded on the result, never raised."""
        if token is None:
            token = CancellationToken(self.config.eval_timeout_seconds, self.config.kill_grace_seconds)
        context = EvaluationContext(spec=spec)

        if self.logger:
            self.logger.log_run_start(spec.id, {
                "skill_mode": self.config.skill_mode.value,
                "backend": self.backend.name,
                "max_retries": self.config.max_retries,
            })

        try:
            with token.watchdog():
                self._evaluate(context, spec, token)
        except ProvisionError as e:
            context.status = EvaluationStatus.SETUP_FAILED
            context.error = f"SETUP_FAILED: {e}"
        except EvaluationTimeout as e:
            context.status = EvaluationStatus.TIMEOUT
            context.error = f"TIMEOUT: {e}"
        except Exception as e:
            context.status = EvaluationStatus.ERROR
            context.error = f"ERROR: {type(e).__name__}: {e}"

        # The deadline wins over anything that finished after it
        if token.cancelled and context.status != EvaluationStatus.TIMEOUT:
            context.status = EvaluationStatus.TIMEOUT
            context.error = f"TIMEOUT: Evaluation exceeded {self.config.eval_timeout_seconds}s"

        context.timings.total = context.elapsed_seconds
        result = self._finalize(context)

        if self.logger:
            self.logger.log_run_end(spec.id, result)
        return result

    def task_prompt(self, spec: EvaluationSpec, workspace_dir: Path) -> str:
        query = spec.query
        if self.config.skill_mode == SkillMode.NO_SKILL:
            for phrase in self.config.guidance.hint_phrases:
                query = query.replace(phrase, "")
            query = query.strip()
        return f"Work ONLY in {workspace_dir}. Implement:\n\n{query}"

    def _evaluate(self, context: EvaluationContext, spec: EvaluationSpec, token: CancellationToken) -> None:
        # Setup
        start = time.time()
        try:
            workspace = self.provisioner.provision(spec, token)
        except ProvisionError as e:
            context.timings.setup = time.time() - start
            if self.logger:
                self.logger.log_provision(spec.id, "", context.timings.setup, error=str(e))
            raise
        context.workspace = workspace
        context.timings.setup = time.time() - start
        if self.logger:
            self.logger.log_provision(spec.id, str(workspace.path), context.timings.setup)

        # Agent
        start = time.time()
        if spec.setup_query:
            token.raise_if_cancelled()
            self._invoke(context, f"Work ONLY in {workspace.path}.\n\n{spec.setup_query}", "setup", token)
        token.raise_if_cancelled()
        self._invoke(context, self.task_prompt(spec, workspace.path), "task", token)
        context.timings.agent = time.time() - start

        # Build and repair
        start = time.time()
        loop = RepairLoop(
            self.build_runner,
            self.backend,
            max_retries=self.config.max_retries,
            tail_lines=self.config.repair_tail_lines,
            on_attempt=lambda record, outcome: self._on_attempt(spec.id, record, outcome),
            on_repair=lambda attempt, response: self._on_repair(spec.id, attempt, response),
        )
        try:
            loop.run(context, workspace.path, token)
        finally:
            context.timings.build = time.time() - start
        token.raise_if_cancelled()

        # Verify
        context.check = self.verifier.verify(workspace.source_dir, spec.verify_patterns, spec.negative_patterns)
        if self.logger:
            self.logger.log_verification(spec.id, context.check)

        if context.build_succeeded and context.check.passed:
            context.status = EvaluationStatus.PASSED
        else:
            context.status = EvaluationStatus.FAILED

    def _invoke(self, context: EvaluationContext, prompt: str, phase: str, token: CancellationToken) -> None:
        response = self.backend.invoke(context.workspace.path, prompt, token)
        context.record_agent_response(response)
        if self.logger:
            self.logger.log_agent_call(context.spec.id, phase, response)

    def _on_attempt(self, eval_id: str, record, outcome) -> None:
        if self.logger:
            self.logger.log_build_attempt(eval_id, record.index, outcome)

    def _on_repair(self, eval_id: str, attempt: int, response) -> None:
        if self.logger:
            self.logger.log_repair(eval_id, attempt)
            self.logger.log_agent_call(eval_id, "repair", response)

    def _finalize(self, context: EvaluationContext) -> EvaluationResult:
        """Build the result, write artifacts, archive and remove the workspace."""
        spec = context.spec
        check = context.check
        fail_reasons: list[str] = []
        if context.status == EvaluationStatus.FAILED:
            if not context.build_succeeded:
                fail_reasons.append(FailReason.BUILD_FAILED.value)
            if check and check.missing:
                fail_reasons.append(FailReason.MISSING_PATTERNS.value)
            if check and check.forbidden_found:
                fail_reasons.append(FailReason.FORBIDDEN_PATTERNS.value)

        passed = context.status == EvaluationStatus.PASSED
        archived = ""
        if context.workspace is not None:
            archived = self._archive(context.workspace, keep=not passed or len(context.attempts) > 1)

        usage = context.token_usage
        result = EvaluationResult(
            eval_id=spec.id,
            name=spec.name,
            status=context.status,
            skill_mode=self.config.skill_mode.value,
            backend=self.backend.name,
            fail_reasons=fail_reasons,
            attempts=list(context.attempts),
            patterns_found=list(check.found) if check else [],
            patterns_missing=list(check.missing) if check else [],
            forbidden_found=list(check.forbidden_found) if check else [],
            agent_transcript="\n".join(context.transcripts),
            build_output=context.build_output,
            setup_seconds=context.timings.setup,
            agent_seconds=context.timings.agent,
            build_seconds=context.timings.build,
            total_seconds=context.timings.total,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cache_creation_input_tokens=usage.cache_creation_input_tokens,
            cache_read_input_tokens=usage.cache_read_input_tokens,
            cost_usd=usage.total_cost_usd,
            archived_workspace=archived,
            error=context.error,
        )
        self._write_artifacts(result)
        return result

    def _artifact_path(self, eval_id: str, kind: str) -> Path:
        return self.output_dir / f"{eval_id}{self.config.run_suffix}-{kind}"

    def _write_artifacts(self, result: EvaluationResult) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._artifact_path(result.eval_id, "agent.txt").write_text(result.agent_transcript, encoding="utf-8")
        self._artifact_path(result.eval_id, "build.txt").write_text(result.build_output, encoding="utf-8")
        errors = "\n".join(result.error_lines)
        self._artifact_path(result.eval_id, "errors.txt").write_text(
            errors + "\n" if errors else "", encoding="utf-8",
        )

    def _archive(self, workspace: Workspace, keep: bool) -> str:
        archived = ""
        if keep:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            dest = self._artifact_path(workspace.eval_id, "workspace")
            try:
                archived = str(archive_workspace(workspace, dest))
            except OSError as e:
                print(f"  WARNING: {workspace.eval_id}: could not archive workspace: {e}")
        if not self.config.workspace.keep_workspace:
            remove_workspace(workspace)
        return archived
