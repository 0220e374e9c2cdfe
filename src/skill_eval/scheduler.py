"""Bounded-parallel evaluation scheduler."""

from __future__ import annotations

import asyncio
import threading
import time
import traceback
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from pathlib import Path

from skill_eval.agents import AuthError, create_backend, resolve_credentials
from skill_eval.agents.base import AgentBackend
from skill_eval.build.runner import BuildRunner
from skill_eval.config import HarnessConfig
from skill_eval.evaluation.base import EvaluationResult, EvaluationSpec, EvaluationStatus
from skill_eval.evaluation.workspace import ProvisionError, WorkspaceProvisioner, remove_workspace
from skill_eval.harness import EvaluationHarness
from skill_eval.logging.logger import EvalLogger
from skill_eval.process import CancellationToken


def _stamp() -> str:
    return datetime.now().strftime("%H:%M:%S")


def status_line(result: EvaluationResult) -> str:
    timing = (f"setup:{result.setup_seconds:.0f}s agent:{result.agent_seconds:.0f}s "
              f"build:{result.build_seconds:.0f}s total:{result.total_seconds:.0f}s")
    if result.passed:
        return f"[{_stamp()}] {result.eval_id}: PASSED (attempt {result.attempt_count}) [{timing}]"
    return f"[{_stamp()}] {result.eval_id}: FAILED ({result.reason}) [{timing}]"


class EvaluationScheduler:
    """Runs independent evaluations on a bounded worker pool.

    Credentials are resolved once per run; each evaluation gets its own
    cancellation token so a timeout kills only that evaluation's processes.
    """

    def __init__(
        self,
        config: HarnessConfig,
        backend: AgentBackend | None = None,
        logger: EvalLogger | None = None,
    ):
        self.config = config
        self.backend = backend
        self.logger = logger

    def prewarm(self) -> bool:
        """One throwaway build to warm build-tool caches. Failure is non-fatal."""
        print("Pre-warming build tool daemon and cache...")
        start = time.time()
        provisioner = WorkspaceProvisioner(self.config)
        try:
            scratch = provisioner.provision_scratch("prewarm")
        except ProvisionError as e:
            print(f"Warning: prewarm setup failed, continuing anyway: {e}")
            return False
        try:
            outcome = BuildRunner(self.config.build, self.config.kill_grace_seconds).build(scratch.path)
        finally:
            remove_workspace(scratch)
        if outcome.success:
            print(f"Build tool warmed up ({time.time() - start:.0f}s)")
            return True
        print(f"Warning: prewarm build had issues, continuing anyway: {outcome.diagnostic}")
        return False

    def run(self, specs: list[EvaluationSpec], max_parallel: int = 4) -> list[EvaluationResult]:
        return asyncio.run(self.run_async(specs, max_parallel))

    async def run_async(self, specs: list[EvaluationSpec], max_parallel: int = 4) -> list[EvaluationResult]:
        """Run all specs; returns one result per spec, in manifest order."""
        backend = self.backend
        if backend is None:
            try:
                credentials = resolve_credentials(self.config.agent)
            except AuthError as e:
                print(f"[{_stamp()}] AUTH FAILED: {e}")
                return [self._aborted(spec, EvaluationStatus.AUTH_FAILED, f"AUTH_FAILED: {e}") for spec in specs]
            backend = create_backend(self.config.agent, credentials, self.config.kill_grace_seconds)

        harness = EvaluationHarness(self.config, backend, logger=self.logger)
        total = len(specs)
        completed = [0]
        lock = threading.Lock()

        def _run_single(spec: EvaluationSpec) -> EvaluationResult:
            print(f"[{_stamp()}] Starting: {spec.id}")
            token = CancellationToken(self.config.eval_timeout_seconds, self.config.kill_grace_seconds)
            result = harness.run(spec, token)
            with lock:
                completed[0] += 1
                print(status_line(result))
                print(f"[{completed[0]}/{total} completed]")
            return result

        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=max(1, max_parallel)) as executor:
            futures = [loop.run_in_executor(executor, _run_single, spec) for spec in specs]
            outcomes = await asyncio.gather(*futures, return_exceptions=True)

        results = []
        for spec, outcome in zip(specs, outcomes):
            if isinstance(outcome, BaseException):
                print(f"  {spec.id}: EXCEPTION: {outcome}")
                traceback.print_exception(type(outcome), outcome, outcome.__traceback__)
                results.append(self._aborted(spec, EvaluationStatus.ERROR, f"ERROR: {outcome}"))
            else:
                results.append(outcome)
        return results

    def _aborted(self, spec: EvaluationSpec, status: EvaluationStatus, error: str) -> EvaluationResult:
        result = EvaluationResult.aborted(
            spec, status, error,
            skill_mode=self.config.skill_mode.value,
            backend=self.config.agent.backend.value,
        )
        errors_file = Path(self.config.output_dir) / f"{spec.id}{self.config.run_suffix}-errors.txt"
        errors_file.parent.mkdir(parents=True, exist_ok=True)
        errors_file.write_text(error + "\n", encoding="utf-8")
        return result
