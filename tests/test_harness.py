"""End-to-end tests for a single evaluation."""

import json
import subprocess
from pathlib import Path

from conftest import FakeBackend

from skill_eval.config import HarnessConfig, SkillMode
from skill_eval.evaluation.base import EvaluationSpec, EvaluationStatus
from skill_eval.harness import EvaluationHarness
from skill_eval.logging.logger import EvalLogger

RESOLVER = (
    "@Resolver\n"
    "class UserResolver : QueryResolvers.User() {\n"
    "    override suspend fun resolve(ctx: Context) = \"u\"\n"
    "}\n"
)
RESOLVER_PATH = "src/main/kotlin/UserResolver.kt"


def _make_spec(**kwargs) -> EvaluationSpec:
    defaults = {
        "id": "eval-01",
        "name": "Query resolver",
        "query": "Add a user query resolver. Use the viaduct skill for guidance.",
        "schema": "extend type Query {\n  user: String\n}",
        "verify_patterns": [r"@Resolver", r"class \w+ : QueryResolvers\.User"],
    }
    defaults.update(kwargs)
    return EvaluationSpec(**defaults)


def _artifact(config: HarnessConfig, kind: str, eval_id: str = "eval-01") -> Path:
    return Path(config.output_dir) / f"{eval_id}{config.run_suffix}-{kind}"


def test_one_shot_pass(harness_config):
    backend = FakeBackend(edits=[{RESOLVER_PATH: RESOLVER, "BUILD_OK": ""}])
    result = EvaluationHarness(harness_config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.PASSED
    assert result.one_shot
    assert result.fail_reasons == []
    assert result.input_tokens == 1000
    assert result.cost_usd == 0.01
    # Passed on the first attempt: nothing preserved
    assert result.archived_workspace == ""
    assert not Path(harness_config.workspace.work_root, "eval-01-skill-claude").exists()
    assert _artifact(harness_config, "errors.txt").read_text() == ""


def test_build_passes_but_pattern_missing(harness_config):
    backend = FakeBackend(edits=[{"src/main/kotlin/Other.kt": "class Other\n", "BUILD_OK": ""}])
    result = EvaluationHarness(harness_config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.FAILED
    assert result.attempt_count == 1
    assert result.fail_reasons == ["missing_patterns"]
    assert result.patterns_missing == [r"@Resolver", r"class \w+ : QueryResolvers\.User"]
    # Pattern gaps are not repaired
    assert len(backend.prompts) == 1
    assert result.archived_workspace
    errors = _artifact(harness_config, "errors.txt").read_text()
    assert "Missing patterns:" in errors


def test_compile_failure_fixed_on_second_attempt(harness_config):
    backend = FakeBackend(edits=[{RESOLVER_PATH: RESOLVER}, {"BUILD_OK": ""}])
    result = EvaluationHarness(harness_config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.PASSED
    assert result.attempt_count == 2
    assert not result.one_shot
    assert result.retry_errors == ["FooResolver"]
    assert result.input_tokens == 2000
    assert "Build failed. Fix it:" in backend.prompts[1]
    # Retried passes keep their workspace for inspection
    assert Path(result.archived_workspace).is_dir()
    assert Path(result.archived_workspace).name == "eval-01-skill-claude-workspace"


def test_exhausted_retries(harness_config):
    backend = FakeBackend(edits=[{RESOLVER_PATH: RESOLVER}])
    result = EvaluationHarness(harness_config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.FAILED
    assert result.attempt_count == harness_config.max_retries
    assert result.fail_reasons == ["build_failed"]
    assert len(backend.prompts) == harness_config.max_retries
    assert "Unresolved reference" in _artifact(harness_config, "build.txt").read_text()


def test_build_failure_and_forbidden_pattern_both_reported(harness_config):
    backend = FakeBackend(edits=[{RESOLVER_PATH: RESOLVER + "// TODO\n"}])
    config = harness_config.model_copy(update={"max_retries": 1})
    result = EvaluationHarness(config, backend).run(_make_spec(negative_patterns=["TODO"]))

    assert result.fail_reasons == ["build_failed", "forbidden_patterns"]
    assert result.reason == "build_failed,forbidden_patterns"


def test_setup_query_runs_first(harness_config):
    backend = FakeBackend(edits=[{}, {RESOLVER_PATH: RESOLVER, "BUILD_OK": ""}])
    result = EvaluationHarness(harness_config, backend).run(_make_spec(setup_query="Create the User type."))

    assert result.passed
    assert backend.prompts[0].endswith("Create the User type.")
    assert backend.prompts[1].startswith("Work ONLY in ")


def test_task_prompt_strips_hint_without_skill(harness_config):
    spec = _make_spec()
    skill = EvaluationHarness(harness_config, FakeBackend())
    baseline = EvaluationHarness(harness_config.model_copy(update={"skill_mode": SkillMode.NO_SKILL}), FakeBackend())

    assert "Use the viaduct skill" in skill.task_prompt(spec, Path("/ws"))
    prompt = baseline.task_prompt(spec, Path("/ws"))
    assert prompt == "Work ONLY in /ws. Implement:\n\nAdd a user query resolver."


def test_guidance_only_in_skill_mode(harness_config):
    seen = {}

    class InspectingBackend(FakeBackend):
        def invoke(self, workspace_dir, prompt, token=None):
            seen[workspace_dir.name] = (workspace_dir / "AGENTS.md").exists()
            return super().invoke(workspace_dir, prompt, token)

    for mode in SkillMode:
        config = harness_config.model_copy(update={"skill_mode": mode, "max_retries": 1})
        EvaluationHarness(config, InspectingBackend()).run(_make_spec())

    assert seen == {"eval-01-skill-claude": True, "eval-01-noskill-claude": False}


def test_timeout_kills_evaluation(harness_config):
    config = harness_config.model_copy(update={"eval_timeout_seconds": 1})
    backend = FakeBackend(edits=[{RESOLVER_PATH: RESOLVER, "BUILD_OK": ""}], delay=2)
    result = EvaluationHarness(config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.TIMEOUT
    assert result.attempt_count == 0
    assert result.error.startswith("TIMEOUT")
    assert result.archived_workspace


def test_setup_failure(harness_config, tmp_path):
    config = harness_config.model_copy(deep=True)
    config.workspace.template_dir = str(tmp_path / "missing")
    backend = FakeBackend()
    result = EvaluationHarness(config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.SETUP_FAILED
    assert result.error.startswith("SETUP_FAILED")
    assert backend.prompts == []
    assert result.attempts == []


def test_events_logged(harness_config):
    logger = EvalLogger("test-run", harness_config.output_dir)
    backend = FakeBackend(edits=[{RESOLVER_PATH: RESOLVER}, {"BUILD_OK": ""}])
    EvaluationHarness(harness_config, backend, logger=logger).run(_make_spec())

    events = [json.loads(line)["event"] for line in logger.log_path.read_text().splitlines()]
    assert events[0] == "run_start"
    assert events[-1] == "run_end"
    assert events.count("build_attempt") == 2
    assert "provision" in events
    assert "verification" in events


def test_bad_git_revision_is_setup_failure(harness_config, tmp_path):
    repo = tmp_path / "upstream"
    repo.mkdir()
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
    subprocess.run(
        ["git", "-c", "user.name=Eval", "-c", "user.email=eval@example.com",
         "commit", "-q", "--allow-empty", "-m", "init"],
        cwd=repo, check=True,
    )
    config = harness_config.model_copy(deep=True)
    config.workspace.template_dir = None
    config.workspace.repo_url = str(repo)
    config.workspace.revision = "deadbeef"
    backend = FakeBackend()

    result = EvaluationHarness(config, backend).run(_make_spec())

    assert result.status == EvaluationStatus.SETUP_FAILED
    assert "Checkout failed" in result.error
    assert backend.prompts == []
