"""Tests for CLI argument handling."""

import json

import yaml

from skill_eval.cli import build_parser, main, resolve_config
from skill_eval.config import BackendType, SkillMode
from skill_eval.evaluation.manifest import load_manifest, select_evaluations


def test_flags_override_config(tmp_path, monkeypatch):
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.delenv("MAX_PARALLEL", raising=False)
    path = tmp_path / "run.yaml"
    path.write_text(yaml.dump({"harness": {"max_retries": 2, "agent": {"backend": "claude"}}}))

    args = build_parser().parse_args(["--config", str(path), "--no-skill", "--backend", "codex", "--sequential"])
    config = resolve_config(args)

    assert config.harness.max_retries == 5
    assert config.harness.skill_mode == SkillMode.NO_SKILL
    assert config.harness.agent.backend == BackendType.CODEX
    assert config.parallelism == 1

    args = build_parser().parse_args(["--config", str(path), "--max-retries", "1", "--parallel", "3"])
    config = resolve_config(args)
    assert config.harness.max_retries == 1
    assert config.parallelism == 3


def test_mode_flags_are_exclusive():
    parser = build_parser()
    try:
        parser.parse_args(["--skill", "--no-skill"])
    except SystemExit:
        pass
    else:
        raise AssertionError("expected argparse error")


def test_manifest_load_and_filter(tmp_path):
    path = tmp_path / "evals.json"
    path.write_text(json.dumps([
        {"id": "eval-01-field", "name": "Field resolver", "query": "q1", "schema": "type A { a: Int }"},
        {"id": "eval-02-query", "name": "Query resolver", "query": "q2", "unknown": True},
    ]))
    specs = load_manifest(path)
    assert specs[0].schema_fragment == "type A { a: Int }"
    assert [s.id for s in select_evaluations(specs, "query")] == ["eval-02-query"]
    assert [s.id for s in select_evaluations(specs, "Field")] == ["eval-01-field"]
    assert len(select_evaluations(specs, "")) == 2


def test_manifest_duplicate_ids(tmp_path):
    path = tmp_path / "evals.json"
    path.write_text(json.dumps([{"id": "a", "query": "q"}, {"id": "a", "query": "q"}]))
    try:
        load_manifest(path)
    except ValueError as e:
        assert "Duplicate" in str(e)
    else:
        raise AssertionError("expected ValueError")


def test_main_no_matching_evaluations(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    manifest = tmp_path / "evals.json"
    manifest.write_text(json.dumps([{"id": "a", "query": "q"}]))
    assert main(["zzz", "--manifest", str(manifest)]) == 1


def test_main_runs_and_writes_results(tmp_path, monkeypatch, template_dir):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    fake_agent = tmp_path / "fake-agent"
    fake_agent.write_text('#!/bin/sh\ntouch BUILD_OK\necho \'{"result": "done", "usage": {"input_tokens": 10}}\'\n')
    fake_agent.chmod(0o755)
    manifest = tmp_path / "evals.json"
    manifest.write_text(json.dumps([{"id": "eval-01", "query": "q", "verify_patterns": ["fun main"]}]))
    config = tmp_path / "run.yaml"
    config.write_text(yaml.dump({
        "run_id": "cli-test",
        "manifest": "evals.json",
        "harness": {
            "agent": {"executable": str(fake_agent)},
            "workspace": {"template_dir": str(template_dir), "work_root": str(tmp_path / "work")},
            "build": {"command": ["sh", "-c", "test -f BUILD_OK"], "prewarm": False},
            "output_dir": str(tmp_path / "out"),
        },
    }))

    assert main(["--config", str(config), "--compare"]) == 0
    skill = json.loads((tmp_path / "out" / "results-skill-claude.json").read_text())
    baseline = json.loads((tmp_path / "out" / "results-noskill-claude.json").read_text())
    assert skill["passed"] == 1
    assert baseline["passed"] == 1
    assert (tmp_path / "out" / "cli-test-skill-claude.jsonl").exists()


def test_main_reports_bad_env_override(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MAX_PARALLEL", "lots")
    assert main([]) == 2
    assert "MAX_PARALLEL must be an integer" in capsys.readouterr().out
