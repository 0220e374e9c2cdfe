"""CLI entry point for running skill evaluations."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from skill_eval.config import BackendType, RunConfig, SkillMode, apply_env_overrides, load_config
from skill_eval.evaluation.base import EvaluationResult
from skill_eval.evaluation.manifest import load_manifest, select_evaluations
from skill_eval.logging.logger import EvalLogger
from skill_eval.report import compare, save_results, summarize
from skill_eval.scheduler import EvaluationScheduler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run skill evaluations against a coding agent")
    parser.add_argument("filter", nargs="?", default="", help="Only run evaluations whose id or name contains this")
    parser.add_argument("--config", help="Path to run YAML config")
    parser.add_argument("--manifest", help="Path to evaluations JSON (overrides config)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--skill", dest="skill_mode", action="store_const", const=SkillMode.SKILL,
                      help="Install skill guidance into each workspace (default)")
    mode.add_argument("--no-skill", dest="skill_mode", action="store_const", const=SkillMode.NO_SKILL,
                      help="Baseline run without skill guidance")
    mode.add_argument("--compare", action="store_true", help="Run with and without skill and compare")
    parser.add_argument("--backend", choices=[b.value for b in BackendType], help="Agent CLI to use")
    parallel = parser.add_mutually_exclusive_group()
    parallel.add_argument("--parallel", type=int, help="Max concurrent evaluations")
    parallel.add_argument("--sequential", action="store_true", help="Same as --parallel=1")
    parser.add_argument("--max-retries", type=int, help="Build attempts per evaluation")
    parser.add_argument("--timeout", type=int, help="Per-evaluation wall-clock ceiling in seconds")
    parser.add_argument("--output-dir", help="Where transcripts, logs and results go")
    parser.add_argument("--no-prewarm", action="store_true", help="Skip the build-tool warm-up")
    return parser


def resolve_config(args: argparse.Namespace) -> RunConfig:
    """Config file, then environment, then flags."""
    config = load_config(args.config) if args.config else RunConfig()
    apply_env_overrides(config)

    harness = config.harness
    if args.manifest:
        config.manifest = args.manifest
    if args.skill_mode is not None:
        harness.skill_mode = args.skill_mode
    if args.backend:
        harness.agent.backend = BackendType(args.backend)
    if args.sequential:
        config.max_parallel = 1
    elif args.parallel is not None:
        config.max_parallel = args.parallel
    if args.max_retries is not None:
        harness.max_retries = args.max_retries
    if args.timeout is not None:
        harness.eval_timeout_seconds = args.timeout
    if args.output_dir:
        harness.output_dir = args.output_dir
    if args.no_prewarm:
        harness.build.prewarm = False
    return config


def run_mode(config: RunConfig, specs, skill_mode: SkillMode, prewarm: bool) -> list[EvaluationResult]:
    harness = config.harness.model_copy(deep=True)
    harness.skill_mode = skill_mode
    logger = EvalLogger(f"{config.run_id}{harness.run_suffix}", harness.output_dir)

    print(f"Mode: {'WITH SKILL' if skill_mode == SkillMode.SKILL else 'NO SKILL'}")
    print(f"Backend: {harness.agent.backend.value}")
    print(f"Max retries: {harness.max_retries}")
    print(f"Parallelism: {config.parallelism} concurrent evaluations")
    print("")

    scheduler = EvaluationScheduler(harness, logger=logger)
    if prewarm:
        scheduler.prewarm()

    print(f"Running {len(specs)} evaluations...\n")
    results = scheduler.run(specs, max_parallel=config.parallelism)

    results_path = save_results(
        results,
        Path(harness.output_dir) / f"results{harness.run_suffix}.json",
        run_info={
            "run_id": config.run_id,
            "skill_mode": skill_mode.value,
            "backend": harness.agent.backend.value,
            "max_retries": harness.max_retries,
        },
    )
    print("")
    print(summarize(results, label=skill_mode.value))
    print(f"\nResults saved to {results_path}")
    return results


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        config = resolve_config(args)
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2

    specs = select_evaluations(load_manifest(config.manifest), args.filter)
    if not specs:
        print(f"No evaluations found matching: {args.filter}")
        return 1

    print("Skill Evaluation Harness")
    print("=" * 60)
    print(f"Manifest: {config.manifest}")
    print(f"Work directory: {config.harness.workspace.work_root}")
    print(f"Outputs: {config.harness.output_dir}")

    prewarm = config.harness.build.prewarm
    if args.compare:
        skill_results = run_mode(config, specs, SkillMode.SKILL, prewarm)
        baseline_results = run_mode(config, specs, SkillMode.NO_SKILL, False)
        print("")
        print(compare(skill_results, baseline_results))
        results = skill_results + baseline_results
    else:
        results = run_mode(config, specs, config.harness.skill_mode, prewarm)

    return 0 if all(r.passed for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
