"""Aggregate evaluation results into human and machine readable reports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from skill_eval.evaluation.base import EvaluationResult

RULE = "=" * 60


def format_count(n: float) -> str:
    """1234 -> '1.2K', 3_400_000 -> '3.4M'."""
    for threshold, unit in ((1_000_000_000, "B"), (1_000_000, "M"), (1_000, "K")):
        if abs(n) >= threshold:
            return f"{n / threshold:.1f}{unit}"
    return f"{n:.0f}"


def totals(results: list[EvaluationResult]) -> dict[str, Any]:
    passed = sum(1 for r in results if r.passed)
    return {
        "total": len(results),
        "passed": passed,
        "one_shot": sum(1 for r in results if r.one_shot),
        "failed": len(results) - passed,
        "input_tokens": sum(r.input_tokens for r in results),
        "output_tokens": sum(r.output_tokens for r in results),
        "cache_creation_input_tokens": sum(r.cache_creation_input_tokens for r in results),
        "cache_read_input_tokens": sum(r.cache_read_input_tokens for r in results),
        "total_tokens": sum(r.total_tokens for r in results),
        "cost_usd": sum(r.cost_usd for r in results),
    }


def summarize(results: list[EvaluationResult], label: str = "") -> str:
    """Detailed report: one-shot passes, passes with retries, failures, totals."""
    lines = [RULE, f"SUMMARY{f' ({label})' if label else ''}", RULE, "", "DETAILED RESULTS:", "-" * 17]

    for r in results:
        if r.one_shot:
            lines.append(f"✓ {r.eval_id} - one-shot")
        elif r.passed:
            lines.append(f"✓ {r.eval_id} - attempt {r.attempt_count}")
            if r.retry_errors:
                lines.append(f"    retries: {' | '.join(r.retry_errors)}")
        else:
            lines.append(f"✗ {r.eval_id} - FAILED ({r.reason})")
            lines.extend(f"    {line}" for line in r.error_lines)

    t = totals(results)
    lines += [
        "",
        RULE,
        f"Passed: {t['passed']} / {t['total']}",
        f"One-shot: {t['one_shot']} / {t['passed']}",
        f"Failed: {t['failed']}",
        f"Tokens: {format_count(t['total_tokens'])} "
        f"(in {format_count(t['input_tokens'] + t['cache_creation_input_tokens'] + t['cache_read_input_tokens'])}, "
        f"out {format_count(t['output_tokens'])}) | Cost: ${t['cost_usd']:.4f}",
    ]

    archived = [r.archived_workspace for r in results if r.archived_workspace]
    if archived:
        lines.append("Preserved workspaces (failed or retried):")
        lines.extend(f"  {Path(a).name}" for a in archived)
    return "\n".join(lines)


def _cell(result: EvaluationResult | None) -> str:
    if result is None:
        return "-"
    if result.passed:
        return f"PASS({result.attempt_count})"
    return f"FAIL({result.reason})"


def compare(skill_results: list[EvaluationResult], baseline_results: list[EvaluationResult]) -> str:
    """Side-by-side with-skill vs baseline table and the delta in totals."""
    skill_by_id = {r.eval_id: r for r in skill_results}
    baseline_by_id = {r.eval_id: r for r in baseline_results}
    ids = list(dict.fromkeys([r.eval_id for r in skill_results] + [r.eval_id for r in baseline_results]))
    width = max([len(i) for i in ids] + [10])

    lines = [RULE, "SKILL vs BASELINE", RULE, f"{'eval':<{width}}  {'skill':<24}  baseline"]
    for eval_id in ids:
        skill, base = skill_by_id.get(eval_id), baseline_by_id.get(eval_id)
        marker = ""
        if skill and base and skill.passed != base.passed:
            marker = "  <- improved" if skill.passed else "  <- regressed"
        lines.append(f"{eval_id:<{width}}  {_cell(skill):<24}  {_cell(base)}{marker}")

    s, b = totals(skill_results), totals(baseline_results)
    lines += [
        "",
        f"Passed:   {s['passed']}/{s['total']} vs {b['passed']}/{b['total']} ({s['passed'] - b['passed']:+d})",
        f"One-shot: {s['one_shot']} vs {b['one_shot']} ({s['one_shot'] - b['one_shot']:+d})",
        f"Tokens:   {format_count(s['total_tokens'])} vs {format_count(b['total_tokens'])}",
        f"Cost:     ${s['cost_usd']:.4f} vs ${b['cost_usd']:.4f}",
    ]
    return "\n".join(lines)


def save_results(
    results: list[EvaluationResult],
    path: str | Path,
    run_info: dict[str, Any] | None = None,
) -> Path:
    """Write the aggregate results file once per run."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    t = totals(results)
    summary = {
        **(run_info or {}),
        "pass_rate": t["passed"] / t["total"] if t["total"] else 0,
        **t,
        "cost_usd": round(t["cost_usd"], 4),
        "results": [r.to_dict() for r in results],
    }
    with open(path, "w") as f:
        json.dump(summary, f, indent=2, default=str)
    return path
