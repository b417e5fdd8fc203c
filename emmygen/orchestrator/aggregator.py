"""Merge generation and validation outcomes into one summary."""
from __future__ import annotations

from typing import Dict, List, Optional

from ..model.report import GenerationReport, ValidationReport


def summarize(
    generation: Optional[GenerationReport] = None,
    validation: Optional[ValidationReport] = None,
) -> Dict[str, object]:
    """Return per-module and per-file items plus summary counts."""

    summary: Dict[str, object] = {
        "modules_total": 0,
        "modules_ok": 0,
        "modules_failed": 0,
        "files_total": 0,
        "files_passed": 0,
        "files_failed": 0,
        "diagnostics": 0,
        "ok": True,
    }
    modules: List[Dict[str, object]] = []
    files: List[Dict[str, object]] = []
    errors: List[Dict[str, object]] = []
    diagnostics = 0
    ok = True
    if generation is not None:
        modules = [outcome.to_dict() for outcome in generation.outcomes]
        summary["modules_total"] = len(generation.outcomes)
        summary["modules_failed"] = len(generation.failed)
        summary["modules_ok"] = len(generation.outcomes) - len(generation.failed)
        diagnostics += len(generation.diagnostics)
        ok = ok and generation.ok
    if validation is not None:
        files = [report.to_dict() for report in validation.files]
        errors = [item.to_dict() for item in validation.errors]
        summary["files_total"] = len(validation.files)
        summary["files_passed"] = validation.passed
        summary["files_failed"] = validation.failed
        diagnostics += sum(len(report.diagnostics) for report in validation.files)
        diagnostics += len(validation.errors)
        ok = ok and validation.ok
    summary["diagnostics"] = diagnostics
    summary["ok"] = ok
    return {"modules": modules, "files": files, "errors": errors, "summary": summary}


def format_summary(result: Dict[str, object]) -> str:
    summary = result["summary"]
    assert isinstance(summary, dict)
    lines = []
    if summary["modules_total"]:
        lines.append(
            f"modules: {summary['modules_ok']} ok, {summary['modules_failed']} failed"
        )
    if summary["files_total"] or not summary["modules_total"]:
        lines.append(
            f"files: {summary['files_passed']} passed, {summary['files_failed']} failed"
        )
    for error in result.get("errors", ()):  # type: ignore[union-attr]
        lines.append(f"error: {error['subject']}: {error['message']}")
    lines.append("OK" if summary["ok"] else "FAILED")
    return "\n".join(lines)


__all__ = ["format_summary", "summarize"]
