"""Run normalize, resolve, emit and write for every module of a model."""
from __future__ import annotations

import logging
import os
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from ..features.emitter import emit_module
from ..features.loader import build_type_index
from ..features.normalizer import normalize_module
from ..features.validator import FILE_SUFFIX
from ..model.entities import Module, TypeIndex
from ..model.report import GenerationReport, ModuleOutcome
from ..utils.errors import Diagnostic, EmissionError, ErrorCode
from ..utils.logging import RunContext, log_diagnostics, scoped_timer


def module_path(output_dir: Path, module_name: str) -> Path:
    return Path(output_dir) / f"{module_name}{FILE_SUFFIX}"


def write_atomic(path: Path, text: str) -> None:
    """Replace *path* with *text* in one step; readers never see a partial file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(text)
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _discard_stale(path: Path, context: RunContext) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        context.log(logging.WARNING, "module.stale_file", extra={"path": str(path), "reason": str(exc)})


def generate_module(
    module: Module, index: TypeIndex, output_dir: Path, context: RunContext
) -> ModuleOutcome:
    """Generate one module file.

    An :class:`EmissionError` or a failed write only fails this module: the
    error is returned in the outcome and no file from an earlier run is left
    behind for it.
    """

    path = module_path(output_dir, module.name)
    with scoped_timer(
        context.logger, "module.generate", extra=context.extra(module_name=module.name)
    ):
        normalized, diagnostics = normalize_module(module, index, context)
        try:
            text = emit_module(normalized, context)
        except EmissionError as exc:
            context.log(
                logging.ERROR,
                "module.emission_failed",
                extra={"module_name": module.name, "reason": exc.reason},
            )
            _discard_stale(path, context)
            return ModuleOutcome(module=module.name, diagnostics=diagnostics, error=exc.diagnostic())
        try:
            write_atomic(path, text)
        except OSError as exc:
            context.log(
                logging.ERROR,
                "module.write_failed",
                extra={"module_name": module.name, "reason": str(exc)},
            )
            error = Diagnostic(code=ErrorCode.WRITE_FAILED, message=str(exc), subject=str(path))
            return ModuleOutcome(module=module.name, diagnostics=diagnostics, error=error)
    return ModuleOutcome(module=module.name, path=path, diagnostics=diagnostics)


def generate_api(
    root: Module,
    output_dir: Path,
    context: RunContext,
    *,
    index: Optional[TypeIndex] = None,
) -> GenerationReport:
    """Generate a file per module under *output_dir*.

    Modules are processed on a thread pool; outcomes keep source order.
    """

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    index = index if index is not None else build_type_index(root, context.namespace)
    modules = list(root.walk())
    with ThreadPoolExecutor(max_workers=context.max_workers) as pool:
        futures = [
            pool.submit(generate_module, module, index, output_dir, context) for module in modules
        ]
        outcomes = tuple(future.result() for future in futures)
    report = GenerationReport(outcomes=outcomes)
    log_diagnostics(context, report.diagnostics)
    context.log(
        logging.INFO,
        "generate.finish",
        extra={
            "modules": len(outcomes),
            "failed": len(report.failed),
            "output_dir": str(output_dir),
        },
    )
    return report


__all__ = ["generate_api", "generate_module", "module_path", "write_atomic"]
