"""Result values returned by the generation and validation passes."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..utils.errors import Diagnostic, ValidationFailure


@dataclass(frozen=True)
class ModuleOutcome:
    """What happened to one module during generation."""

    module: str
    path: Optional[Path] = None
    diagnostics: Tuple[Diagnostic, ...] = ()
    error: Optional[Diagnostic] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, object]:
        return {
            "module": self.module,
            "path": str(self.path) if self.path is not None else None,
            "ok": self.ok,
            "error": self.error.to_dict() if self.error is not None else None,
            "diagnostics": [item.to_dict() for item in self.diagnostics],
        }


@dataclass(frozen=True)
class GenerationReport:
    outcomes: Tuple[ModuleOutcome, ...] = ()

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failed(self) -> Tuple[ModuleOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if not outcome.ok)

    @property
    def diagnostics(self) -> Tuple[Diagnostic, ...]:
        items = []
        for outcome in self.outcomes:
            items.extend(outcome.diagnostics)
            if outcome.error is not None:
                items.append(outcome.error)
        return tuple(items)


@dataclass(frozen=True)
class FileReport:
    """Validation result for one emitted file; ``path`` is relative to the checked directory."""

    path: str
    diagnostics: Tuple[Diagnostic, ...] = ()

    @property
    def ok(self) -> bool:
        return not any(item.is_error for item in self.diagnostics)

    def to_dict(self) -> Dict[str, object]:
        return {
            "path": self.path,
            "ok": self.ok,
            "diagnostics": [item.to_dict() for item in self.diagnostics],
        }


@dataclass(frozen=True)
class ValidationReport:
    directory: str
    files: Tuple[FileReport, ...] = ()
    errors: Tuple[Diagnostic, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> int:
        return sum(1 for report in self.files if report.ok)

    @property
    def failed(self) -> int:
        return len(self.files) - self.passed

    @property
    def ok(self) -> bool:
        return bool(self.files) and not self.errors and self.failed == 0

    def raise_for_failures(self) -> None:
        if self.ok:
            return
        failures = [report for report in self.files if not report.ok]
        raise ValidationFailure(failures or list(self.errors))


__all__ = ["FileReport", "GenerationReport", "ModuleOutcome", "ValidationReport"]
