"""Error codes, diagnostics and exceptions for the generator pipeline."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class ErrorCode(str, Enum):
    """Stable codes attached to every diagnostic the pipeline reports."""

    MALFORMED_MODEL = "MALFORMED_MODEL"
    UNRECOGNIZED_TYPE = "UNRECOGNIZED_TYPE"
    UNRESOLVED_NAME = "UNRESOLVED_NAME"
    COMPLETED_FRAGMENT = "COMPLETED_FRAGMENT"
    EMISSION_FAILED = "EMISSION_FAILED"
    WRITE_FAILED = "WRITE_FAILED"
    SYNTAX_ERROR = "SYNTAX_ERROR"
    MISSING_ANNOTATION = "MISSING_ANNOTATION"
    ARITY_MISMATCH = "ARITY_MISMATCH"
    INCOMPLETE_DESCRIPTIVE_TYPE = "INCOMPLETE_DESCRIPTIVE_TYPE"
    UNCONVERTED_UNION = "UNCONVERTED_UNION"
    UNREADABLE_FILE = "UNREADABLE_FILE"


@dataclass(frozen=True)
class ErrorTemplate:
    """Default severity, message, and recovery hints for an error code."""

    severity: Severity
    message: str
    recovery: Sequence[str] = ()


_TEMPLATES: Mapping[ErrorCode, ErrorTemplate] = {
    ErrorCode.MALFORMED_MODEL: ErrorTemplate(
        severity=Severity.ERROR,
        message="API description failed shape validation.",
        recovery=("Fix the description; no module is generated from a malformed model.",),
    ),
    ErrorCode.UNRECOGNIZED_TYPE: ErrorTemplate(
        severity=Severity.ERROR,
        message="Type token could not be classified.",
        recovery=(
            "Complete the type in the description or add it to EMMYGEN_DESCRIPTIVE_TYPES.",
        ),
    ),
    ErrorCode.UNRESOLVED_NAME: ErrorTemplate(
        severity=Severity.WARNING,
        message="Type name is not defined by the loaded model.",
        recovery=("The name is emitted unqualified; check for typos.",),
    ),
    ErrorCode.COMPLETED_FRAGMENT: ErrorTemplate(
        severity=Severity.WARNING,
        message="Truncated descriptive type was completed.",
        recovery=("Write the full descriptive type in the description.",),
    ),
    ErrorCode.EMISSION_FAILED: ErrorTemplate(
        severity=Severity.ERROR,
        message="Module could not be rendered.",
        recovery=("The module file was not written; other modules are unaffected.",),
    ),
    ErrorCode.WRITE_FAILED: ErrorTemplate(
        severity=Severity.ERROR,
        message="Module file could not be written.",
        recovery=("Check the output directory; other modules are unaffected.",),
    ),
    ErrorCode.SYNTAX_ERROR: ErrorTemplate(
        severity=Severity.ERROR,
        message="File is not valid Lua.",
    ),
    ErrorCode.MISSING_ANNOTATION: ErrorTemplate(
        severity=Severity.ERROR,
        message="Required annotation is missing.",
    ),
    ErrorCode.ARITY_MISMATCH: ErrorTemplate(
        severity=Severity.ERROR,
        message="Annotations do not match the declared parameters.",
    ),
    ErrorCode.INCOMPLETE_DESCRIPTIVE_TYPE: ErrorTemplate(
        severity=Severity.ERROR,
        message="Type is a bare fragment of a descriptive primitive.",
        recovery=("Emit the full descriptive type, e.g. 'light userdata'.",),
    ),
    ErrorCode.UNCONVERTED_UNION: ErrorTemplate(
        severity=Severity.ERROR,
        message="Union type was not converted to '|' syntax.",
    ),
    ErrorCode.UNREADABLE_FILE: ErrorTemplate(
        severity=Severity.ERROR,
        message="File could not be read.",
    ),
}


def _resolve_template(code: ErrorCode) -> ErrorTemplate:
    try:
        return _TEMPLATES[code]
    except KeyError:  # pragma: no cover - every code has a template
        raise ValueError(f"No error template registered for {code!s}") from None


def make_error(
    code: ErrorCode,
    message: Optional[str] = None,
    *,
    recovery: Optional[Iterable[str]] = None,
    severity: Optional[Severity] = None,
) -> Dict[str, object]:
    """Create a JSON-serialisable error dict."""

    template = _resolve_template(code)
    resolved_message = message if message is not None else template.message
    resolved_severity = severity if severity is not None else template.severity
    resolved_recovery: List[str] = list(recovery) if recovery is not None else list(
        template.recovery
    )
    payload: MutableMapping[str, object] = {
        "code": code.value,
        "severity": resolved_severity.value,
        "message": resolved_message,
        "recovery": resolved_recovery,
    }
    return dict(payload)


@dataclass(frozen=True)
class Diagnostic:
    """One finding, attached to a module, function or file."""

    code: ErrorCode
    message: str
    subject: str = ""
    line: Optional[int] = None
    text: Optional[str] = None
    severity: Optional[Severity] = None

    @property
    def level(self) -> Severity:
        if self.severity is not None:
            return self.severity
        return _resolve_template(self.code).severity

    @property
    def is_error(self) -> bool:
        return self.level is Severity.ERROR

    def describe(self) -> str:
        location = self.subject
        if self.line is not None:
            location = f"{location}:{self.line}" if location else f"line {self.line}"
        prefix = f"{location}: " if location else ""
        return f"{prefix}{self.message}"

    def to_dict(self) -> Dict[str, object]:
        payload = make_error(self.code, self.message, severity=self.level)
        payload["subject"] = self.subject
        payload["line"] = self.line
        payload["text"] = self.text
        return payload


class GeneratorError(Exception):
    """Base class for pipeline failures carrying an :class:`ErrorCode`."""

    code: ErrorCode = ErrorCode.EMISSION_FAILED

    def diagnostic(self) -> Diagnostic:
        return Diagnostic(code=self.code, message=str(self))


class MalformedModelError(GeneratorError):
    """Raised when the API description violates its required shape."""

    code = ErrorCode.MALFORMED_MODEL

    def __init__(self, problems: Sequence[str]):
        self.problems = tuple(problems)
        summary = "; ".join(self.problems[:5])
        if len(self.problems) > 5:
            summary += f"; ... {len(self.problems) - 5} more"
        super().__init__(f"malformed API description: {summary}")


class UnrecognizedTypeError(GeneratorError):
    """Raised in strict mode when a raw type token cannot be classified."""

    code = ErrorCode.UNRECOGNIZED_TYPE

    def __init__(self, token: str, raw: str, reason: str):
        super().__init__(f"unrecognized type {token!r} in {raw!r}: {reason}")
        self.token = token
        self.raw = raw
        self.reason = reason


class EmissionError(GeneratorError):
    """Raised when a module cannot be rendered; only that module is skipped."""

    code = ErrorCode.EMISSION_FAILED

    def __init__(self, subject: str, message: str):
        super().__init__(f"{subject}: {message}")
        self.subject = subject
        self.reason = message

    def diagnostic(self) -> Diagnostic:
        return Diagnostic(code=self.code, message=self.reason, subject=self.subject)


class ValidationFailure(GeneratorError):
    """Raised on request when emitted files fail validation."""

    code = ErrorCode.SYNTAX_ERROR

    def __init__(self, failures: Sequence[object]):
        self.failures = tuple(failures)
        super().__init__(f"{len(self.failures)} file(s) failed validation")


__all__ = [
    "Diagnostic",
    "EmissionError",
    "ErrorCode",
    "ErrorTemplate",
    "GeneratorError",
    "MalformedModelError",
    "Severity",
    "UnrecognizedTypeError",
    "ValidationFailure",
    "make_error",
]
