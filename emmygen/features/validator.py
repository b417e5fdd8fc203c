"""Check emitted annotation files without executing them.

Four independent checks run on every file:

* syntax: the Lua source parses (``luaparser``); Pygments ``LuaLexer`` tokens
  locate unbalanced brackets, block keywords and string delimiters;
* completeness: a ``---@meta`` header exists and every ``function`` declaration
  carries ``@param``/``@vararg`` lines matching its parameter list;
* descriptive types: no annotation type is a bare fragment such as ``light``;
* unions: no annotation type still contains ``or``/``and`` outside braces.

A bad file never stops the run; every finding lands in the report.
"""
from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence, Tuple

from luaparser import ast
from pygments.lexers import LuaLexer
from pygments.token import Comment, Error, Keyword, Punctuation, String

from ..model.report import FileReport, ValidationReport
from ..utils import config
from ..utils.errors import Diagnostic, ErrorCode
from ..utils.logging import RunContext
from .emitter import HEADER_MARKER
from .normalizer import OPTIONAL_SUFFIX, split_top_level

logger = logging.getLogger("emmygen.validator")

FILE_SUFFIX = ".lua"

_BRACKETS = {")": "(", "]": "[", "}": "{"}
_BLOCK_OPEN = frozenset({"function", "do", "if"})
_WORD_UNIONS = (" or ", " and ")
_DECLARATION = re.compile(r"^function\s+([A-Za-z_][\w.:]*)\s*\((.*)\)\s*end\s*$")
_ANNOTATION_TAG = re.compile(r"^---@(\w+)\s*(.*)$")
_PARSER_POSITION = re.compile(r"\((\d+),\s*\d+\)|line (\d+)")


def _line_of(text: str, index: int) -> int:
    return text.count("\n", 0, index) + 1


def _line_text(lines: Sequence[str], number: int) -> str:
    if 1 <= number <= len(lines):
        return lines[number - 1]
    return ""


def _token_findings(text: str) -> List[Diagnostic]:
    """Tokenize *text* and report misplaced brackets, blocks and quotes by position."""

    lines = text.split("\n")
    diagnostics: List[Diagnostic] = []

    def report(index: int, message: str) -> None:
        number = _line_of(text, index)
        diagnostics.append(
            Diagnostic(
                code=ErrorCode.SYNTAX_ERROR,
                message=message,
                line=number,
                text=_line_text(lines, number),
            )
        )

    brackets: List[Tuple[str, int]] = []
    blocks: List[Tuple[str, int]] = []
    open_quotes: dict[str, int] = {}
    for index, token, value in LuaLexer().get_tokens_unprocessed(text):
        if token in Comment:
            continue
        if token in Error:
            report(index, f"unexpected character {value!r}")
        elif (token is String.Double and value == '"') or (token is String.Single and value == "'"):
            if value in open_quotes:
                open_quotes.pop(value)
            else:
                open_quotes[value] = index
        elif token in Punctuation:
            for offset, char in enumerate(value):
                if char in "([{":
                    brackets.append((char, index + offset))
                elif char in _BRACKETS:
                    if not brackets or brackets[-1][0] != _BRACKETS[char]:
                        report(index + offset, f"unmatched {char!r}")
                    else:
                        brackets.pop()
        elif token in Keyword:
            if value in _BLOCK_OPEN or value == "repeat":
                blocks.append((value, index))
            elif value in {"end", "until"}:
                expected_repeat = value == "until"
                if not blocks or (blocks[-1][0] == "repeat") != expected_repeat:
                    report(index, f"unexpected {value!r}")
                else:
                    blocks.pop()
    for quote, index in sorted(open_quotes.items(), key=lambda item: item[1]):
        report(index, f"unterminated string starting with {quote}")
    for char, index in brackets:
        report(index, f"unclosed {char!r}")
    for keyword, index in blocks:
        report(index, f"{keyword!r} block is never closed")
    return diagnostics


def _parser_finding(text: str) -> Optional[Diagnostic]:
    try:
        ast.parse(text)
    except Exception as exc:  # luaparser raises unrelated types for syntax errors
        detail = str(exc).strip()
        message = detail.splitlines()[0] if detail else type(exc).__name__
        position = _PARSER_POSITION.search(message)
        number = None
        if position is not None:
            number = int(position.group(1) or position.group(2))
        return Diagnostic(
            code=ErrorCode.SYNTAX_ERROR,
            message=f"not valid Lua: {message}",
            line=number,
            text=_line_text(text.split("\n"), number) if number is not None else None,
        )
    return None


def check_syntax(text: str) -> List[Diagnostic]:
    """Parse *text* as Lua and report where it fails.

    Token-level findings pinpoint unbalanced brackets, blocks and quotes; when
    there are none the parser's own error is reported instead.
    """

    diagnostics = _token_findings(text)
    finding = _parser_finding(text)
    if finding is not None and not diagnostics:
        diagnostics.append(finding)
    return diagnostics


def _split_description(rest: str) -> str:
    return rest.split(" # ", 1)[0].strip()


def _overload_types(signature: str) -> Iterator[str]:
    """Yield the parameter and return types of ``fun(...):...``."""

    if not signature.startswith("fun("):
        return
    depth = 0
    close = -1
    for index in range(3, len(signature)):
        char = signature[index]
        if char in "({":
            depth += 1
        elif char in ")}":
            depth -= 1
            if depth == 0:
                close = index
                break
    if close < 0:
        return
    for entry in split_top_level(signature[4:close], (",",)):
        parts = split_top_level(entry, (":",), maxsplit=1)
        if len(parts) == 2 and parts[0].strip() != "self":
            yield parts[1].strip()
    returns = signature[close + 1:]
    if returns.startswith(":"):
        for entry in split_top_level(returns[1:], (",",)):
            yield entry.strip()


def annotation_types(line: str) -> Tuple[str, ...]:
    """Return the type portions of one annotation line (empty for other lines)."""

    match = _ANNOTATION_TAG.match(line.strip())
    if match is None:
        return ()
    tag, rest = match.groups()
    if tag == "param":
        parts = rest.split(None, 1)
        return (_split_description(parts[1]),) if len(parts) == 2 else ()
    if tag == "vararg":
        return (_split_description(rest),)
    if tag == "return":
        return tuple(entry.strip() for entry in split_top_level(_split_description(rest), (",",)))
    if tag == "overload":
        return tuple(_overload_types(rest.strip()))
    return ()


def _type_tokens(type_text: str) -> Iterator[str]:
    """Yield the atomic names inside one annotation type, descending into tables."""

    for alternative in split_top_level(type_text, ("|",) + _WORD_UNIONS):
        token = alternative.strip()
        if token.endswith(OPTIONAL_SUFFIX):
            token = token[:-1].rstrip()
        if token.startswith("..."):
            token = token[3:].strip()
        if token.startswith("{") and token.endswith("}"):
            for entry in split_top_level(token[1:-1], (",",)):
                parts = split_top_level(entry, (":",), maxsplit=1)
                if len(parts) == 2:
                    yield from _type_tokens(parts[1])
        elif token.startswith("(") and token.endswith(")"):
            yield from _type_tokens(token[1:-1])
        elif token:
            yield token


def check_descriptive_types(
    text: str, fragments: Optional[Mapping[str, str]] = None
) -> List[Diagnostic]:
    table = fragments if fragments is not None else config.fragment_table()
    diagnostics: List[Diagnostic] = []
    for number, line in enumerate(text.split("\n"), start=1):
        for type_text in annotation_types(line):
            for token in _type_tokens(type_text):
                if token in table:
                    diagnostics.append(
                        Diagnostic(
                            code=ErrorCode.INCOMPLETE_DESCRIPTIVE_TYPE,
                            message=f"bare fragment {token!r} of {table[token]!r}",
                            line=number,
                            text=line,
                        )
                    )
    return diagnostics


def check_union_syntax(text: str) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for number, line in enumerate(text.split("\n"), start=1):
        for type_text in annotation_types(line):
            if len(split_top_level(type_text, _WORD_UNIONS, openers="{")) > 1:
                diagnostics.append(
                    Diagnostic(
                        code=ErrorCode.UNCONVERTED_UNION,
                        message=f"union not converted to '|': {type_text!r}",
                        line=number,
                        text=line,
                    )
                )
    return diagnostics


def _declared_params(params: str) -> List[str]:
    return [name.strip() for name in params.split(",") if name.strip()]


def check_annotations(text: str) -> List[Diagnostic]:
    """Check the header marker and that every declaration is fully annotated."""

    lines = text.split("\n")
    diagnostics: List[Diagnostic] = []
    if not any(line.strip() == HEADER_MARKER for line in lines):
        diagnostics.append(
            Diagnostic(
                code=ErrorCode.MISSING_ANNOTATION,
                message=f"missing {HEADER_MARKER} header",
                line=1,
                text=_line_text(lines, 1),
            )
        )
    for position, line in enumerate(lines):
        match = _DECLARATION.match(line.strip())
        if match is None:
            continue
        number = position + 1
        name, params = match.groups()
        block: List[str] = []
        cursor = position - 1
        while cursor >= 0 and lines[cursor].startswith("---"):
            block.append(lines[cursor])
            cursor -= 1
        block.reverse()
        declared = _declared_params(params)
        if not block:
            diagnostics.append(
                Diagnostic(
                    code=ErrorCode.MISSING_ANNOTATION,
                    message=f"{name} has no annotation block",
                    line=number,
                    text=line,
                )
            )
            continue
        annotated: List[str] = []
        returns = 0
        for entry in block:
            tag = _ANNOTATION_TAG.match(entry.strip())
            if tag is None:
                continue
            if tag.group(1) == "param":
                annotated.append(tag.group(2).split(None, 1)[0] if tag.group(2) else "")
            elif tag.group(1) == "vararg":
                annotated.append("...")
            elif tag.group(1) == "return":
                returns += 1
        if declared and not annotated:
            diagnostics.append(
                Diagnostic(
                    code=ErrorCode.MISSING_ANNOTATION,
                    message=f"{name} declares {len(declared)} parameter(s) without annotations",
                    line=number,
                    text=line,
                )
            )
        elif annotated != declared:
            diagnostics.append(
                Diagnostic(
                    code=ErrorCode.ARITY_MISMATCH,
                    message=f"{name} annotates {annotated} but declares {declared}",
                    line=number,
                    text=line,
                )
            )
        if returns > 1:
            diagnostics.append(
                Diagnostic(
                    code=ErrorCode.ARITY_MISMATCH,
                    message=f"{name} has {returns} @return lines",
                    line=number,
                    text=line,
                )
            )
    return diagnostics


def validate_text(
    text: str, *, fragments: Optional[Mapping[str, str]] = None
) -> Tuple[Diagnostic, ...]:
    """Run every check on *text*; diagnostics are ordered by line."""

    diagnostics = (
        check_syntax(text)
        + check_annotations(text)
        + check_descriptive_types(text, fragments)
        + check_union_syntax(text)
    )
    return tuple(sorted(diagnostics, key=lambda item: (item.line or 0, item.code.value)))


def validate_file(
    path: Path, root: Path, *, fragments: Optional[Mapping[str, str]] = None
) -> FileReport:
    relative = path.relative_to(root).as_posix()
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        return FileReport(
            path=relative,
            diagnostics=(
                Diagnostic(code=ErrorCode.UNREADABLE_FILE, message=str(exc), subject=relative),
            ),
        )
    diagnostics = tuple(
        Diagnostic(
            code=item.code,
            message=item.message,
            subject=relative,
            line=item.line,
            text=item.text,
            severity=item.severity,
        )
        for item in validate_text(text, fragments=fragments)
    )
    return FileReport(path=relative, diagnostics=diagnostics)


def validate_directory(directory: Path, context: Optional[RunContext] = None) -> ValidationReport:
    """Validate every ``*.lua`` file below *directory*.

    Files are checked concurrently, and the report lists them sorted by
    relative path whatever order the workers finish in.
    """

    directory = Path(directory)
    label = str(directory)
    if not directory.is_dir():
        return ValidationReport(
            directory=label,
            errors=(
                Diagnostic(
                    code=ErrorCode.UNREADABLE_FILE,
                    message="directory does not exist",
                    subject=label,
                ),
            ),
        )
    paths = sorted(
        (path for path in directory.rglob(f"*{FILE_SUFFIX}") if path.is_file()),
        key=lambda path: path.relative_to(directory).as_posix(),
    )
    if not paths:
        return ValidationReport(
            directory=label,
            errors=(
                Diagnostic(
                    code=ErrorCode.UNREADABLE_FILE,
                    message=f"no {FILE_SUFFIX} files found",
                    subject=label,
                ),
            ),
        )
    fragments = context.fragments if context is not None else config.fragment_table()
    workers = context.max_workers if context is not None else config.MAX_WORKERS
    with ThreadPoolExecutor(max_workers=workers) as pool:
        files = tuple(
            pool.map(lambda path: validate_file(path, directory, fragments=fragments), paths)
        )
    report = ValidationReport(directory=label, files=files)
    logger.info(
        "validate.finish",
        extra={"files": len(files), "passed": report.passed, "failed": report.failed},
    )
    return report


__all__ = [
    "FILE_SUFFIX",
    "annotation_types",
    "check_annotations",
    "check_descriptive_types",
    "check_syntax",
    "check_union_syntax",
    "validate_directory",
    "validate_file",
    "validate_text",
]
