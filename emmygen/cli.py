"""Command line entry point: ``emmygen generate`` and ``emmygen validate``."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

import httpx

from .features.loader import build_type_index, load_model, read_description
from .features.normalizer import normalize_module, type_census
from .features.validator import validate_directory
from .model.entities import Module, TypeIndex
from .model.report import GenerationReport, ValidationReport
from .orchestrator.aggregator import format_summary, summarize
from .orchestrator.runner import generate_api
from .utils import config
from .utils.errors import Diagnostic, MalformedModelError, ValidationFailure
from .utils.logging import RunContext, configure_root, run_scope

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    """Create the ``emmygen`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="emmygen",
        description="Generate and check LuaCATS/EmmyLua annotations for the LÖVE API",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate one annotation file per module")
    generate.add_argument(
        "--input",
        required=True,
        help="API description as a JSON file path or http(s) URL",
    )
    generate.add_argument(
        "output_dir",
        nargs="?",
        default=str(config.OUTPUT_DIR),
        help=f"Output directory, default: {config.OUTPUT_DIR}",
    )
    generate.add_argument(
        "--strict",
        action="store_true",
        default=config.STRICT_TYPES,
        help="Keep truncated descriptive types instead of completing them",
    )
    generate.add_argument(
        "--workers",
        type=int,
        default=config.MAX_WORKERS,
        help=f"Worker threads, default: {config.MAX_WORKERS}",
    )
    generate.add_argument(
        "--no-validate",
        dest="validate",
        action="store_false",
        help="Skip validating the generated files",
    )

    validate = commands.add_parser("validate", help="Validate previously generated files")
    validate.add_argument(
        "api_dir",
        nargs="?",
        default=str(config.OUTPUT_DIR),
        help=f"Directory to check, default: {config.OUTPUT_DIR}",
    )
    validate.add_argument(
        "--workers",
        type=int,
        default=config.MAX_WORKERS,
        help=f"Worker threads, default: {config.MAX_WORKERS}",
    )

    for command in (generate, validate):
        command.add_argument("--json", action="store_true", help="Print the summary as JSON")
        command.add_argument(
            "--debug",
            action="store_true",
            help="Enable debug logging and print every diagnostic",
        )
    return parser


def _print_diagnostics(diagnostics: Iterable[Diagnostic], stream: TextIO) -> None:
    for diagnostic in diagnostics:
        print(f"[{diagnostic.level.value}] {diagnostic.code.value} {diagnostic.describe()}", file=stream)
        if diagnostic.text:
            print(f"    {diagnostic.text}", file=stream)


def _validation_diagnostics(report: ValidationReport) -> List[Diagnostic]:
    items = list(report.errors)
    for file_report in report.files:
        items.extend(file_report.diagnostics)
    return items


def _print_census(root: Module, index: TypeIndex, context: RunContext, stream: TextIO) -> None:
    normalized = [normalize_module(module, index, context)[0] for module in root.walk()]
    census = type_census(normalized, index, context)
    sections = (
        ("Defined types", census.defined),
        ("Referenced types", census.referenced),
        ("Descriptive types", census.descriptive),
        ("Unresolved types", census.unresolved),
    )
    for title, names in sections:
        print(f"{title} ({len(names)}):", file=stream)
        for name in names:
            print(f"  - {name}", file=stream)


def _print_result(result: dict, *, as_json: bool, stream: TextIO) -> None:
    if as_json:
        print(json.dumps(result, indent=2, sort_keys=True), file=stream)
    else:
        print(format_summary(result), file=stream)


def _exit_status(
    generation: Optional[GenerationReport],
    validation: Optional[ValidationReport],
    context: RunContext,
) -> int:
    if validation is not None:
        try:
            validation.raise_for_failures()
        except ValidationFailure as exc:
            context.log(
                logging.ERROR,
                "validation.failed",
                extra={"failures": len(exc.failures), "directory": validation.directory},
            )
            return EXIT_FAILED
    if generation is not None and not generation.ok:
        return EXIT_FAILED
    return EXIT_OK


def _run_generate(args: argparse.Namespace, logger: logging.Logger, stream: TextIO) -> int:
    with run_scope(
        "generate",
        logger=logger,
        strict=args.strict,
        verbose=args.debug,
        max_workers=args.workers,
    ) as context:
        try:
            description = read_description(args.input)
        except (OSError, ValueError, httpx.HTTPError) as exc:
            context.log(logging.ERROR, "input.unreadable", extra={"source": args.input, "reason": str(exc)})
            print(f"error: cannot read {args.input}: {exc}", file=sys.stderr)
            return EXIT_BAD_INPUT
        try:
            root = load_model(description, context)
        except MalformedModelError as exc:
            context.log(logging.ERROR, "model.malformed", extra={"problems": len(exc.problems)})
            print("error: malformed API description", file=sys.stderr)
            for problem in exc.problems:
                print(f"  {problem}", file=sys.stderr)
            return EXIT_BAD_INPUT

        index = build_type_index(root, context.namespace)
        output_dir = Path(args.output_dir)
        generation = generate_api(root, output_dir, context, index=index)
        validation = validate_directory(output_dir, context) if args.validate else None

        if args.debug:
            _print_census(root, index, context, stream)
            _print_diagnostics(generation.diagnostics, stream)
            if validation is not None:
                _print_diagnostics(_validation_diagnostics(validation), stream)

        result = summarize(generation, validation)
        _print_result(result, as_json=args.json, stream=stream)
        return _exit_status(generation, validation, context)


def _run_validate(args: argparse.Namespace, logger: logging.Logger, stream: TextIO) -> int:
    with run_scope("validate", logger=logger, verbose=args.debug, max_workers=args.workers) as context:
        validation = validate_directory(Path(args.api_dir), context)
        if args.debug:
            _print_diagnostics(_validation_diagnostics(validation), stream)
        result = summarize(None, validation)
        _print_result(result, as_json=args.json, stream=stream)
        return _exit_status(None, validation, context)


def run(
    args: argparse.Namespace,
    *,
    logger: logging.Logger,
    stream: Optional[TextIO] = None,
) -> int:
    """Execute a parsed command and return the process exit status."""
    if args.debug:
        logger.setLevel(logging.DEBUG)
    out = stream if stream is not None else sys.stdout
    if args.command == "generate":
        return _run_generate(args, logger, out)
    return _run_validate(args, logger, out)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_root(logging.DEBUG if args.debug else logging.WARNING)
    return run(args, logger=logging.getLogger("emmygen"))


__all__ = ["build_parser", "main", "run"]


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
