"""Logging helpers and the per-run context threaded through the pipeline."""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from time import monotonic
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple

from . import config
from .errors import Diagnostic


def configure_root(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format="%(levelname)s:%(name)s:%(message)s")


@contextmanager
def scoped_timer(
    logger: logging.Logger, message: str, *, extra: Optional[Dict[str, object]] = None
) -> Iterator[None]:
    start = monotonic()
    try:
        yield
    finally:
        elapsed = monotonic() - start
        logger.debug("%s", message, extra={"duration_s": elapsed, **(extra or {})})


@dataclass(frozen=True, slots=True)
class RunContext:
    """Immutable settings for one generation or validation run.

    Stages receive the context explicitly and return their diagnostics as
    values; nothing in a run mutates shared state.
    """

    name: str
    run_id: str
    logger: logging.Logger
    namespace: str = config.NAMESPACE
    wiki_url: str = config.WIKI_URL
    strict: bool = config.STRICT_TYPES
    verbose: bool = False
    max_workers: int = config.MAX_WORKERS
    descriptive_primitives: Tuple[str, ...] = config.DESCRIPTIVE_PRIMITIVES
    metadata: Mapping[str, object] = field(default_factory=dict)

    @property
    def fragments(self) -> Mapping[str, str]:
        return config.fragment_table(self.descriptive_primitives)

    def extra(self, **values: object) -> Dict[str, object]:
        payload: Dict[str, object] = {"run_id": self.run_id, "run": self.name, **self.metadata}
        payload.update(values)
        return payload

    def log(
        self, level: int, message: str, *, extra: Optional[Mapping[str, object]] = None
    ) -> None:
        payload = self.extra(**(dict(extra) if extra else {}))
        self.logger.log(level, message, extra=payload)


def make_context(
    name: str,
    *,
    logger: Optional[logging.Logger] = None,
    namespace: Optional[str] = None,
    wiki_url: Optional[str] = None,
    strict: Optional[bool] = None,
    verbose: bool = False,
    max_workers: Optional[int] = None,
    descriptive_primitives: Optional[Iterable[str]] = None,
    extra: Optional[Mapping[str, object]] = None,
) -> RunContext:
    """Build a :class:`RunContext`, falling back to configured defaults."""

    return RunContext(
        name=name,
        run_id=str(uuid.uuid4()),
        logger=logger or logging.getLogger("emmygen.run"),
        namespace=namespace if namespace is not None else config.NAMESPACE,
        wiki_url=wiki_url if wiki_url is not None else config.WIKI_URL,
        strict=strict if strict is not None else config.STRICT_TYPES,
        verbose=verbose,
        max_workers=max(1, max_workers if max_workers is not None else config.MAX_WORKERS),
        descriptive_primitives=(
            tuple(descriptive_primitives)
            if descriptive_primitives is not None
            else config.DESCRIPTIVE_PRIMITIVES
        ),
        metadata=dict(extra or {}),
    )


@contextmanager
def run_scope(name: str, **options: object) -> Iterator[RunContext]:
    """Create a run context and log its start, finish and failures."""

    context = make_context(name, **options)  # type: ignore[arg-type]
    start = monotonic()
    context.log(logging.INFO, "run.start")
    try:
        with scoped_timer(context.logger, f"{name}.duration", extra=context.extra(event="timer")):
            yield context
    except Exception:
        context.logger.exception("run.error", extra=context.extra())
        raise
    finally:
        context.log(logging.INFO, "run.finish", extra={"duration_s": monotonic() - start})


def log_diagnostics(context: RunContext, diagnostics: Iterable[Diagnostic]) -> int:
    """Log *diagnostics*; they surface at WARNING/ERROR only in verbose runs."""

    count = 0
    for diagnostic in diagnostics:
        count += 1
        if context.verbose:
            level = logging.ERROR if diagnostic.is_error else logging.WARNING
        else:
            level = logging.DEBUG
        context.log(
            level,
            diagnostic.describe(),
            extra={"code": diagnostic.code.value, "line": diagnostic.line},
        )
    return count


__all__ = [
    "RunContext",
    "configure_root",
    "log_diagnostics",
    "make_context",
    "run_scope",
    "scoped_timer",
]
