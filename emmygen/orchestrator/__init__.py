"""Pipeline orchestration across modules and files."""

from .aggregator import format_summary, summarize
from .runner import generate_api, generate_module, module_path, write_atomic

__all__ = [
    "format_summary",
    "generate_api",
    "generate_module",
    "module_path",
    "summarize",
    "write_atomic",
]
