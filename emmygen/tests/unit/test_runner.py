from __future__ import annotations

import os
from pathlib import Path

import pytest

from emmygen.features.loader import load_model
from emmygen.features.validator import validate_directory
from emmygen.orchestrator import runner
from emmygen.orchestrator.runner import generate_api, module_path, write_atomic
from emmygen.tests.fixtures.sample_description import sample_description
from emmygen.utils.errors import ErrorCode

MODULE_FILES = ["love.audio.lua", "love.data.lua", "love.lua", "love.system.lua"]


def _files(directory: Path) -> list[str]:
    return sorted(path.name for path in directory.iterdir())


def test_one_file_per_module(tmp_path: Path, context) -> None:
    root = load_model(sample_description(), context)

    report = generate_api(root, tmp_path, context)

    assert report.ok
    assert [outcome.module for outcome in report.outcomes] == [
        "love",
        "love.audio",
        "love.data",
        "love.system",
    ]
    assert report.outcomes[1].path == tmp_path / "love.audio.lua"
    assert _files(tmp_path) == MODULE_FILES


def test_generated_files_pass_validation(tmp_path: Path, context) -> None:
    generate_api(load_model(sample_description(), context), tmp_path, context)

    report = validate_directory(tmp_path, context)

    assert report.ok
    assert [item.path for item in report.files] == MODULE_FILES


def test_regeneration_is_byte_identical(tmp_path: Path, context) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    generate_api(load_model(sample_description(), context), first, context)
    generate_api(load_model(sample_description(), context), second, context)
    before = {name: (first / name).read_bytes() for name in MODULE_FILES}
    generate_api(load_model(sample_description(), context), first, context)

    for name in MODULE_FILES:
        assert (second / name).read_bytes() == before[name]
        assert (first / name).read_bytes() == before[name]
    assert _files(first) == MODULE_FILES


def test_emission_failure_only_skips_its_module(tmp_path: Path, context) -> None:
    description = sample_description()
    description["modules"][2]["functions"][0]["variants"][0]["arguments"] = [
        {"type": "string", "name": "end"}
    ]

    report = generate_api(load_model(description, context), tmp_path, context)

    assert not report.ok
    assert [outcome.module for outcome in report.failed] == ["love.system"]
    failure = report.failed[0]
    assert failure.path is None
    assert failure.error is not None
    assert failure.error.code is ErrorCode.EMISSION_FAILED
    assert failure.error.subject == "love.system.getClipboardText"
    assert _files(tmp_path) == ["love.audio.lua", "love.data.lua", "love.lua"]
    assert validate_directory(tmp_path, context).ok


def test_lenient_run_completes_fragments(tmp_path: Path, context) -> None:
    description = sample_description()
    description["modules"][1]["types"][0]["functions"][0]["variants"][0]["returns"][0]["type"] = "light"

    report = generate_api(load_model(description, context), tmp_path, context)

    assert report.ok
    codes = [item.code for item in report.outcomes[2].diagnostics]
    assert codes == [ErrorCode.COMPLETED_FRAGMENT]
    assert "---@return light userdata\n" in (tmp_path / "love.data.lua").read_text(encoding="utf-8")
    assert validate_directory(tmp_path, context).ok


def test_strict_run_keeps_fragments_and_validation_catches_them(tmp_path: Path, strict_context) -> None:
    description = sample_description()
    description["modules"][1]["types"][0]["functions"][0]["variants"][0]["returns"][0]["type"] = "light"

    report = generate_api(load_model(description, strict_context), tmp_path, strict_context)

    diagnostics = report.outcomes[2].diagnostics
    assert [item.code for item in diagnostics] == [ErrorCode.UNRECOGNIZED_TYPE]
    assert diagnostics[0].is_error
    assert "---@return light\n" in (tmp_path / "love.data.lua").read_text(encoding="utf-8")
    validation = validate_directory(tmp_path, strict_context)
    assert not validation.ok
    failed = [item for item in validation.files if not item.ok]
    assert [item.path for item in failed] == ["love.data.lua"]
    assert failed[0].diagnostics[0].code is ErrorCode.INCOMPLETE_DESCRIPTIVE_TYPE


def test_module_path_uses_the_dotted_name() -> None:
    assert module_path(Path("out"), "love.audio") == Path("out") / "love.audio.lua"


def test_write_atomic_replaces_content_with_lf_endings(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "love.lua"
    write_atomic(target, "old\n")
    write_atomic(target, "a\nb\n")

    assert target.read_bytes() == b"a\nb\n"
    assert _files(target.parent) == ["love.lua"]


def test_write_atomic_cleans_up_after_failure(tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "love.lua"
    target.write_text("original\n", encoding="utf-8")

    def fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(runner.os, "replace", fail)
    with pytest.raises(OSError):
        write_atomic(target, "new\n")
    monkeypatch.undo()

    assert target.read_text(encoding="utf-8") == "original\n"
    assert os.listdir(tmp_path) == ["love.lua"]


def test_write_failure_only_fails_its_module(tmp_path: Path, context) -> None:
    (tmp_path / "love.audio.lua").mkdir()

    report = generate_api(load_model(sample_description(), context), tmp_path, context)

    assert [outcome.module for outcome in report.failed] == ["love.audio"]
    failure = report.failed[0]
    assert failure.error is not None
    assert failure.error.code is ErrorCode.WRITE_FAILED
    assert failure.error.subject == str(tmp_path / "love.audio.lua")
    assert [outcome.ok for outcome in report.outcomes] == [True, False, True, True]
    for name in ("love.lua", "love.data.lua", "love.system.lua"):
        assert (tmp_path / name).is_file()
    assert not [name for name in os.listdir(tmp_path) if name.endswith(".tmp")]


def test_failed_module_leaves_no_file_from_an_earlier_run(tmp_path: Path, context) -> None:
    generate_api(load_model(sample_description(), context), tmp_path, context)
    assert (tmp_path / "love.system.lua").is_file()
    description = sample_description()
    description["modules"][2]["functions"][0]["variants"][0]["arguments"] = [
        {"type": "string", "name": "end"}
    ]

    report = generate_api(load_model(description, context), tmp_path, context)

    assert [outcome.module for outcome in report.failed] == ["love.system"]
    assert not (tmp_path / "love.system.lua").exists()
    assert _files(tmp_path) == ["love.audio.lua", "love.data.lua", "love.lua"]
