from __future__ import annotations

import json

import httpx
import pytest

from emmygen.features.loader import build_type_index, load_model, read_description
from emmygen.tests.fixtures.sample_description import SAMPLE_DESCRIPTION, sample_description
from emmygen.utils.errors import MalformedModelError


def test_load_model_builds_module_tree(context) -> None:
    root = load_model(sample_description(), context)

    assert root.name == "love"
    assert [module.name for module in root.walk()] == [
        "love",
        "love.audio",
        "love.data",
        "love.system",
    ]
    audio = root.submodules[0]
    assert [cls.name for cls in audio.classes] == ["Source"]
    assert [enum.name for enum in audio.enums] == ["SourceType", "FilterType"]
    assert [constant.value for constant in audio.enums[0].constants] == ["static", "stream"]
    assert audio.classes[0].supertypes == ("Object",)


def test_methods_and_module_functions_carry_their_owner(context) -> None:
    audio = load_model(sample_description(), context).submodules[0]

    play = audio.classes[0].methods[0]
    assert play.owner == "Source"
    assert play.is_method
    assert play.call_separator == ":"
    assert play.qualified_name == "Source.play"

    new_source = audio.functions[0]
    assert new_source.owner == "love.audio"
    assert new_source.call_separator == "."
    assert new_source.qualified_name == "love.audio.newSource"


def test_comma_joined_parameter_names_expand(context) -> None:
    set_position = load_model(sample_description(), context).submodules[0].classes[0].methods[1]

    params = set_position.variants[0].params
    assert [param.name for param in params] == ["x", "y", "z"]
    assert params[0].description == params[1].description == "The position."
    assert params[0].raw_type == params[1].raw_type == "number"
    assert params[2].optional
    assert params[2].default == "0"
    assert not params[0].optional


def test_inline_table_arguments_become_table_literal_source(context) -> None:
    set_filter = load_model(sample_description(), context).submodules[0].classes[0].methods[2]

    param = set_filter.variants[0].params[0]
    assert param.raw_type == "{type:FilterType, volume?:number}"
    assert set_filter.variants[1].params == ()
    assert set_filter.variants[1].description == "Disables filtering on the Source."


def test_varargs_argument_is_marked(context) -> None:
    play = load_model(sample_description(), context).submodules[0].functions[1]

    variant = play.variants[1]
    assert variant.params[0].name == "..."
    assert variant.has_varargs
    assert not play.variants[0].has_varargs


def test_callbacks_are_accepted_but_not_loaded(context) -> None:
    root = load_model(sample_description(), context)

    assert [function.name for function in root.functions] == ["getVersion"]


def test_load_model_does_not_mutate_input(context) -> None:
    description = sample_description()

    load_model(description, context)

    assert description == SAMPLE_DESCRIPTION


def test_schema_violations_raise_malformed_model_error(context) -> None:
    description = sample_description()
    del description["modules"][0]["functions"][0]["variants"]

    with pytest.raises(MalformedModelError) as excinfo:
        load_model(description, context)

    assert "/modules/0/functions/0: 'variants' is a required property" in excinfo.value.problems


def test_all_schema_problems_are_reported_together(context) -> None:
    description = {"functions": [{"name": "a", "variants": []}, {"name": "b"}]}

    with pytest.raises(MalformedModelError) as excinfo:
        load_model(description, context)

    assert len(excinfo.value.problems) == 2


def test_optional_flag_must_agree_with_default(context) -> None:
    description = sample_description()
    description["modules"][2]["functions"][1]["variants"][0]["arguments"][0]["optional"] = True

    with pytest.raises(MalformedModelError) as excinfo:
        load_model(description, context)

    assert excinfo.value.problems[0].startswith("/modules/2/functions/1/variants/0/arguments/0:")


def test_consistent_optional_flag_is_accepted(context) -> None:
    description = sample_description()
    argument = description["modules"][0]["types"][0]["functions"][1]["variants"][0]["arguments"][1]
    argument["optional"] = True

    root = load_model(description, context)

    assert root.submodules[0].classes[0].methods[1].variants[0].params[2].optional


def test_empty_name_after_comma_expansion_is_malformed(context) -> None:
    description = sample_description()
    description["modules"][2]["functions"][1]["variants"][0]["arguments"][0]["name"] = "url, "

    with pytest.raises(MalformedModelError) as excinfo:
        load_model(description, context)

    assert "empty parameter name" in excinfo.value.problems[0]


def test_non_mapping_description_is_rejected(context) -> None:
    with pytest.raises(MalformedModelError):
        load_model([], context)  # type: ignore[arg-type]


def test_build_type_index_collects_across_modules(context) -> None:
    root = load_model(sample_description(), context)

    index = build_type_index(root, "love")

    assert index.classes == frozenset({"Object", "Source", "Data"})
    assert index.enums == frozenset({"SourceType", "FilterType"})
    assert "Data" in index
    assert "number" not in index
    assert index.defined == index.classes | index.enums


def test_read_description_from_path_and_file_url(tmp_path) -> None:
    path = tmp_path / "love_api.json"
    path.write_text(json.dumps(SAMPLE_DESCRIPTION), encoding="utf-8")

    assert read_description(str(path)) == SAMPLE_DESCRIPTION
    assert read_description(path.as_uri()) == SAMPLE_DESCRIPTION


def test_read_description_rejects_unknown_scheme() -> None:
    with pytest.raises(ValueError):
        read_description("ftp://example.com/love_api.json")


def test_read_description_over_http() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/love_api.json":
            return httpx.Response(200, json=SAMPLE_DESCRIPTION)
        return httpx.Response(404, text="not found")

    transport = httpx.MockTransport(handler)

    assert read_description("https://example.com/love_api.json", transport=transport) == SAMPLE_DESCRIPTION
    with pytest.raises(httpx.HTTPStatusError):
        read_description("https://example.com/missing.json", transport=transport)
