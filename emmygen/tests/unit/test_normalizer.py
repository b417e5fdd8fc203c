from __future__ import annotations

import pytest

from emmygen.features.loader import build_type_index, load_model
from emmygen.features.normalizer import (
    UNION_SEPARATORS,
    normalize_module,
    normalize_type,
    parse_type,
    render_annotation,
    render_type,
    split_top_level,
    type_census,
)
from emmygen.model import (
    NamedRef,
    Primitive,
    TableLiteral,
    TypeIndex,
    Union,
    Varargs,
)
from emmygen.tests.fixtures.sample_description import sample_description
from emmygen.utils.errors import ErrorCode, UnrecognizedTypeError


INDEX = TypeIndex(
    namespace="love",
    classes=frozenset({"Source", "Data"}),
    enums=frozenset({"FilterType"}),
)


def test_or_union_renders_with_pipe(context) -> None:
    expr, diagnostics = normalize_type("number or string", INDEX, context)

    assert expr == Union((Primitive("number"), Primitive("string")))
    assert render_type(expr) == "number|string"
    assert diagnostics == ()


@pytest.mark.parametrize(
    "raw",
    [
        "number or string or boolean",
        "Source or string",
        "number and string",
        "number|nil",
        "string or string or number",
        "{x:number or string} or Data",
    ],
)
def test_union_round_trip_keeps_every_alternative(raw: str, context) -> None:
    expr, _ = normalize_type(raw, INDEX, context)

    alternatives = split_top_level(render_type(expr), ("|",))
    expected = {part.strip() for part in split_top_level(raw, UNION_SEPARATORS)}
    assert len(alternatives) == len(set(alternatives))
    assert {alternative.removeprefix("love.") for alternative in alternatives} == {
        part.replace(" or ", "|") for part in expected
    }


def test_union_inside_table_literal_is_not_split(context) -> None:
    expr, _ = normalize_type("{x:number or string, y:Source} or nil", INDEX, context)

    assert isinstance(expr, Union)
    assert len(expr.alternatives) == 2
    assert isinstance(expr.alternatives[0], TableLiteral)
    assert render_type(expr) == "{x:number|string, y:love.Source}|nil"


def test_duplicate_alternatives_collapse_to_a_single_type(context) -> None:
    expr, _ = normalize_type("number or number", INDEX, context)

    assert expr == Primitive("number")


def test_named_refs_are_qualified_once(context) -> None:
    assert render_type(parse_type("Source", INDEX)) == "love.Source"
    assert render_type(parse_type("love.Source", INDEX)) == "love.Source"
    assert render_type(parse_type("string", INDEX)) == "string"
    assert parse_type("FilterType", INDEX) == NamedRef("FilterType", "love")


def test_unresolved_names_pass_through(context, verbose_context) -> None:
    expr, diagnostics = normalize_type("Mystery", INDEX, context)
    assert render_type(expr) == "Mystery"
    assert diagnostics == ()

    expr, diagnostics = normalize_type("Mystery", INDEX, verbose_context)
    assert render_type(expr) == "Mystery"
    assert [item.code for item in diagnostics] == [ErrorCode.UNRESOLVED_NAME]
    assert not diagnostics[0].is_error


def test_plural_names_fold_to_singular() -> None:
    assert parse_type("numbers", INDEX) == Primitive("number")
    assert render_type(parse_type("Sources", INDEX)) == "love.Source"
    assert parse_type("Sources or strings", INDEX) == Union(
        (NamedRef("Source", "love"), Primitive("string"))
    )


def test_descriptive_primitive_is_kept_whole(context) -> None:
    expr, diagnostics = normalize_type("light userdata", INDEX, context)

    assert expr == Primitive("light userdata")
    assert render_type(expr) == "light userdata"
    assert diagnostics == ()


def test_fragment_is_completed_with_a_warning(context) -> None:
    expr, diagnostics = normalize_type("light", INDEX, context)

    assert expr == Primitive("light userdata")
    assert [item.code for item in diagnostics] == [ErrorCode.COMPLETED_FRAGMENT]
    assert not diagnostics[0].is_error


def test_fragment_raises_in_strict_parse() -> None:
    with pytest.raises(UnrecognizedTypeError) as excinfo:
        parse_type("light or nil", INDEX, strict=True)

    assert excinfo.value.token == "light"
    assert excinfo.value.raw == "light or nil"


def test_strict_normalizer_reports_and_passes_fragment_through(strict_context) -> None:
    expr, diagnostics = normalize_type("light", INDEX, strict_context, subject="love.f(p)")

    assert render_type(expr) == "light"
    assert [item.code for item in diagnostics] == [ErrorCode.UNRECOGNIZED_TYPE]
    assert diagnostics[0].is_error
    assert diagnostics[0].subject == "love.f(p)"
    assert diagnostics[0].text == "light"


def test_fragment_inside_union_and_table_is_completed(context) -> None:
    expr, _ = normalize_type("{pointer:light} or nil", INDEX, context)

    assert render_type(expr) == "{pointer:light userdata}|nil"


def test_unbalanced_braces_are_reported_and_passed_through(context) -> None:
    expr, diagnostics = normalize_type("{x:number", INDEX, context)

    assert render_type(expr) == "{x:number"
    assert [item.code for item in diagnostics] == [ErrorCode.UNRECOGNIZED_TYPE]
    assert not diagnostics[0].is_error


def test_table_field_without_type_is_reported(context) -> None:
    expr, diagnostics = normalize_type("{x}", INDEX, context)

    assert render_type(expr) == "{x:any}"
    assert [item.code for item in diagnostics] == [ErrorCode.UNRECOGNIZED_TYPE]


def test_open_table_literal() -> None:
    expr = parse_type("{name:string, ...:any}", INDEX)

    assert isinstance(expr, TableLiteral)
    assert expr.is_open
    assert render_type(expr) == "{name:string, ...:any}"


def test_varargs_type() -> None:
    expr = parse_type("...number", INDEX)

    assert expr == Varargs(Primitive("number"))
    assert render_type(expr) == "...number"


def test_optional_suffix_is_applied_once_at_the_outermost_level() -> None:
    expr = parse_type("number or string", INDEX)

    assert render_annotation(expr, optional=True) == "number|string?"
    assert render_annotation(expr) == "number|string"


def test_split_top_level_respects_brace_depth() -> None:
    assert split_top_level("a or {b:c or d} or e", (" or ",)) == ["a", "{b:c or d}", "e"]
    assert split_top_level("a:b:c", (":",), maxsplit=1) == ["a", "b:c"]
    assert split_top_level("plain", (" or ",)) == ["plain"]


def test_split_top_level_can_nest_on_braces_only() -> None:
    assert split_top_level("(a or b) or c", (" or ",)) == ["(a or b)", "c"]
    assert split_top_level("(a or b) or {c or d}", (" or ",), openers="{") == [
        "(a",
        "b)",
        "{c or d}",
    ]


def _normalized_modules(context):
    root = load_model(sample_description(), context)
    index = build_type_index(root, context.namespace)
    return root, index, [normalize_module(module, index, context) for module in root.walk()]


def test_normalize_module_types_every_param_and_return(context) -> None:
    _, _, results = _normalized_modules(context)

    for module, diagnostics in results:
        assert diagnostics == ()
        for function in module.all_functions():
            for variant in function.variants:
                assert all(param.type is not None for param in variant.params)
                assert all(ret.type is not None for ret in variant.returns)

    audio = results[1][0]
    play = audio.functions[1]
    assert play.variants[1].params[0].type == Varargs(NamedRef("Source", "love"))
    settings = audio.classes[0].methods[2].variants[0].params[0]
    assert render_type(settings.type) == "{type:love.FilterType, volume?:number}"


def test_normalize_module_leaves_input_untouched(context) -> None:
    root = load_model(sample_description(), context)
    index = build_type_index(root, context.namespace)

    normalize_module(root.submodules[0], index, context)

    assert root.submodules[0].functions[0].variants[0].params[0].type is None


def test_type_census_lists_defined_descriptive_and_unresolved(context) -> None:
    root, index, results = _normalized_modules(context)

    census = type_census([module for module, _ in results], index, context)

    assert "love.Source" in census.defined
    assert "love.FilterType" in census.referenced
    assert census.descriptive == ("light userdata",)
    assert census.unresolved == ()
    assert list(census.referenced) == sorted(census.referenced)
