import json

import pytest

from vision_testgen.core.errors import ParseError
from vision_testgen.services.response_normalizer import (
    FIELD_DEFAULTS,
    coerce_to_display_string,
    extract_json_text,
    format_bullet_list,
    format_numbered_list,
    normalize_test_cases,
    parse_generation_result,
)

STRING_FIELDS = ["type", "title", "preconditions", "test_steps", "test_data", "expected_results"]


def test_markdown_wrapped_response_parses():
    raw = (
        '```json\n{"testCases":[{"type":"Functional","title":"T1","testSteps":"Click X",'
        '"testData":"","expectedResults":""}]}\n```'
    )
    result = parse_generation_result(raw)

    assert len(result.all_test_cases) == 1
    case = result.all_test_cases[0]
    assert case.title == "T1"
    assert case.test_steps == "1. Click X"
    assert case.test_data == FIELD_DEFAULTS["testData"]
    assert case.expected_results == FIELD_DEFAULTS["expectedResults"]


def test_multiple_fenced_arrays_are_merged():
    raw = 'Part one:\n```json\n[{"title":"A"}]\n```\nPart two:\n```json\n[{"title":"B"}]\n```'
    result = parse_generation_result(raw)
    assert [case.title for case in result.all_test_cases] == ["A", "B"]


def test_fenced_documents_with_their_own_arrays_are_flattened():
    first = json.dumps({"testCases": [{"title": "A"}]})
    second = json.dumps({"testCases": [{"title": "B"}, {"title": "C"}]})
    raw = f"```json\n{first}\n```\n```json\n{second}\n```"
    result = parse_generation_result(raw)
    assert [case.title for case in result.all_test_cases] == ["A", "B", "C"]


def test_bare_array_is_wrapped():
    result = parse_generation_result('[{"title":"Only"}]')
    assert [case.title for case in result.all_test_cases] == ["Only"]


def test_leading_and_trailing_prose_is_sliced_away():
    raw = 'Sure! Here are the tests:\n{"testCases":[{"title":"T"}]}\nHope this helps.'
    assert parse_generation_result(raw).all_test_cases[0].title == "T"


def test_object_test_data_becomes_key_value_lines():
    raw = json.dumps({"testCases": [{"title": "T", "testData": {"user": "john", "pass": "123"}}]})
    assert parse_generation_result(raw).all_test_cases[0].test_data == "user: john\npass: 123"


def test_plain_prose_raises_parse_error():
    with pytest.raises(ParseError):
        parse_generation_result("I'm sorry, I cannot generate test cases for these screenshots.")


def test_missing_test_case_array_raises_parse_error():
    with pytest.raises(ParseError):
        parse_generation_result('{"cases": []}')


def test_empty_test_case_array_raises_parse_error():
    with pytest.raises(ParseError):
        parse_generation_result('{"testCases": []}')


def test_broken_json_is_not_scraped():
    with pytest.raises(ParseError):
        parse_generation_result('{"testCases": [{"title": "A",}')


def test_snake_case_array_key_is_accepted():
    result = parse_generation_result('{"test_cases": [{"title": "Snake"}]}')
    assert result.all_test_cases[0].title == "Snake"


def test_every_field_is_a_string_after_repair():
    raw = json.dumps(
        {
            "testCases": [
                {
                    "type": None,
                    "title": 42,
                    "preconditions": ["Logged in", "Cart empty"],
                    "testSteps": ["Open cart", "Click checkout"],
                    "testData": 3.0,
                    "expectedResults": None,
                    "priority": None,
                    "automated": True,
                }
            ]
        }
    )
    case = parse_generation_result(raw).all_test_cases[0]

    for field in STRING_FIELDS:
        assert isinstance(getattr(case, field), str)
    assert case.type == "Functional"
    assert case.title == "42"
    assert case.preconditions == "Logged in\nCart empty"
    assert case.test_steps == "1. Open cart\n2. Click checkout"
    assert case.test_data == "• 3"
    assert case.expected_results == FIELD_DEFAULTS["expectedResults"]
    assert case.model_extra == {"priority": "", "automated": "true"}


def test_alternate_field_names_are_read():
    raw = json.dumps({"testCases": [{"category": "Security", "title": "T", "steps": "Open; Attack", "expected_result": "Blocked"}]})
    case = parse_generation_result(raw).all_test_cases[0]
    assert case.type == "Security"
    assert case.test_steps == "1. Open\n2. Attack"
    assert case.expected_results == "• Blocked"


def test_non_object_elements_are_skipped_without_failing_the_batch():
    cases, warnings = normalize_test_cases(["not a case", {"title": "Kept"}])
    assert [case.title for case in cases] == ["Kept"]
    assert any(w.field == "*" for w in warnings)


def test_repairs_are_counted_in_metadata():
    result = parse_generation_result('{"testCases": [{"title": "T"}]}')
    assert result.metadata["repairs"] == 5


def test_categorized_projection_is_built():
    raw = json.dumps({"testCases": [{"type": "End-to-End", "title": "Flow", "testSteps": "1. Go"}]})
    result = parse_generation_result(raw)
    assert result.categorized["endToEnd"] == ["Flow: 1. Go"]


def test_format_numbered_list():
    assert format_numbered_list("Open login, enter credentials; submit") == "1. Open login\n2. enter credentials\n3. submit"
    assert format_numbered_list("Open login 2. Submit") == "1. Open login\n2. Submit"
    assert format_numbered_list("1. Already\n2. Numbered") == "1. Already\n2. Numbered"


def test_format_bullet_list():
    assert format_bullet_list("a, b\nc") == "• a\n• b\n• c"
    assert format_bullet_list("• already\n• bulleted") == "• already\n• bulleted"
    assert format_bullet_list("- dash item") == "- dash item"


def test_coerce_to_display_string_matches_on_variant():
    assert coerce_to_display_string(None) is None
    assert coerce_to_display_string(True) == "true"
    assert coerce_to_display_string(3.0) == "3"
    assert coerce_to_display_string(2.5) == "2.5"
    assert coerce_to_display_string(["a", {"k": "v"}, None]) == "a\nk: v"
    assert coerce_to_display_string({"steps": ["a", "b"]}) == "steps: a, b"


def test_extract_json_text_slices_to_outer_braces():
    assert extract_json_text('  noise {"a": {"b": 1}} trailing  ') == '{"a": {"b": 1}}'


def test_bracketed_preamble_before_object_is_sliced_away():
    raw = '[Analysis complete]\n{"testCases":[{"type":"UI","title":"T1","testSteps":"Open page"}]}'
    result = parse_generation_result(raw)
    assert [case.title for case in result.all_test_cases] == ["T1"]
    assert result.categorized["ui"] == ["T1: 1. Open page"]
