"""Turn free-form model output into validated, canonical test cases.

The upstream model only *tends* to return JSON. Extraction is staged and each
stage runs only when the previous one did not already give a parseable object:

1. trim the text,
2. pull out fenced code blocks (several blocks, or a bare array, are treated
   as array fragments and wrapped into ``{"testCases": [...]}``),
3. slice from the first ``{`` to the last ``}``,
4. strict ``json.loads``.

Nothing beyond that slicing is attempted. A response that still does not
parse raises ``ParseError``; no test case is ever invented.

Field-level repair is tolerant per element: a malformed field is coerced and
reported as a ``FieldRepairWarning``, never failing the batch.
"""
import json
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from vision_testgen.core.errors import FieldRepairWarning, ParseError
from vision_testgen.models.schemas import GenerationResult, TestCase
from vision_testgen.services.categorizer import categorize

logger = structlog.get_logger()

# Untyped JSON value as produced by json.loads
JsonValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

FENCE_RE = re.compile(r"```[ \t]*[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)```", re.DOTALL)
NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s")
BULLET_RE = re.compile(r"^\s*[•\-*]\s")
# Embedded numbering is listed first so "\n2. " is consumed as one separator
STEP_SPLIT_RE = re.compile(r"(?:^|\s)\d+[.)]\s+|\n|[,;]")
BULLET_SPLIT_RE = re.compile(r"[,;\n]")
ITEM_PREFIX_RE = re.compile(r"^(?:[•\-*]|\d+[.)])\s+")

TEST_CASES_KEYS = ("testCases", "test_cases")

# Canonical field -> keys accepted from the model, in priority order
FIELD_SOURCES: Dict[str, Tuple[str, ...]] = {
    "type": ("type", "category"),
    "title": ("title",),
    "preconditions": ("preconditions", "precondition"),
    "testSteps": ("testSteps", "test_steps", "steps"),
    "testData": ("testData", "test_data"),
    "expectedResults": ("expectedResults", "expected_results", "expectedResult", "expected_result"),
}

# Documented placeholders for fields the model left out
FIELD_DEFAULTS: Dict[str, str] = {
    "type": "Functional",
    "title": "Untitled Test Case",
    "preconditions": "Standard system access required",
    "testSteps": "Test steps not specified",
    "testData": "Standard test data",
    "expectedResults": "Test should complete successfully",
}

ATTRIBUTE_NAMES = {
    "type": "type",
    "title": "title",
    "preconditions": "preconditions",
    "testSteps": "test_steps",
    "testData": "test_data",
    "expectedResults": "expected_results",
}


def _number_text(value: Union[int, float]) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _inline(value: JsonValue) -> str:
    """Single-line rendering used for values nested inside a list or object."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_text(value)
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return ", ".join(part for part in (_inline(v) for v in value) if part)
    if isinstance(value, dict):
        return ", ".join(f"{k}: {_inline(v)}" for k, v in value.items())
    return str(value)


def coerce_to_display_string(value: JsonValue) -> Optional[str]:
    """Render any JSON value as display text.

    - ``None`` stays ``None`` so the caller can pick a placeholder
    - lists join their items with newlines
    - objects become ``key: value`` lines
    - booleans and numbers are stringified JSON-style (``true``, ``3``)
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _number_text(value)
    if isinstance(value, list):
        return "\n".join(part for part in (_inline(v) for v in value) if part)
    if isinstance(value, dict):
        return "\n".join(f"{k}: {_inline(v)}" for k, v in value.items())
    return str(value)


def _strip_item(item: str) -> str:
    return ITEM_PREFIX_RE.sub("", item.strip()).strip()


def format_numbered_list(text: str) -> str:
    """Re-number free text as ``1. ...\\n2. ...``; already-numbered text is kept."""
    if not text or NUMBERED_RE.match(text):
        return text
    items = [_strip_item(part) for part in STEP_SPLIT_RE.split(text)]
    items = [item for item in items if item]
    if not items:
        return text
    return "\n".join(f"{n}. {item}" for n, item in enumerate(items, start=1))


def format_bullet_list(text: str) -> str:
    """Render free text as ``• ...`` lines; already-bulleted text is kept."""
    if not text or BULLET_RE.match(text):
        return text
    items = [_strip_item(part) for part in BULLET_SPLIT_RE.split(text)]
    items = [item for item in items if item]
    if not items:
        return text
    return "\n".join(f"• {item}" for item in items)


def _fence_blocks(text: str) -> List[str]:
    return [block.strip() for block in FENCE_RE.findall(text) if block.strip()]


def wrap_array_fragments(fragments: Sequence[str]) -> str:
    """Join array (or object) fragments into one ``{"testCases": [...]}`` document."""
    parts: List[str] = []
    for fragment in fragments:
        fragment = fragment.strip()
        if fragment.startswith("[") and fragment.endswith("]"):
            fragment = fragment[1:-1].strip()
        if fragment:
            parts.append(fragment)
    return '{"testCases": [' + ", ".join(parts) + "]}"


def _is_json_array(text: str) -> bool:
    # "[Analysis complete]\n{...}" starts with a bracket but is not an array
    if not (text.startswith("[") and text.endswith("]")):
        return False
    try:
        return isinstance(json.loads(text), list)
    except json.JSONDecodeError:
        return False


def extract_json_text(raw: str) -> str:
    text = (raw or "").strip()

    if "```" in text:
        blocks = _fence_blocks(text)
        if len(blocks) > 1:
            text = wrap_array_fragments(blocks)
        elif blocks:
            text = blocks[0]

    if _is_json_array(text):
        text = wrap_array_fragments([text])

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        text = text[start : end + 1]
    return text


def parse_json_object(raw: str) -> Dict[str, Any]:
    candidate = extract_json_text(raw)
    excerpt = (raw or "")[:500]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ParseError(f"AI response could not be parsed: {e.msg}", raw_excerpt=excerpt) from e
    if not isinstance(parsed, dict):
        raise ParseError("AI response is not a JSON object", raw_excerpt=excerpt)
    return parsed


def _test_case_items(parsed: Dict[str, Any]) -> List[Any]:
    for key in TEST_CASES_KEYS:
        items = parsed.get(key)
        if isinstance(items, list):
            return items
    raise ParseError("Invalid test case structure - missing testCases array")


def _flatten(items: Sequence[Any]) -> List[Any]:
    # Wrapped fenced blocks can themselves be {"testCases": [...]} documents
    flat: List[Any] = []
    for item in items:
        if isinstance(item, dict) and "title" not in item:
            nested = next((item[k] for k in TEST_CASES_KEYS if isinstance(item.get(k), list)), None)
            if nested is not None:
                flat.extend(_flatten(nested))
                continue
        flat.append(item)
    return flat


def _is_blank(value: JsonValue) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _source_value(raw: Dict[str, Any], field: str) -> Tuple[JsonValue, Optional[str]]:
    for key in FIELD_SOURCES[field]:
        if key in raw and not _is_blank(raw[key]):
            return raw[key], key
    if field == "testSteps" and not _is_blank(raw.get("description")):
        return raw["description"], "description"
    return None, None


def _repair_field(
    raw: Dict[str, Any], field: str, index: int, warnings: List[FieldRepairWarning]
) -> Tuple[str, bool, bool]:
    """Return ``(text, is_placeholder, from_object)`` for one canonical field."""
    value, key = _source_value(raw, field)
    if value is None:
        warnings.append(FieldRepairWarning(index, field, "missing or empty; placeholder used"))
        return FIELD_DEFAULTS[field], True, False
    if key != field:
        warnings.append(FieldRepairWarning(index, field, f"read from '{key}'"))
    if not isinstance(value, str):
        warnings.append(FieldRepairWarning(index, field, f"coerced from {type(value).__name__}"))
    text = (coerce_to_display_string(value) or "").strip()
    if not text:
        warnings.append(FieldRepairWarning(index, field, "empty after coercion; placeholder used"))
        return FIELD_DEFAULTS[field], True, False
    return text, False, isinstance(value, dict)


def repair_test_case(raw: Dict[str, Any], index: int, warnings: List[FieldRepairWarning]) -> TestCase:
    values: Dict[str, str] = {}
    for field in FIELD_SOURCES:
        text, placeholder, from_object = _repair_field(raw, field, index, warnings)
        if not placeholder:
            if field == "testSteps":
                text = format_numbered_list(text)
            elif field in ("testData", "expectedResults") and not from_object:
                # key/value lines from an object are already one item per line
                text = format_bullet_list(text)
        values[ATTRIBUTE_NAMES[field]] = text

    consumed = {key for keys in FIELD_SOURCES.values() for key in keys}
    extras: Dict[str, str] = {}
    for key, value in raw.items():
        if key in consumed or key in ATTRIBUTE_NAMES.values():
            continue
        extras[str(key)] = coerce_to_display_string(value) or ""

    return TestCase(**values, **extras)


def normalize_test_cases(items: Sequence[Any]) -> Tuple[List[TestCase], List[FieldRepairWarning]]:
    warnings: List[FieldRepairWarning] = []
    test_cases: List[TestCase] = []
    for index, item in enumerate(_flatten(items)):
        if not isinstance(item, dict):
            warnings.append(FieldRepairWarning(index, "*", f"skipped non-object element ({type(item).__name__})"))
            continue
        test_cases.append(repair_test_case(item, index, warnings))
    return test_cases, warnings


def parse_generation_result(raw: str) -> GenerationResult:
    """Extract, validate, repair and categorize the test cases in ``raw``."""
    parsed = parse_json_object(raw)
    test_cases, warnings = normalize_test_cases(_test_case_items(parsed))
    if not test_cases:
        raise ParseError("AI response contained no test cases", raw_excerpt=(raw or "")[:500])

    for warning in warnings:
        logger.debug("Repaired test case field", case_index=warning.case_index, field=warning.field, reason=warning.reason)
    if warnings:
        logger.info("Test case fields repaired", repairs=len(warnings), test_cases=len(test_cases))

    return GenerationResult(
        all_test_cases=test_cases,
        categorized=categorize(test_cases),
        metadata={"repairs": len(warnings)},
    )
