import base64
import os
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import structlog

from vision_testgen.config.settings import settings
from vision_testgen.models.schemas import (
    CoverageLevel,
    ElementCorrection,
    GenerationRequest,
    PageInput,
    ScenarioContext,
)
from vision_testgen.services.domain_detector import detect_domain

logger = structlog.get_logger()

TEST_CASE_FIELDS = ["type", "title", "preconditions", "testSteps", "testData", "expectedResults"]

MIN_CASES_BY_COVERAGE = {
    CoverageLevel.BASIC: 8,
    CoverageLevel.STANDARD: 12,
    CoverageLevel.COMPREHENSIVE: 20,
}

_EXTENSION_MEDIA_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


@dataclass(frozen=True)
class PromptSegment:
    """One ordered piece of the user message: a text marker or an image."""

    kind: str
    text: str = ""
    media_type: str = ""
    data: str = ""

    @classmethod
    def text_part(cls, text: str) -> "PromptSegment":
        return cls(kind="text", text=text)

    @classmethod
    def image_part(cls, media_type: str, data: str) -> "PromptSegment":
        return cls(kind="image", media_type=media_type, data=data)


@dataclass(frozen=True)
class Prompt:
    instructions: str
    segments: List[PromptSegment] = field(default_factory=list)

    @property
    def image_count(self) -> int:
        return sum(1 for s in self.segments if s.kind == "image")


def sniff_media_type(data: bytes, filename: Optional[str] = None) -> str:
    if filename:
        ext = os.path.splitext(filename)[1].lower()
        if ext in _EXTENSION_MEDIA_TYPES:
            return _EXTENSION_MEDIA_TYPES[ext]
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8"):
        return "image/jpeg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/png"


def read_page_image(page: PageInput) -> Optional[bytes]:
    if page.image_bytes is not None:
        return page.image_bytes
    if page.image_path:
        with open(page.image_path, "rb") as fh:
            return fh.read()
    return None


def build_image_segments(pages: Sequence[PageInput]) -> List[PromptSegment]:
    """Interleave ``--- Page N: name ---`` markers with base64 image payloads, in page order."""
    segments: List[PromptSegment] = []
    for position, page in enumerate(pages, start=1):
        if not page.has_image:
            continue
        label = f"--- Page {position}: {page.display_name}"
        marker = f"{label} ---"
        try:
            data = read_page_image(page)
        except OSError as e:
            logger.warning("Screenshot could not be read", page=page.display_name, path=page.image_path, error=str(e))
            data = None
        if not data:
            segments.append(PromptSegment.text_part(f"{label} - IMAGE READ ERROR ---"))
            continue
        media_type = sniff_media_type(data, page.image_path or page.filename)
        segments.append(PromptSegment.text_part(marker))
        segments.append(PromptSegment.image_part(media_type, base64.b64encode(data).decode("ascii")))
    return segments


def active_corrections(corrections: Sequence[ElementCorrection]) -> List[ElementCorrection]:
    labelled = [c for c in corrections if c.label and c.label.strip()]
    return sorted(labelled, key=lambda c: c.page_index)


def annotate_ocr_with_corrections(pages: Sequence[PageInput], corrections: Sequence[ElementCorrection]) -> List[str]:
    texts = [page.ocr_text or "" for page in pages]
    for position, page in enumerate(pages):
        lines = [
            f"{c.detected_text} → [{c.element_type}: {c.label.strip()}]"
            for c in corrections
            if c.page_index == page.index
        ]
        if lines:
            texts[position] = (texts[position] + "\n\n--- USER CORRECTIONS ---\n" + "\n".join(lines)).strip()
    return texts


def minimum_case_count(scenario: Optional[ScenarioContext]) -> int:
    if scenario is not None and scenario.coverage_level is not None:
        return MIN_CASES_BY_COVERAGE[scenario.coverage_level]
    return settings.min_test_cases


def _workflow_section(pages: Sequence[PageInput]) -> str:
    return "\n".join(f"{position}. {page.display_name}" for position, page in enumerate(pages, start=1))


def _content_section(pages: Sequence[PageInput], ocr_texts: Sequence[str]) -> str:
    if not any(t.strip() for t in ocr_texts):
        return "No OCR text provided - using visual analysis only."
    return "\n\n".join(
        f"--- {page.display_name} ---\n{text.strip() or '(no text detected)'}"
        for page, text in zip(pages, ocr_texts)
    )


def _scenario_section(scenario: Optional[ScenarioContext]) -> str:
    if scenario is None:
        return ""
    rows = [
        ("Testing intent", scenario.testing_intent),
        ("Coverage level", scenario.coverage_level.value if scenario.coverage_level else None),
        ("Requested test types", ", ".join(scenario.test_types) if scenario.test_types else None),
        ("User story", scenario.user_story),
        ("Acceptance criteria", scenario.acceptance_criteria),
        ("Business rules", scenario.business_rules),
        ("Known edge cases", scenario.edge_cases),
        ("Test environment", scenario.test_environment),
    ]
    lines = [f"- {label}: {value.strip()}" for label, value in rows if value and value.strip()]
    if not lines:
        return ""
    return "**SCENARIO CONTEXT:**\n" + "\n".join(lines) + "\n\n"


def _corrections_section(corrections: Sequence[ElementCorrection]) -> str:
    if not corrections:
        return ""
    lines = "\n".join(
        f'• "{c.detected_text}" is identified as {c.element_type}: {c.label.strip()}' for c in corrections
    )
    return (
        "\n\n**USER-PROVIDED ELEMENT CORRECTIONS:**\n"
        f"{lines}\n\n"
        "IMPORTANT: When referencing these UI elements in test steps, use the corrected labels "
        "provided by the user instead of the raw OCR text."
    )


def build_instructions(
    pages: Sequence[PageInput],
    corrections: Sequence[ElementCorrection] = (),
    scenario: Optional[ScenarioContext] = None,
) -> str:
    corrections = active_corrections(corrections)
    ocr_texts = annotate_ocr_with_corrections(pages, corrections)
    domain = detect_domain([p.name for p in pages] + [p.ocr_text or "" for p in pages])
    min_cases = minimum_case_count(scenario)
    first = pages[0].display_name if pages else "Page 1"
    second = pages[1].display_name if len(pages) > 1 else "Page 2"

    prompt = (
        "You are an expert QA engineer. Analyze the application screenshots and the text extracted "
        "from them, and write test cases that a tester with no prior knowledge of the application "
        "can execute.\n\n"
        "**APPLICATION ANALYSIS:**\n"
        f"Detected Application Domain: {domain.domain}\n"
        f"Key Business Functions: {', '.join(domain.functions)}\n"
        f"Focus Areas for Testing: {', '.join(domain.test_areas)}\n\n"
        "**APPLICATION CONTENT:**\n"
        f"{_content_section(pages, ocr_texts)}\n\n"
        "**USER WORKFLOW SEQUENCE:**\n"
        f"{_workflow_section(pages)}\n\n"
        "The pages above are listed in the EXACT order of the user workflow. Treat this sequence as "
        "the ground-truth user journey: test cases must follow it from the first page to the last, "
        "and flow-based test cases must span multiple pages in this order.\n\n"
        f"{_scenario_section(scenario)}"
        "**TEST CASE REQUIREMENTS:**\n"
        f"- Generate a MINIMUM of {min_cases} test cases.\n"
        "- Cover End-to-End, Integration, Functional, UI, Security, Edge Case and Negative scenarios "
        "where the screens support them.\n"
        f'- Always refer to pages by name in test steps, e.g. "{first}", "{second}"; never refer to '
        "screenshots.\n"
        "- Reference specific buttons, fields and messages visible on the pages.\n"
        "- Include realistic test data with concrete values.\n\n"
        "**TEST CASE STRUCTURE:**\n"
        "Each test case must be an object with exactly these string fields:\n"
        '- "type": category (End-to-End, Integration, Functional, UI, Security, Edge Case, Negative)\n'
        '- "title": descriptive, business-friendly title\n'
        '- "preconditions": setup requirements as bullet points ("• item\\n• item")\n'
        '- "testSteps": numbered steps ("1. step\\n2. step")\n'
        '- "testData": data values as bullet points ("• Field: value")\n'
        '- "expectedResults": observable outcomes as bullet points ("• outcome")\n\n'
        "IMPORTANT: Your entire response must be a single valid JSON object with a \"testCases\" "
        "array. Do not include explanatory text, markdown formatting or anything outside the JSON.\n\n"
        "Example response format:\n"
        "{\n"
        '  "testCases": [\n'
        "    {\n"
        '      "type": "End-to-End",\n'
        '      "title": "Verify a user can complete the workflow from the first page to the last",\n'
        '      "preconditions": "• Application is reachable\\n• Test account exists",\n'
        '      "testSteps": "1. Open the first page\\n2. Complete the form\\n3. Submit",\n'
        '      "testData": "• Username: testuser@example.com\\n• Password: TestPass123",\n'
        '      "expectedResults": "• Confirmation message is shown\\n• Data is saved"\n'
        "    }\n"
        "  ]\n"
        "}"
    )
    return prompt + _corrections_section(corrections)


def build_prompt(request: GenerationRequest) -> Prompt:
    """Assemble the instruction text and ordered image segments for one request."""
    pages = request.ordered_pages()
    instructions = build_instructions(pages, request.corrections, request.scenario)
    segments = build_image_segments(pages)
    logger.debug(
        "Prompt built",
        pages=len(pages),
        images=sum(1 for s in segments if s.kind == "image"),
        corrections=len(active_corrections(request.corrections)),
        prompt_preview=instructions[:200],
    )
    return Prompt(instructions=instructions, segments=segments)
