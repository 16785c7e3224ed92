from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional, Dict, Any
from enum import Enum


class CoverageLevel(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class PageInput(CamelModel):
    image_bytes: Optional[bytes] = Field(None, description="Raw screenshot bytes", exclude=True)
    image_path: Optional[str] = Field(None, description="Readable path to the screenshot")
    filename: Optional[str] = Field(None, description="Original upload filename")
    ocr_text: Optional[str] = Field(None, description="Text extracted from the screenshot")
    name: str = Field("", description="Human-assigned page name")
    index: int = Field(..., ge=0, description="Zero-based position in the user workflow")

    @property
    def display_name(self) -> str:
        return self.name.strip() or f"Page {self.index + 1}"

    @property
    def has_image(self) -> bool:
        return self.image_bytes is not None or bool(self.image_path)


class ElementCorrection(CamelModel):
    page_index: int = Field(..., ge=0, description="Index of the page the element is on")
    detected_text: str = Field(..., description="Raw text detected by OCR")
    label: str = Field("", description="User-assigned label for the element")
    element_type: str = Field("element", description="Element type, e.g. button or input")


class ScenarioContext(CamelModel):
    testing_intent: Optional[str] = None
    coverage_level: Optional[CoverageLevel] = None
    test_types: List[str] = Field(default_factory=list)
    user_story: Optional[str] = None
    acceptance_criteria: Optional[str] = None
    business_rules: Optional[str] = None
    edge_cases: Optional[str] = None
    test_environment: Optional[str] = None


class GenerationRequest(CamelModel):
    pages: List[PageInput] = Field(..., min_length=1, description="Screenshots in workflow order")
    force_regenerate: bool = Field(default=False)
    corrections: List[ElementCorrection] = Field(default_factory=list)
    scenario: Optional[ScenarioContext] = None
    provider: Optional[str] = Field(None, description="Completion provider override")

    def ordered_pages(self) -> List[PageInput]:
        return sorted(self.pages, key=lambda page: page.index)


class TestCase(CamelModel):
    type: str = Field(..., description="Free-form category, e.g. End-to-End")
    title: str = Field(..., min_length=1)
    preconditions: str
    test_steps: str = Field(..., description="Numbered list")
    test_data: str = Field(..., description="Bullet list")
    expected_results: str = Field(..., description="Bullet list")

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        extra = "allow"


class GenerationResult(CamelModel):
    all_test_cases: List[TestCase] = Field(default_factory=list)
    categorized: Dict[str, List[str]] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def legacy_payload(self) -> Dict[str, Any]:
        """Flat shape older consumers expect: buckets next to allTestCases."""
        payload: Dict[str, Any] = {
            "allTestCases": [tc.model_dump(by_alias=True) for tc in self.all_test_cases]
        }
        payload.update({bucket: list(items) for bucket, items in self.categorized.items()})
        return payload


class CorrectedElementText(CamelModel):
    text: str
    label: str = ""
    type: str = "element"


class CorrectedElements(CamelModel):
    screenshot_index: int = Field(..., ge=0)
    detected_texts: List[CorrectedElementText] = Field(default_factory=list)


class CorrectionPage(CamelModel):
    name: str = ""
    ocr_text: str = ""


class GenerateWithCorrectionsRequest(CamelModel):
    pages: List[CorrectionPage] = Field(..., min_length=1)
    corrected_elements: List[CorrectedElements] = Field(default_factory=list)
    regenerate: bool = False
    scenario: Optional[ScenarioContext] = None
    ai_model: Optional[str] = None

    def to_corrections(self) -> List[ElementCorrection]:
        corrections: List[ElementCorrection] = []
        for element in self.corrected_elements:
            for item in element.detected_texts:
                corrections.append(
                    ElementCorrection(
                        page_index=element.screenshot_index,
                        detected_text=item.text,
                        label=item.label,
                        element_type=item.type,
                    )
                )
        return corrections
