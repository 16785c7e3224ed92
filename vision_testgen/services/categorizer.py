import re
from typing import Dict, List, Sequence

from vision_testgen.models.schemas import TestCase

DEFAULT_BUCKET = "functional"

# Output order of the categorized projection
BUCKETS = [
    "functional",
    "endToEnd",
    "integration",
    "ui",
    "security",
    "edge",
    "negative",
    "performance",
    "accessibility",
]

TYPE_ALIASES = {
    "functional": "functional",
    "endtoend": "endToEnd",
    "end_to_end": "endToEnd",
    "e2e": "endToEnd",
    "integration": "integration",
    "ui": "ui",
    "userinterface": "ui",
    "visual": "ui",
    "usability": "ui",
    "security": "security",
    "edge": "edge",
    "edgecase": "edge",
    "edgecases": "edge",
    "boundary": "edge",
    "negative": "negative",
    "performance": "performance",
    "accessibility": "accessibility",
}


def normalize_type(declared: str) -> str:
    return re.sub(r"[-\s]", "", (declared or "").lower())


def bucket_for(declared: str) -> str:
    """Map a free-form test type onto a bucket; unknown types land in ``functional``."""
    key = normalize_type(declared)
    if key in TYPE_ALIASES:
        return TYPE_ALIASES[key]
    # "Negative Test", "UI Tests"
    trimmed = re.sub(r"tests?$", "", key)
    return TYPE_ALIASES.get(trimmed, DEFAULT_BUCKET)


def summary_line(test_case: TestCase) -> str:
    return f"{test_case.title}: {test_case.test_steps}"


def categorize(test_cases: Sequence[TestCase]) -> Dict[str, List[str]]:
    categorized: Dict[str, List[str]] = {bucket: [] for bucket in BUCKETS}
    for test_case in test_cases:
        categorized[bucket_for(test_case.type)].append(summary_line(test_case))
    return categorized
