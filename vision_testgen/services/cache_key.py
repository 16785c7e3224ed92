"""Deterministic fingerprints for generation requests.

The fingerprint decides whether a cached result can be reused, so it covers
everything that changes the prompt: page order, page names, OCR text, image
identity, user corrections and scenario context. Stored screenshots are
identified by their server-side path; uploaded bytes by their SHA-1 digest,
since client filenames such as "screenshot.png" are not unique.
"""
import hashlib
import json
import os
from typing import Any, Dict, List, Optional, Sequence, Tuple

from vision_testgen.models.schemas import ElementCorrection, GenerationRequest, PageInput


def image_identity(page: PageInput) -> Optional[str]:
    """Stable identity of a page's screenshot."""
    if page.image_path:
        return os.path.basename(page.image_path)
    if page.image_bytes is not None:
        # Client filename only picks the media type
        return "sha1:" + hashlib.sha1(page.image_bytes).hexdigest()
    if page.filename:
        return os.path.basename(page.filename)
    return None


def page_entries(pages: Sequence[PageInput]) -> List[Tuple[str, Dict[str, Any]]]:
    ordered = sorted(pages, key=lambda page: page.index)
    return [
        (page.display_name, {"image": image_identity(page), "ocr": page.ocr_text or ""})
        for page in ordered
    ]


def correction_entries(corrections: Sequence[ElementCorrection]) -> List[List[Any]]:
    return [
        [c.page_index, c.detected_text, c.label.strip(), c.element_type]
        for c in corrections
        if c.label and c.label.strip()
    ]


def build_fingerprint(
    entries: Sequence[Tuple[str, Any]],
    corrections: Sequence[ElementCorrection] = (),
    context: Optional[Dict[str, Any]] = None,
) -> str:
    """Hash ordered ``(identifier, content)`` pairs plus correction data.

    Identical ordered input always yields the same hex digest; reordering,
    adding or removing a page, or changing any text changes it.
    """
    payload = {
        "pages": [[identifier, content] for identifier, content in entries],
        "corrections": correction_entries(corrections),
        "context": context or {},
    }
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def request_fingerprint(request: GenerationRequest, model_id: Optional[str] = None) -> str:
    context: Dict[str, Any] = {}
    if request.scenario is not None:
        context["scenario"] = request.scenario.model_dump(mode="json", exclude_none=True)
    if model_id:
        context["model"] = model_id
    return build_fingerprint(page_entries(request.pages), request.corrections, context)
