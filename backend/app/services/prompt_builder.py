"""
Prompt builder: instruction text plus the structured-output schema.

  build_prompt(syllabus, documents) -> PromptBundle
    The instruction tells the provider what to extract; the schema pins the
    exact response shape. The schema is generated from the StudyPlan model,
    so changing a field there changes what every provider is asked for.
"""
from __future__ import annotations

import json
from collections import Counter
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.models.study_plan import EncodedPart, StudyPlan, UploadedDocument
from app.prompts.study_plan import (
    SCHEMA_INSTRUCTION,
    STUDY_PLAN_PROMPT,
    STUDY_PLAN_SYSTEM_PROMPT,
)

_KIND_LABELS = {
    "application/pdf": ("PDF document", "PDF documents"),
    "image/png": ("image", "images"),
    "image/jpeg": ("image", "images"),
    "image/jpg": ("image", "images"),
}


class PromptBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    system: str
    instruction: str
    response_schema: dict[str, Any]

    def instruction_with_schema(self) -> str:
        """Instruction with the schema inlined, for providers without schema support."""
        return self.instruction + SCHEMA_INSTRUCTION.format(
            schema=json.dumps(self.response_schema, indent=2)
        )


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


def _inline_refs(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if ref is not None:
            name = ref.rsplit("/", 1)[-1]
            return _inline_refs(defs[name], defs)
        return {k: _inline_refs(v, defs) for k, v in node.items() if k != "$defs"}
    if isinstance(node, list):
        return [_inline_refs(item, defs) for item in node]
    return node


@lru_cache
def _cached_schema() -> str:
    raw = StudyPlan.model_json_schema(by_alias=True)
    return json.dumps(_inline_refs(raw, raw.get("$defs", {})))


def study_plan_schema() -> dict[str, Any]:
    """Self-contained JSON schema (no ``$ref``) for the StudyPlan response."""
    return json.loads(_cached_schema())


# ---------------------------------------------------------------------------
# Instruction
# ---------------------------------------------------------------------------


def describe_documents(mime_types: list[str]) -> str:
    """e.g. ``3 files (2 PDF documents, 1 image)``."""
    kinds: Counter[tuple[str, str]] = Counter()
    for mime in mime_types:
        singular, plural = _KIND_LABELS.get(mime, ("file", "files"))
        kinds[(singular, plural)] += 1

    total = len(mime_types)
    noun = "file" if total == 1 else "files"
    breakdown = ", ".join(
        f"{n} {singular if n == 1 else plural}" for (singular, plural), n in kinds.items()
    )
    return f"{total} {noun} ({breakdown})" if breakdown else f"{total} {noun}"


def build_prompt(
    syllabus: str,
    documents: list[UploadedDocument] | list[EncodedPart],
) -> PromptBundle:
    mime_types = [d.mime_type for d in documents]
    instruction = STUDY_PLAN_PROMPT.format(
        syllabus=syllabus.strip(),
        document_summary=describe_documents(mime_types),
    )
    return PromptBundle(
        system=STUDY_PLAN_SYSTEM_PROMPT,
        instruction=instruction,
        response_schema=study_plan_schema(),
    )
