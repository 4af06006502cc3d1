"""Decode provider output into a validated StudyPlan."""
import json
import logging

from pydantic import ValidationError as SchemaValidationError

from app.core.errors import MalformedResponseError
from app.models.study_plan import StudyPlan

logger = logging.getLogger("examprep.parser")

_LOG_PREVIEW_CHARS = 2000


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```json ... ``` block if the model added one."""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    elif content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_study_plan(raw: str | None) -> StudyPlan:
    if raw is None or not raw.strip():
        logger.warning("Provider returned an empty response")
        raise MalformedResponseError("No response received from provider")

    content = strip_code_fences(raw)

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(
            "Provider response is not valid JSON (line %d, column %d): %s",
            e.lineno, e.colno, raw[:_LOG_PREVIEW_CHARS],
        )
        raise MalformedResponseError(f"Failed to parse AI response: {e}") from e

    if not isinstance(data, dict):
        logger.warning("Provider response is %s, expected an object: %s",
                       type(data).__name__, raw[:_LOG_PREVIEW_CHARS])
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(data).__name__}"
        )

    try:
        plan = StudyPlan.model_validate(data)
    except SchemaValidationError as e:
        logger.warning(
            "Provider response failed schema validation (%d errors): %s\nRaw: %s",
            e.error_count(), e, raw[:_LOG_PREVIEW_CHARS],
        )
        raise MalformedResponseError(f"Response does not match study plan shape: {e}") from e

    logger.info(
        "Parsed study plan: %d questions, %d modules",
        len(plan.extracted_questions), len(plan.modules),
    )
    return plan
