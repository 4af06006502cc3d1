"""Study plan entities.

``Question``, ``TopicModule`` and ``StudyPlan`` double as the output schema
sent to the provider (see ``app.services.prompt_builder``), so field names,
enum values and required fields live here and nowhere else.
"""
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.core.errors import ValidationError

Difficulty = Literal["Easy", "Medium", "Hard"]
Priority = Literal["High", "Medium", "Low"]


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Question(_WireModel):
    text: str = Field(description="The question, verbatim from the paper.")
    marks: Optional[float] = Field(
        default=None, description="Marks for the question if available."
    )
    year_appeared: Optional[str] = Field(
        default=None, description="Year found in the document if applicable."
    )
    difficulty: Difficulty
    reference: Optional[str] = Field(
        default=None, description='Where the question was found, e.g. "Page 2, Q4".'
    )

    @field_validator("marks")
    @classmethod
    def drop_non_positive_marks(cls, v: Optional[float]) -> Optional[float]:
        """Providers emit 0 when marks are unknown; treat that as absent."""
        if v is not None and v <= 0:
            return None
        return v


class TopicModule(_WireModel):
    topic_name: str = Field(min_length=1)
    priority: Priority
    description: str = Field(
        description="Why this topic is important based on previous papers."
    )
    questions: list[Question] = Field(
        description="Questions specifically related to this topic."
    )

    @field_validator("topic_name")
    @classmethod
    def require_topic_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("topicName must not be blank")
        return v


class StudyPlan(_WireModel):
    subject: Optional[str] = Field(
        default=None, description="Inferred exam or subject name."
    )
    summary: str = Field(
        description=(
            "A brief executive summary of the analysis, highlighting the most "
            "crucial areas to focus on."
        )
    )
    extracted_questions: list[Question] = Field(
        description="A consolidated list of all questions found in the papers."
    )
    modules: list[TopicModule]


# ──────────────────────────────────────────────
# Request-side entities
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class UploadedDocument:
    """A user-selected file. Content is read lazily by the encoder."""

    filename: str
    mime_type: str
    size_bytes: int
    _loader: Callable[[], Awaitable[bytes]] = field(repr=False, compare=False)

    async def read(self) -> bytes:
        return await self._loader()

    @classmethod
    def from_bytes(cls, content: bytes, filename: str, mime_type: str) -> "UploadedDocument":
        async def load() -> bytes:
            return content

        return cls(filename, mime_type, len(content), load)

    @classmethod
    def from_path(cls, path: Path, mime_type: str) -> "UploadedDocument":
        async def load() -> bytes:
            return await asyncio.to_thread(path.read_bytes)

        return cls(path.name, mime_type, path.stat().st_size, load)

    @classmethod
    def from_upload(cls, upload, mime_type: str) -> "UploadedDocument":
        """Wrap a FastAPI ``UploadFile``."""

        async def load() -> bytes:
            await upload.seek(0)
            return await upload.read()

        return cls(upload.filename or "unknown", mime_type, upload.size or 0, load)


class EncodedPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: str  # base64, no data-URL prefix
    mime_type: str
    filename: str = ""


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    syllabus: str
    parts: list[EncodedPart]

    @field_validator("syllabus")
    @classmethod
    def require_syllabus(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("syllabus must not be blank")
        return v

    @field_validator("parts")
    @classmethod
    def require_parts(cls, v: list[EncodedPart]) -> list[EncodedPart]:
        if not v:
            raise ValueError("at least one document is required")
        return v

    @classmethod
    def build(cls, syllabus: str, parts: list[EncodedPart]) -> "GenerationRequest":
        """Construct, reporting invariant violations as a user-facing ValidationError."""
        if not syllabus.strip():
            raise ValidationError("Please enter the syllabus.")
        if not parts:
            raise ValidationError("Please upload at least one previous year question paper.")
        return cls(syllabus=syllabus, parts=parts)


# ──────────────────────────────────────────────
# Relay wire shape
# ──────────────────────────────────────────────

class RelayFile(BaseModel):
    name: str = "unknown"
    type: str = ""
    data: str


class AnalyzeRequest(BaseModel):
    syllabus: str | None = None
    files: list[RelayFile] | None = None


class StudySessionView(BaseModel):
    state: Literal["idle", "analyzing", "success", "error"]
    error: str | None = None
    plan: StudyPlan | None = None
