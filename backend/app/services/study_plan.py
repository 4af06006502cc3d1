"""Generation pipeline: validate → encode → prompt → call (with retry) → parse."""
import logging

from app.core.errors import ValidationError
from app.models.study_plan import GenerationRequest, StudyPlan, UploadedDocument
from app.services.file_encoder import encode_documents, validate_documents
from app.services.prompt_builder import build_prompt
from app.services.providers import StudyPlanProvider
from app.services.response_parser import parse_study_plan
from app.services.retry import RetryPolicy
from app.services.telemetry import track

logger = logging.getLogger("examprep.study_plan")


class StudyPlanGenerator:
    def __init__(
        self,
        provider: StudyPlanProvider,
        retry_policy: RetryPolicy | None = None,
        max_file_size_bytes: int = 10 * 1024 * 1024,
    ):
        self.provider = provider
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_file_size_bytes = max_file_size_bytes

    def preflight(self, syllabus: str, documents: list[UploadedDocument]) -> None:
        """Local checks; raises ValidationError before anything is read or sent."""
        if not syllabus or not syllabus.strip():
            raise ValidationError("Please enter the syllabus.")
        if not documents:
            raise ValidationError("Please upload at least one previous year question paper.")
        validate_documents(documents, self.max_file_size_bytes, self.provider.accepted_mime_types)

    async def generate(self, syllabus: str, documents: list[UploadedDocument]) -> StudyPlan:
        with track(
            "study_plan_generation", route="pipeline", version="v1",
            provider=self.provider.name, documents=len(documents or []),
        ):
            return await self._generate(syllabus, documents)

    async def _generate(self, syllabus: str, documents: list[UploadedDocument]) -> StudyPlan:
        self.preflight(syllabus, documents)

        parts = await encode_documents(documents)
        request = GenerationRequest.build(syllabus, parts)
        prompt = build_prompt(syllabus, parts)

        logger.info(
            "Generating study plan via %s: %d document(s), syllabus %d chars",
            self.provider.name, len(parts), len(syllabus),
        )

        async def call() -> str:
            return await self.provider.send(request, prompt)

        raw = await self.retry_policy.run(call, label=self.provider.name)
        return parse_study_plan(raw)
