"""Application state for the current analysis.

Mirrors the UI lifecycle: IDLE → ANALYZING → SUCCESS | ERROR. Only one
generation may be in flight; the current plan is replaced only when a new
one succeeds.
"""
import asyncio
import logging
from enum import Enum

from app.core.errors import (
    GENERIC_FAILURE_MESSAGE,
    GenerationInProgressError,
    StudyPlanError,
)
from app.models.study_plan import StudyPlan, StudySessionView, UploadedDocument
from app.services.study_plan import StudyPlanGenerator

logger = logging.getLogger("examprep.session")


class AppState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCESS = "success"
    ERROR = "error"


class StudySession:
    def __init__(self):
        self._lock = asyncio.Lock()
        self.state = AppState.IDLE
        self.plan: StudyPlan | None = None
        self.error_message: str | None = None

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        generator: StudyPlanGenerator,
        syllabus: str,
        documents: list[UploadedDocument],
    ) -> StudyPlan:
        if self._lock.locked():
            raise GenerationInProgressError()

        async with self._lock:
            self.state = AppState.ANALYZING
            self.error_message = None
            try:
                plan = await generator.generate(syllabus, documents)
            except StudyPlanError as e:
                self._fail(e.user_message, e)
                raise
            except Exception as e:
                self._fail(GENERIC_FAILURE_MESSAGE, e)
                raise

            self.plan = plan
            self.state = AppState.SUCCESS
            return plan

    def _fail(self, message: str, error: Exception) -> None:
        logger.error("Analysis failed (%s): %s", type(error).__name__, error)
        self.state = AppState.ERROR
        self.error_message = message

    def dismiss_error(self) -> None:
        """Back to IDLE after a failure; the last successful plan is kept."""
        if self.state == AppState.ERROR:
            self.state = AppState.IDLE
            self.error_message = None

    def reset(self) -> None:
        if self.busy:
            raise GenerationInProgressError()
        self.state = AppState.IDLE
        self.plan = None
        self.error_message = None

    def view(self) -> StudySessionView:
        return StudySessionView(
            state=self.state.value,
            error=self.error_message,
            plan=self.plan,
        )
