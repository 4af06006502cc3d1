from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
import logging

from app.core.deps import get_study_plan_generator, get_study_session
from app.core.errors import (
    EncodingError,
    GenerationInProgressError,
    StudyPlanError,
    ValidationError,
)
from app.models.study_plan import StudyPlan, StudySessionView, UploadedDocument
from app.services.file_encoder import mime_type_for
from app.services.pdf import get_pdf_service
from app.services.session import StudySession
from app.services.study_plan import StudyPlanGenerator
from app.services.telemetry import instrument

router = APIRouter(prefix="/api/study-plan", tags=["study-plan"])

logger = logging.getLogger("examprep.study_plan_api")

EXPORT_FILENAME = "QuestionBank_StudyPlan.pdf"


def _status_for(error: StudyPlanError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, GenerationInProgressError):
        return 409
    if isinstance(error, EncodingError):
        return 422
    return 502


@router.post("/generate", response_model=StudyPlan)
@instrument(route="/api/study-plan/generate", version="v1")
async def generate_study_plan(
    syllabus: str = Form(""),
    files: list[UploadFile | str] = File(default=[]),
    generator: StudyPlanGenerator = Depends(get_study_plan_generator),
    session: StudySession = Depends(get_study_session),
):
    """Analyse uploaded past papers against a syllabus."""
    # a form submitted with no file chosen sends one empty, nameless part
    uploads = [f for f in files if not isinstance(f, str) and f.filename]
    documents = [
        UploadedDocument.from_upload(f, mime_type_for(f.filename, f.content_type))
        for f in uploads
    ]

    try:
        return await session.run(generator, syllabus, documents)
    except StudyPlanError as e:
        raise HTTPException(status_code=_status_for(e), detail=e.user_message) from e


@router.get("", response_model=StudySessionView)
async def get_current_plan(session: StudySession = Depends(get_study_session)):
    return session.view()


@router.delete("", response_model=StudySessionView)
async def reset_plan(session: StudySession = Depends(get_study_session)):
    """Start over: clears the plan and any error."""
    try:
        session.reset()
    except GenerationInProgressError as e:
        raise HTTPException(status_code=409, detail=e.user_message) from e
    return session.view()


@router.post("/dismiss-error", response_model=StudySessionView)
async def dismiss_error(session: StudySession = Depends(get_study_session)):
    session.dismiss_error()
    return session.view()


@router.post("/export-pdf")
@instrument(route="/api/study-plan/export-pdf", version="v1")
async def export_study_plan_pdf(
    plan: StudyPlan | None = None,
    session: StudySession = Depends(get_study_session),
):
    """Export a study plan (or the current one) as a PDF file."""
    plan = plan or session.plan
    if plan is None:
        raise HTTPException(status_code=404, detail="No study plan to export")

    try:
        pdf_bytes = get_pdf_service().generate_study_plan_pdf(plan)
    except Exception as e:
        logger.exception("PDF export failed")
        raise HTTPException(status_code=500, detail=f"Failed to generate PDF: {str(e)}") from e

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'
        }
    )
