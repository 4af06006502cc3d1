"""Backend relay: the browser posts base64 files here and the provider call
happens server-side, so provider keys never reach the client."""
from fastapi import APIRouter, Depends, HTTPException
import logging

from app.core.deps import get_relay_generator
from app.core.errors import EncodingError, StudyPlanError, ValidationError
from app.models.study_plan import AnalyzeRequest, StudyPlan
from app.services.file_encoder import document_from_relay_file
from app.services.study_plan import StudyPlanGenerator
from app.services.telemetry import instrument

router = APIRouter(prefix="/api", tags=["relay"])

logger = logging.getLogger("examprep.relay")


@router.post("/analyze", response_model=StudyPlan)
@instrument(route="/api/analyze", version="v1")
async def analyze(
    request: AnalyzeRequest,
    generator: StudyPlanGenerator = Depends(get_relay_generator),
):
    if not request.syllabus or not request.syllabus.strip() or not request.files:
        raise HTTPException(status_code=400, detail="Missing syllabus or files")

    try:
        documents = [
            document_from_relay_file(f.name, f.type, f.data) for f in request.files
        ]
        return await generator.generate(request.syllabus, documents)
    except (ValidationError, EncodingError) as e:
        raise HTTPException(status_code=400, detail=e.user_message) from e
    except StudyPlanError as e:
        logger.error("Relay analysis failed (%s): %s", type(e).__name__, e)
        raise HTTPException(status_code=500, detail="Failed to analyze documents") from e
    except Exception as e:
        logger.exception("Relay analysis crashed")
        raise HTTPException(status_code=500, detail="Failed to analyze documents") from e
