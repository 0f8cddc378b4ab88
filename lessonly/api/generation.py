import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lessonly.api.deps import get_generator
from lessonly.core.security import get_current_user
from lessonly.services.lesson_generator import GenerationRequest, LessonGenerationError, LessonGenerator

router = APIRouter()

logger = logging.getLogger("lesson_plan_api")


@router.post("/generate-lesson", summary="Generate an AI lesson plan draft")
async def generate_lesson(
    req: GenerationRequest,
    owner_id: str = Depends(get_current_user),
    generator: LessonGenerator = Depends(get_generator),
):
    """
    Proxy to the AI provider. Returns the parsed lesson plan JSON as the
    model produced it; failures come back as {"error": ...} with status 500.
    """
    try:
        result = await generator.generate(req)
    except LessonGenerationError as e:
        return JSONResponse(status_code=500, content={"error": str(e)})
    except Exception as e:
        logger.exception("Failed to generate lesson plan")
        return JSONResponse(status_code=500, content={"error": f"Failed to generate lesson plan: {e}"})

    logger.info(f"{req.plan_type.value} lesson plan generated for {req.subject} / {req.topic} by {owner_id}")
    return result.model_dump(exclude_none=True)
