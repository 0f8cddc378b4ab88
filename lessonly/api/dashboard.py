from typing import Optional

from fastapi import APIRouter, Depends

from lessonly.api.deps import get_class_repository, get_default_mode
from lessonly.core.security import get_current_user
from lessonly.models.lesson import Mode
from lessonly.services.form_state import FORM_CONFIGS
from lessonly.services.validation import exam_board_options, exam_board_required

router = APIRouter()


@router.get("/mode", summary="Default mode and per-mode form settings")
def get_mode(owner_id: str = Depends(get_current_user), default_mode: Mode = Depends(get_default_mode)):
    return {
        "mode": default_mode.value,
        "forms": {mode.value: FORM_CONFIGS[mode].to_dict() for mode in Mode},
    }


@router.get("/classes", summary="Classes registered by the current user")
async def list_classes(owner_id: str = Depends(get_current_user), classes=Depends(get_class_repository)):
    return {"classes": [c.model_dump() for c in await classes.list(owner_id)]}


@router.get("/exam-boards", summary="Exam board choices for a year group")
def list_exam_boards(year_group: Optional[str] = None, owner_id: str = Depends(get_current_user)):
    return {
        "year_group": year_group,
        "required": exam_board_required(year_group),
        "options": exam_board_options(year_group),
    }
