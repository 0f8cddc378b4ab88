import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from lessonly.api.deps import (
    get_class_repository,
    get_generator,
    get_lesson_repository,
    get_profile_repository,
)
from lessonly.core.security import get_current_user
from lessonly.models.lesson import Mode, record_type_for
from lessonly.services.form_state import LessonForm, new_form
from lessonly.services.repository import PersistenceError, RecordNotFound

router = APIRouter()

# -------------------------
# Logging Configuration
# -------------------------
logger = logging.getLogger("lesson_plan_api")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# -------------------------
# Helpers
# -------------------------
def _form_error(form: LessonForm) -> HTTPException:
    if form.errors:
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Please fix the highlighted fields.", "errors": form.errors},
        )
    return HTTPException(status_code=500, detail=form.error or "Request failed")


def _apply(form: LessonForm, values: Dict[str, Any]) -> None:
    try:
        form.update_fields(values)
    except (ValidationError, ValueError) as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


async def _load(form: LessonForm) -> None:
    try:
        await form.load()
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))


# -------------------------
# Protected Endpoints
# -------------------------
@router.get("/lesson-plans/{mode}", summary="List saved lesson plans")
async def list_lesson_plans(
    mode: Mode,
    subject: Optional[str] = None,
    topic: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_lesson_repository),
):
    items, total = await repo.list(owner_id, mode, limit=limit, offset=offset, subject=subject, topic=topic)
    record_type = record_type_for(mode)
    return {
        "items": [record_type.model_validate(i).model_dump(by_alias=True) for i in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/lesson-plans/{mode}", status_code=status.HTTP_201_CREATED, summary="Create a lesson plan")
async def create_lesson_plan(
    mode: Mode,
    values: Dict[str, Any] = Body(...),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_lesson_repository),
    classes=Depends(get_class_repository),
    profiles=Depends(get_profile_repository),
    generator=Depends(get_generator),
):
    form = new_form(mode, repo, generator, owner_id, classes=classes, profiles=profiles)
    _apply(form, values)
    if not await form.save():
        raise _form_error(form)

    logger.info(f"{mode.value} lesson plan {form.record_id} created by {owner_id}")
    return form.to_dict()


@router.get("/lesson-plans/{mode}/{record_id}", summary="Fetch one lesson plan")
async def get_lesson_plan(
    mode: Mode,
    record_id: str,
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_lesson_repository),
    generator=Depends(get_generator),
):
    form = new_form(mode, repo, generator, owner_id, record_id=record_id)
    await _load(form)
    return form.to_dict()


@router.put("/lesson-plans/{mode}/{record_id}", summary="Update a lesson plan")
async def update_lesson_plan(
    mode: Mode,
    record_id: str,
    values: Dict[str, Any] = Body(...),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_lesson_repository),
    generator=Depends(get_generator),
):
    form = new_form(mode, repo, generator, owner_id, record_id=record_id)
    await _load(form)
    _apply(form, values)
    if not await form.save():
        raise _form_error(form)
    return form.to_dict()


@router.delete("/lesson-plans/{mode}/{record_id}", summary="Delete a lesson plan")
async def delete_lesson_plan(
    mode: Mode,
    record_id: str,
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_lesson_repository),
):
    try:
        await repo.delete(owner_id, mode, record_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"message": "Lesson plan deleted", "id": record_id}


@router.post("/lesson-plans/{mode}/{record_id}/generate", summary="Merge an AI draft into a saved plan")
async def generate_into_lesson_plan(
    mode: Mode,
    record_id: str,
    values: Optional[Dict[str, Any]] = Body(default=None),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_lesson_repository),
    generator=Depends(get_generator),
):
    """
    Load the plan, apply any unsaved edits sent in the body, and merge a
    generated draft over it. Nothing is saved; the merged draft is returned.
    """
    form = new_form(mode, repo, generator, owner_id, record_id=record_id)
    await _load(form)
    if values:
        _apply(form, values)

    if not await form.generate():
        raise _form_error(form)
    return form.to_dict()
