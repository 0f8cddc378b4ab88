import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from lessonly.api.deps import get_class_repository, get_profile_repository
from lessonly.core.security import get_current_user
from lessonly.models.profile import PROFILE_TYPES, ProfileKind, StudentProfile
from lessonly.services.repository import PersistenceError, RecordNotFound
from lessonly.services.validation import validate_profile

router = APIRouter()

logger = logging.getLogger(__name__)


def _parse(kind: ProfileKind, values: Dict[str, Any]) -> StudentProfile:
    try:
        profile = PROFILE_TYPES[kind].model_validate(values)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    errors = validate_profile(kind, profile)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Please fix the highlighted fields.", "errors": errors},
        )
    return profile


def _out(kind: ProfileKind, data: Dict[str, Any]) -> Dict[str, Any]:
    return PROFILE_TYPES[kind].model_validate(data).model_dump()


@router.get("/student-profiles/{kind}", summary="List student profiles")
async def list_profiles(
    kind: ProfileKind,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_profile_repository),
):
    items, total = await repo.list(owner_id, kind, limit=limit, offset=offset)
    return {"items": [_out(kind, i) for i in items], "total": total, "limit": limit, "offset": offset}


@router.post("/student-profiles/{kind}", status_code=status.HTTP_201_CREATED, summary="Create a student profile")
async def create_profile(
    kind: ProfileKind,
    values: Dict[str, Any] = Body(...),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_profile_repository),
    classes=Depends(get_class_repository),
):
    profile = _parse(kind, values)
    try:
        if kind is ProfileKind.TEACHER and profile.class_name:
            await classes.ensure_class(owner_id, profile.class_name.upper(), profile.year_group)
        saved = await repo.create(owner_id, kind, profile.payload())
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    logger.info("Created %s student profile %s", kind.value, saved["id"])
    return _out(kind, saved)


@router.get("/student-profiles/{kind}/{profile_id}", summary="Fetch one student profile")
async def get_profile(
    kind: ProfileKind,
    profile_id: str,
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_profile_repository),
):
    try:
        return _out(kind, await repo.get(owner_id, kind, profile_id))
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/student-profiles/{kind}/{profile_id}", summary="Update a student profile")
async def update_profile(
    kind: ProfileKind,
    profile_id: str,
    values: Dict[str, Any] = Body(...),
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_profile_repository),
):
    profile = _parse(kind, values)
    try:
        saved = await repo.update(owner_id, kind, profile_id, profile.payload())
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _out(kind, saved)


@router.delete("/student-profiles/{kind}/{profile_id}", summary="Delete a student profile")
async def delete_profile(
    kind: ProfileKind,
    profile_id: str,
    owner_id: str = Depends(get_current_user),
    repo=Depends(get_profile_repository),
):
    try:
        await repo.delete(owner_id, kind, profile_id)
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"message": "Student profile deleted", "id": profile_id}
