from enum import Enum
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from lessonly.core.security import get_current_user
from lessonly.models.lesson import Mode
from lessonly.services.form_state import FORM_CONFIGS
from lessonly.services.stage_list import StageIndexError, StageListEditor, StageListOptions

router = APIRouter()


class StructureOp(str, Enum):
    NORMALIZE = "normalize"
    ADD = "add"
    REMOVE = "remove"
    CLEAR = "clear"
    RENAME = "rename"
    EDIT = "edit"


INDEXED_OPS = {StructureOp.REMOVE, StructureOp.CLEAR, StructureOp.RENAME, StructureOp.EDIT}


class StructureRequest(BaseModel):
    lesson_structure: List[Any] = Field(default_factory=list)
    index: Optional[int] = None
    name: Optional[str] = None
    field: Optional[str] = None
    value: Optional[str] = None
    # the mode's form settings win over the explicit flags
    mode: Optional[Mode] = None
    renumber: bool = True
    enforce_stage_prefix: bool = False
    new_record: bool = False

    def options(self) -> StageListOptions:
        if self.mode is not None:
            return FORM_CONFIGS[self.mode].stage_options(new_record=self.new_record)
        return StageListOptions(renumber=self.renumber, enforce_stage_prefix=self.enforce_stage_prefix)


def _unprocessable(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=message)


@router.post("/lesson-structure/{op}", summary="Apply one stage list edit")
def edit_lesson_structure(op: StructureOp, req: StructureRequest, owner_id: str = Depends(get_current_user)):
    """
    Stateless stage editor. The submitted list is repaired first, so the
    result always opens with Starter and closes with Plenary.
    """
    editor = StageListEditor(options=req.options(), stages=req.lesson_structure)
    if op in INDEXED_OPS and req.index is None:
        raise _unprocessable(f"'{op.value}' needs an index")

    try:
        if op is StructureOp.ADD:
            editor.add()
        elif op is StructureOp.REMOVE:
            editor.remove(req.index)
        elif op is StructureOp.CLEAR:
            editor.clear(req.index)
        elif op is StructureOp.RENAME:
            editor.rename(req.index, req.name or "")
        elif op is StructureOp.EDIT:
            if not req.field:
                raise _unprocessable("'edit' needs a field")
            editor.edit(req.index, req.field, req.value or "")
    except StageIndexError as e:
        raise _unprocessable(str(e))
    except ValueError as e:
        raise _unprocessable(str(e))

    return {"lesson_structure": editor.to_wire()}
