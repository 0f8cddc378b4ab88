"""
Lesson structure rules.

A stage list always opens with a "Starter" and closes with a "Plenary";
anything between them is a middle stage that can be added, removed and
renamed. Every function here returns a new list and leaves its input alone.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from lessonly.models.stage import ANCHORS, NOTE_FIELDS, PLENARY, STARTER, Stage

logger = logging.getLogger(__name__)

_STAGE_PREFIX = re.compile(r"^stage\s*", re.IGNORECASE)


class StageIndexError(IndexError):
    """Raised when an operation targets a position outside the stage list."""

    def __init__(self, index: int, length: int):
        super().__init__(f"Stage index {index} is out of range for a list of {length} stages")
        self.index = index
        self.length = length


@dataclass(frozen=True)
class StageListOptions:
    renumber: bool = True
    enforce_stage_prefix: bool = False


def _coerce(item: Any) -> Optional[Stage]:
    if isinstance(item, Stage):
        return item
    if isinstance(item, dict):
        try:
            return Stage.model_validate(item)
        except ValidationError as e:
            logger.warning("Dropping malformed stage %r: %s", item, e)
    return None


def normalize(raw_stages: Optional[Iterable[Any]]) -> List[Stage]:
    """
    Repair any stage-like sequence into a valid stage list.

    Missing anchors are filled with blank stages. When several stages claim
    the same anchor name the first one wins and the others are discarded.
    Middle stages keep their relative order. Never raises.
    """
    if not isinstance(raw_stages, (list, tuple)):
        raw_stages = []
    stages = [s for s in (_coerce(item) for item in raw_stages) if s is not None]

    starters = [s for s in stages if s.name == STARTER]
    plenaries = [s for s in stages if s.name == PLENARY]
    if len(starters) > 1 or len(plenaries) > 1:
        logger.warning(
            "Collapsing duplicate anchors (starters=%d, plenaries=%d); keeping the first of each",
            len(starters),
            len(plenaries),
        )

    starter = starters[0] if starters else Stage.blank(STARTER)
    plenary = plenaries[0] if plenaries else Stage.blank(PLENARY)
    return [starter, *middle_stages(stages), plenary]


def is_valid(stages: List[Stage]) -> bool:
    return (
        len(stages) >= 2
        and stages[0].name == STARTER
        and stages[-1].name == PLENARY
        and all(not s.is_anchor for s in stages[1:-1])
    )


def middle_stages(stages: Iterable[Stage]) -> List[Stage]:
    return [s for s in stages if not s.is_anchor]


def _prepared(stages: List[Stage]) -> List[Stage]:
    if is_valid(stages):
        return list(stages)
    logger.warning("Stage list did not satisfy the anchor rule; normalizing before edit")
    return normalize(stages)


def _check_index(stages: List[Stage], index: int) -> None:
    if not isinstance(index, int) or isinstance(index, bool) or not 0 <= index < len(stages):
        raise StageIndexError(index, len(stages))


def _renumbered(stages: List[Stage]) -> List[Stage]:
    out = []
    n = 0
    for s in stages:
        if s.is_anchor:
            out.append(s)
        else:
            n += 1
            out.append(s.model_copy(update={"name": f"Stage {n}"}))
    return out


def add_middle_stage(stages: List[Stage]) -> List[Stage]:
    """Insert a blank "Stage N" right before the Plenary."""
    stages = _prepared(stages)
    new_stage = Stage.blank(f"Stage {len(middle_stages(stages)) + 1}")
    return [*stages[:-1], new_stage, stages[-1]]


def remove_middle_stage(stages: List[Stage], index: int, renumber: bool = True) -> List[Stage]:
    stages = _prepared(stages)
    _check_index(stages, index)
    if stages[index].is_anchor:
        return stages

    updated = stages[:index] + stages[index + 1:]
    return _renumbered(updated) if renumber else updated


def clear_stage(stages: List[Stage], index: int) -> List[Stage]:
    """Blank the duration and notes of one stage; the name is kept."""
    stages = _prepared(stages)
    _check_index(stages, index)
    updated = list(stages)
    updated[index] = stages[index].model_copy(update={f: "" for f in NOTE_FIELDS})
    return updated


def coerce_stage_name(new_name: str) -> str:
    return _STAGE_PREFIX.sub("Stage ", new_name, count=1)


def rename_stage(
    stages: List[Stage], index: int, new_name: str, enforce_stage_prefix: bool = False
) -> List[Stage]:
    stages = _prepared(stages)
    _check_index(stages, index)
    if stages[index].is_anchor:
        return stages

    new_name = new_name or ""
    if enforce_stage_prefix:
        new_name = coerce_stage_name(new_name)
    if new_name in ANCHORS:
        # a second anchor would be dropped by the next normalize
        logger.warning("Refusing to rename stage %d to reserved name %r", index, new_name)
        return stages

    updated = list(stages)
    updated[index] = stages[index].model_copy(update={"name": new_name})
    return updated


def edit_field(stages: List[Stage], index: int, field_name: str, value: str) -> List[Stage]:
    if field_name not in NOTE_FIELDS:
        raise ValueError(f"Unknown stage field '{field_name}'; expected one of {NOTE_FIELDS}")
    stages = _prepared(stages)
    _check_index(stages, index)
    updated = list(stages)
    updated[index] = stages[index].model_copy(update={field_name: value or ""})
    return updated


@dataclass
class StageListEditor:
    """Holds one stage list and applies edits according to its options."""

    options: StageListOptions = field(default_factory=StageListOptions)
    stages: List[Stage] = field(default_factory=list)

    def __post_init__(self):
        self.stages = normalize(self.stages)

    def replace(self, raw_stages: Optional[Iterable[Any]]) -> List[Stage]:
        self.stages = normalize(raw_stages)
        return self.stages

    def add(self) -> List[Stage]:
        self.stages = add_middle_stage(self.stages)
        return self.stages

    def remove(self, index: int) -> List[Stage]:
        self.stages = remove_middle_stage(self.stages, index, renumber=self.options.renumber)
        return self.stages

    def clear(self, index: int) -> List[Stage]:
        self.stages = clear_stage(self.stages, index)
        return self.stages

    def rename(self, index: int, new_name: str) -> List[Stage]:
        self.stages = rename_stage(
            self.stages, index, new_name, enforce_stage_prefix=self.options.enforce_stage_prefix
        )
        return self.stages

    def edit(self, index: int, field_name: str, value: str) -> List[Stage]:
        self.stages = edit_field(self.stages, index, field_name, value)
        return self.stages

    def to_wire(self) -> List[dict]:
        return [s.to_wire() for s in self.stages]
