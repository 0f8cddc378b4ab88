from typing import Any, Dict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

STARTER = "Starter"
PLENARY = "Plenary"
ANCHORS = (STARTER, PLENARY)

# Everything on a stage except its name
NOTE_FIELDS = ("duration", "teaching", "learning", "assessing", "adapting")


class Stage(BaseModel):
    """One timed phase of a lesson or tutoring session.

    Persisted rows and AI output name the stage under ``stage``; ``name`` is
    accepted too.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    name: str = Field(
        default="",
        validation_alias=AliasChoices("stage", "name"),
        serialization_alias="stage",
    )
    duration: str = ""
    teaching: str = Field(default="", description="What the teacher does.")
    learning: str = Field(default="", description="What the learners do.")
    assessing: str = Field(default="", description="How understanding is checked.")
    adapting: str = Field(default="", description="Support and stretch.")

    @field_validator("*", mode="before")
    @classmethod
    def _blank_if_missing(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @classmethod
    def blank(cls, name: str) -> "Stage":
        return cls(name=name)

    @property
    def is_anchor(self) -> bool:
        return self.name in ANCHORS

    def to_wire(self) -> Dict[str, str]:
        return self.model_dump(by_alias=True)
