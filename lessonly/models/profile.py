from enum import Enum
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict


class ProfileKind(str, Enum):
    TEACHER = "teacher"
    TUTOR = "tutor"


class StudentProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    goals: Optional[str] = None
    interests: Optional[str] = None
    learning_preferences: Optional[str] = None
    strengths: Optional[str] = None
    weaknesses: Optional[str] = None
    notes: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id", "owner_id", "created_at", "updated_at"})


class TeacherStudentProfile(StudentProfile):
    class_name: Optional[str] = None
    year_group: Optional[str] = None
    special_educational_needs: Optional[str] = None


class TutorStudentProfile(StudentProfile):
    level: Optional[str] = None
    sen: Optional[str] = None


class ClassGroup(BaseModel):
    id: Optional[str] = None
    owner_id: Optional[str] = None
    class_name: str
    year_group: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


PROFILE_TYPES: Dict[ProfileKind, Type[StudentProfile]] = {
    ProfileKind.TEACHER: TeacherStudentProfile,
    ProfileKind.TUTOR: TutorStudentProfile,
}
