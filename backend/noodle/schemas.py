"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Field aliases follow the camelCase names
used on the wire.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Role


class UserSession(BaseModel):
    """Verified contents of a bearer token for one request."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: int
    username: str
    full_name: str = Field(alias="fullName")
    role: Role
    exp: int


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: str
    password: str


class RegisterIn(LoginIn):
    """Payload for registering an account together with its profile."""
    model_config = ConfigDict(populate_by_name=True)

    role: str = Role.STUDENT.value
    fullname: str
    address: str = ""
    matriculation_number: str = Field(alias="matriculationNumber")
    mail: str


class DeleteUserIn(BaseModel):
    username: str


class ChangePasswordIn(LoginIn):
    pass


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class ProfileOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    username: str
    role: Role
    fullname: str
    address: str
    matriculation_number: str = Field(serialization_alias="matriculationNumber")
    mail: str
    course_id: Optional[int] = Field(default=None, serialization_alias="courseId")


class ModuleIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    assigned_teacher: List[int] = Field(default_factory=list, alias="assignedTeacher")
    assigned_course: Optional[int] = Field(default=None, alias="assignedCourse")
    senior_module: Optional[int] = Field(default=None, alias="seniorModule")


class ModuleOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    course_id: Optional[int] = Field(default=None, serialization_alias="courseId")
    teacher_ids: List[int] = Field(default_factory=list, serialization_alias="assignedTeacher")


class AssignTeacherIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teacher_id: int = Field(alias="teacherId")


class FileIn(BaseModel):
    """Descriptor of a file already placed in storage."""
    name: str
    path: str


class ModuleItemIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: Optional[int] = Field(default=None, alias="moduleId")
    content: str
    web_link: Optional[str] = Field(default=None, alias="webLink")
    is_visible: bool = Field(default=True, alias="isVisible")
    has_file_upload: bool = Field(default=False, alias="hasFileUpload")
    downloadable_file: Optional[FileIn] = Field(default=None, alias="downloadableFile")


class ModuleItemOut(BaseModel):
    id: int
    module_id: int = Field(serialization_alias="moduleId")
    content: str
    web_link: Optional[str] = Field(default=None, serialization_alias="webLink")
    is_visible: bool = Field(serialization_alias="isVisible")
    has_file_upload: bool = Field(serialization_alias="hasFileUpload")
    downloadable_file_id: Optional[int] = Field(default=None, serialization_alias="downloadableFileId")


class GradeIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: Optional[int] = Field(default=None, alias="moduleId")
    student_id: int = Field(alias="studentId")
    grade: float
    weight: int = 100


class GradeDeleteIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    module_id: Optional[int] = Field(default=None, alias="moduleId")
    student_id: int = Field(alias="studentId")

