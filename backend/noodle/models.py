"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Accounts (`User`) and their profiles (`UserDetail`) are one-to-one;
modules and teacher accounts are many-to-many through
`ModuleTeacherLink`.
"""

from typing import List, Optional
from datetime import datetime, timezone
from enum import Enum

from sqlmodel import SQLModel, Field, Relationship


class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMINISTRATOR = "administrator"


class ModuleTeacherLink(SQLModel, table=True):
    """Assignment of a teacher account to a module."""
    module_id: Optional[int] = Field(default=None, foreign_key="module.id", primary_key=True)
    teacher_id: Optional[int] = Field(default=None, foreign_key="user.id", primary_key=True)


class Course(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)


class User(SQLModel, table=True):
    """A registered account.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `is_teacher` / `is_administrator`: role flags, neither set means student
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    is_teacher: bool = False
    is_administrator: bool = False
    course_id: Optional[int] = Field(default=None, foreign_key="course.id")
    detail: Optional["UserDetail"] = Relationship(
        back_populates="user", sa_relationship_kwargs={"uselist": False}
    )
    teaching_modules: List["Module"] = Relationship(
        back_populates="assigned_teachers", link_model=ModuleTeacherLink
    )

    @property
    def role(self) -> Role:
        """Administrator wins over teacher; no flag means student."""
        if self.is_administrator:
            return Role.ADMINISTRATOR
        if self.is_teacher:
            return Role.TEACHER
        return Role.STUDENT


class UserDetail(SQLModel, table=True):
    """Profile of an account; never exists without its owning `User`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", unique=True)
    fullname: str
    address: str = ""
    matriculation_number: str = Field(unique=True)
    mail: str = Field(unique=True)
    user: Optional[User] = Relationship(back_populates="detail")


class Module(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    course_id: Optional[int] = Field(default=None, foreign_key="course.id")
    senior_module_id: Optional[int] = Field(default=None, foreign_key="module.id")
    assigned_teachers: List[User] = Relationship(
        back_populates="teaching_modules", link_model=ModuleTeacherLink
    )


class File(SQLModel, table=True):
    """Metadata of a stored file; the bytes live outside the database."""
    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: Optional[int] = Field(default=None, foreign_key="user.id")
    name: str
    path: str
    upload_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ModuleItem(SQLModel, table=True):
    """A content entry inside a module, optionally carrying a downloadable file."""
    id: Optional[int] = Field(default=None, primary_key=True)
    module_id: int = Field(foreign_key="module.id", index=True)
    content: str
    web_link: Optional[str] = None
    is_visible: bool = True
    has_file_upload: bool = False
    downloadable_file_id: Optional[int] = Field(default=None, foreign_key="file.id")
    downloadable_file: Optional[File] = Relationship()


class Grade(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    module_id: int = Field(foreign_key="module.id", index=True)
    student_id: int = Field(foreign_key="user.id", index=True)
    grade: float
    weight: int = 100
