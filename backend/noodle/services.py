"""Business logic services used by HTTP controllers.

Services coordinate repositories and the token service. They raise the
domain errors from `noodle.errors`; mapping those to HTTP responses is
left to the controllers in `noodle.main`.
"""

import logging
from typing import List, Optional, Sequence

from passlib.context import CryptContext
from sqlmodel import Session

from . import models, repositories
from .errors import NotFoundError
from .models import Role
from .schemas import RegisterIn
from .tokens import TokenService

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("noodle.services")


class AuthService:
    """Account operations: register, authenticate, delete, change password."""
    def __init__(self, session: Session):
        self.session = session
        self.coordinator = repositories.PersistenceCoordinator(session)
        self.user_repo = repositories.UserRepository(session)

    def register(self, data: RegisterIn) -> models.User:
        """Create an account and its profile together.

        Both rows are written in one transaction; if either violates a
        uniqueness constraint neither is stored and `PersistError` is raised.
        """
        user = models.User(
            username=data.username,
            password_hash=PWD_CTX.hash(data.password),
            is_teacher=data.role == Role.TEACHER.value,
            is_administrator=data.role == Role.ADMINISTRATOR.value,
        )
        detail = models.UserDetail(
            user=user,
            fullname=data.fullname,
            address=data.address,
            matriculation_number=data.matriculation_number,
            mail=data.mail,
        )
        self.coordinator.save_many([user, detail])
        logger.info("registered %s as %s", user.username, user.role.value)
        return user

    def authenticate(self, username: str, password: str, tokens: TokenService) -> Optional[str]:
        """Verify credentials and return a signed token, or `None`."""
        try:
            user = self.user_repo.get_by_username(username)
            if not PWD_CTX.verify(password, user.password_hash):
                return None
            detail = self.user_repo.get_detail(user)
        except NotFoundError:
            return None
        return tokens.issue(user.id, user.username, detail.fullname, user.role)

    def delete_account(self, username: str) -> None:
        user = self.user_repo.get_by_username(username)
        self.user_repo.delete_account(user)
        logger.info("deleted account %s", username)

    def change_password(self, username: str, new_password: str) -> models.User:
        user = self.user_repo.get_by_username(username)
        user.password_hash = PWD_CTX.hash(new_password)
        return self.coordinator.save_one(user)

    def profile(self, user_id: int):
        user = self.user_repo.get(user_id)
        return user, self.user_repo.get_detail(user)

    def ensure_administrator(self, username: str, password: str) -> models.User:
        """Create the bootstrap administrator unless the username exists."""
        try:
            return self.user_repo.get_by_username(username)
        except NotFoundError:
            pass
        data = RegisterIn(
            username=username,
            password=password,
            role=Role.ADMINISTRATOR.value,
            fullname="Administrator",
            address="Administrator Street",
            matriculationNumber="123456789",
            mail="admin@noodle.pasta",
        )
        return self.register(data)


class ModuleService:
    """Create modules, assign teachers and add module items."""
    def __init__(self, session: Session):
        self.session = session
        self.coordinator = repositories.PersistenceCoordinator(session)
        self.module_repo = repositories.ModuleRepository(session)

    def create(self, name: str, description: Optional[str] = None, teacher_ids: Sequence[int] = (),
               course_id: Optional[int] = None, senior_module_id: Optional[int] = None) -> models.Module:
        teachers = [self._teacher(t) for t in dict.fromkeys(teacher_ids)]
        module = models.Module(name=name, description=description, course_id=course_id,
                               senior_module_id=senior_module_id, assigned_teachers=teachers)
        return self.coordinator.save_one(module)

    def get(self, module_id: int) -> models.Module:
        return self.module_repo.get_with_teachers(module_id)

    def assign_teacher(self, module_id: int, teacher_id: int) -> models.Module:
        """Add `teacher_id` to the module's teachers; assigning twice is a no-op."""
        module = self.module_repo.get_with_teachers(module_id)
        if teacher_id in {t.id for t in module.assigned_teachers}:
            return module
        teacher = self._teacher(teacher_id)
        module.assigned_teachers.append(teacher)
        self.coordinator.save_one(module)
        return self.module_repo.get_with_teachers(module_id)

    def add_item(self, module_id: int, owner_id: int, content: str, web_link: Optional[str] = None,
                 is_visible: bool = True, has_file_upload: bool = False,
                 file_name: Optional[str] = None, file_path: Optional[str] = None) -> models.ModuleItem:
        """Create a module item; with a file descriptor, item and file go in one write set."""
        self.module_repo.get_with_teachers(module_id)
        item = models.ModuleItem(module_id=module_id, content=content, web_link=web_link,
                                 is_visible=is_visible, has_file_upload=has_file_upload)
        if file_name is None:
            return self.coordinator.save_one(item)
        stored = models.File(owner_id=owner_id, name=file_name, path=file_path or "")
        item.downloadable_file = stored
        self.coordinator.save_many([stored, item])
        return item

    def _teacher(self, teacher_id: int) -> models.User:
        user = self.coordinator.find_one({"id": teacher_id}, models.User)
        if user.role != Role.TEACHER:
            raise ValueError("Only teachers can be assigned")
        return user


class GradeService:
    """Insert, list and delete grades of a module."""
    def __init__(self, session: Session):
        self.session = session
        self.coordinator = repositories.PersistenceCoordinator(session)

    def upsert(self, module_id: int, student_id: int, grade: float, weight: int) -> models.Grade:
        """Store a student's grade for a module, replacing an existing one."""
        existing = self.coordinator.find_many({"module_id": module_id, "student_id": student_id}, models.Grade)
        if existing:
            row = existing[0]
            row.grade = grade
            row.weight = weight
        else:
            row = models.Grade(module_id=module_id, student_id=student_id, grade=grade, weight=weight)
        return self.coordinator.save_one(row)

    def for_module(self, module_id: int) -> List[dict]:
        """Grades of a module with the student's name and matriculation number."""
        out = []
        for g in self.coordinator.find_many({"module_id": module_id}, models.Grade):
            detail = self.coordinator.find_one({"user_id": g.student_id}, models.UserDetail)
            out.append({
                "id": g.id,
                "grade": g.grade,
                "weight": g.weight,
                "studentId": g.student_id,
                "studentDetails": {
                    "fullname": detail.fullname,
                    "matriculationNumber": detail.matriculation_number,
                },
            })
        return out

    def for_student(self, student_id: int) -> List[dict]:
        out = []
        for g in self.coordinator.find_many({"student_id": student_id}, models.Grade):
            module = self.coordinator.find_one({"id": g.module_id}, models.Module)
            out.append({
                "grade": g.grade,
                "weight": g.weight,
                "moduleId": {"id": module.id, "name": module.name, "description": module.description},
            })
        return out

    def delete(self, module_id: int, student_id: int) -> int:
        removed = self.coordinator.delete_many({"module_id": module_id, "student_id": student_id}, models.Grade)
        if not removed:
            raise NotFoundError("no grade for this student in this module")
        return removed

