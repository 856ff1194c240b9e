"""Persistence coordinator and typed repositories.

`PersistenceCoordinator` offers generic find/save/delete operations over
any SQLModel table. Every write runs in its own transaction which is
either committed or rolled back before the call returns; `save_many`
commits a whole write set atomically. The small repositories below build
typed lookups (accounts, modules with their teachers) on top of it.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload
from sqlmodel import Session, SQLModel, select

from . import models
from .errors import NotFoundError, PersistError

logger = logging.getLogger("noodle.persistence")

T = TypeVar("T", bound=SQLModel)


def _strip_criteria(criteria: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in criteria.items() if v is not None and v != ""}


def _where(model: Type[T], criteria: Dict[str, Any]):
    stmt = select(model)
    for field, value in criteria.items():
        column = getattr(model, field, None)
        if column is None:
            raise ValueError(f"{model.__name__} has no field {field!r}")
        stmt = stmt.where(column == value)
    return stmt


class PersistenceCoordinator:
    """Generic find/save/delete operations with all-or-nothing writes."""
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self):
        """Run the enclosed writes as one unit.

        Commits when the block finishes, rolls back and raises
        `PersistError` if anything inside it fails.
        """
        try:
            yield self.session
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("transaction rolled back: %s", exc.__class__.__name__)
            raise PersistError("write failed") from exc
        except Exception:
            self.session.rollback()
            raise

    def find_one(self, criteria: Dict[str, Any], model: Type[T], relations: Sequence[str] = ()) -> T:
        """Return the first row matching `criteria`.

        Null and empty-string values are dropped first; criteria that end
        up empty raise `NotFoundError` instead of matching any row.
        """
        cleaned = _strip_criteria(criteria)
        if not cleaned:
            raise NotFoundError("search criteria undefined")
        stmt = _where(model, cleaned)
        for rel in relations:
            stmt = stmt.options(selectinload(getattr(model, rel)))
        try:
            row = self.session.exec(stmt).first()
        except SQLAlchemyError as exc:
            raise NotFoundError(f"{model.__name__} lookup failed") from exc
        if row is None:
            raise NotFoundError(f"{model.__name__} not found")
        return row

    def find_many(self, criteria: Dict[str, Any], model: Type[T]) -> List[T]:
        """Return all rows matching `criteria` (possibly none)."""
        try:
            return list(self.session.exec(_where(model, criteria)).all())
        except SQLAlchemyError as exc:
            raise NotFoundError(f"{model.__name__} lookup failed") from exc

    def save_one(self, entity: T) -> T:
        """Insert `entity` if it has no id, otherwise update the stored row."""
        with self.transaction():
            if getattr(entity, "id", None) is None:
                self.session.add(entity)
            else:
                entity = self.session.merge(entity)
        self.session.refresh(entity)
        return entity

    def save_many(self, write_set: Iterable[SQLModel]) -> List[SQLModel]:
        """Persist every entity of `write_set` in order, in one transaction.

        Each write is flushed before the next one is added so later members
        can rely on ids of earlier ones. On any failure nothing is stored.
        """
        saved = []
        with self.transaction():
            for entity in write_set:
                if getattr(entity, "id", None) is not None:
                    entity = self.session.merge(entity)
                self.session.add(entity)
                self.session.flush()
                saved.append(entity)
        for entity in saved:
            self.session.refresh(entity)
        return saved

    def delete_one(self, criteria: Dict[str, Any], model: Type[T]) -> T:
        """Delete the single row matching `criteria`; raises `NotFoundError`."""
        row = self.find_one(criteria, model)
        with self.transaction():
            self.session.delete(row)
        return row

    def delete_many(self, criteria: Dict[str, Any], model: Type[T]) -> int:
        """Delete every row matching `criteria` and return how many went."""
        rows = self.find_many(criteria, model)
        with self.transaction():
            for row in rows:
                self.session.delete(row)
        return len(rows)


class UserRepository:
    """Account and profile lookups."""
    def __init__(self, session: Session):
        self.session = session
        self.coordinator = PersistenceCoordinator(session)

    def get_by_username(self, username: Optional[str]) -> models.User:
        return self.coordinator.find_one({"username": username}, models.User)

    def get(self, user_id: int) -> models.User:
        return self.coordinator.find_one({"id": user_id}, models.User)

    def get_detail(self, user: models.User) -> models.UserDetail:
        return self.coordinator.find_one({"user_id": user.id}, models.UserDetail)

    def delete_account(self, user: models.User) -> None:
        """Delete profile and grades, then the account.

        Everything happens in one transaction. Teacher assignments go with
        the account through the relationship; files owned by the account
        are kept and lose their owner.
        """
        with self.coordinator.transaction():
            for model, field in ((models.UserDetail, "user_id"), (models.Grade, "student_id")):
                for row in self.session.exec(_where(model, {field: user.id})).all():
                    self.session.delete(row)
            for f in self.session.exec(_where(models.File, {"owner_id": user.id})).all():
                f.owner_id = None
                self.session.add(f)
            self.session.flush()
            self.session.delete(user)


class ModuleRepository:
    """Module lookups including the module-to-teacher relation."""
    def __init__(self, session: Session):
        self.session = session
        self.coordinator = PersistenceCoordinator(session)

    def get_with_teachers(self, module_id: int) -> models.Module:
        return self.coordinator.find_one({"id": module_id}, models.Module, relations=("assigned_teachers",))

    def teachers_of_module(self, module_id: int) -> Set[int]:
        """Return the ids of the teachers assigned to `module_id`.

        Raises `NotFoundError` when the module does not exist.
        """
        module = self.get_with_teachers(module_id)
        return {t.id for t in module.assigned_teachers}
