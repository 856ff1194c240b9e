"""Authorization rules and the gates built from them.

Rules are pure functions over a verified `UserSession` and the parameters
of the current request. A `Gate` ORs one rule with the administrator
rule; `authorize` evaluates a gate once and raises `PermissionDenied`
when it does not hold. Nothing here writes to the database.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .errors import NotFoundError, PermissionDenied
from .models import Role
from .repositories import ModuleRepository
from .schemas import UserSession

logger = logging.getLogger("noodle.permissions")


@dataclass(frozen=True)
class RequestContext:
    """Request parameters a gate may look at."""
    username: Optional[str] = None
    user_id: Optional[int] = None
    module_id: Optional[int] = None


def is_administrator(session: UserSession) -> bool:
    return session.role == Role.ADMINISTRATOR


def is_own_username(session: UserSession, username: Optional[str]) -> bool:
    return username is not None and session.username == username


def is_own_id(session: UserSession, user_id: Optional[int]) -> bool:
    return user_id is not None and session.id == user_id


def is_module_teacher(session: UserSession, module_id: Optional[int],
                      modules: Optional[ModuleRepository]) -> bool:
    """True iff the session's account is assigned to the module.

    Membership is decided on ids. An unknown module or a failing lookup
    counts as "not a teacher".
    """
    if module_id is None or modules is None:
        return False
    try:
        teacher_ids = modules.teachers_of_module(module_id)
    except (NotFoundError, SQLAlchemyError) as exc:
        logger.info("module teacher lookup failed for module %s: %s", module_id, exc)
        return False
    return session.id in teacher_ids


Rule = Callable[[UserSession, RequestContext, Optional[ModuleRepository]], bool]


@dataclass(frozen=True)
class Gate:
    """A named decision: administrator, or else `rule` if there is one."""
    name: str
    rule: Optional[Rule] = None

    def allows(self, session: UserSession, context: RequestContext,
               modules: Optional[ModuleRepository] = None) -> bool:
        if is_administrator(session):
            return True
        if self.rule is None:
            return False
        return self.rule(session, context, modules)


ADMINISTRATOR_ONLY = Gate("AdministratorOnly")
ADMINISTRATOR_OR_OWN_USERNAME = Gate(
    "AdministratorOrOwnUsername", lambda s, ctx, _m: is_own_username(s, ctx.username)
)
ADMINISTRATOR_OR_OWN_ID = Gate(
    "AdministratorOrOwnId", lambda s, ctx, _m: is_own_id(s, ctx.user_id)
)
ADMINISTRATOR_OR_MODULE_TEACHER = Gate(
    "AdministratorOrModuleTeacher", lambda s, ctx, m: is_module_teacher(s, ctx.module_id, m)
)


def authorize(gate: Gate, session: UserSession, context: RequestContext,
              modules: Optional[ModuleRepository] = None) -> UserSession:
    """Evaluate `gate` and return the session, or raise `PermissionDenied`."""
    if not gate.allows(session, context, modules):
        logger.info("denied %s for user %s", gate.name, session.username)
        raise PermissionDenied(gate.name)
    return session
