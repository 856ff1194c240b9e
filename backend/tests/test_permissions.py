import pytest
from sqlalchemy.exc import OperationalError

from noodle import permissions
from noodle.errors import NotFoundError, PermissionDenied
from noodle.models import Role
from noodle.permissions import RequestContext
from noodle.schemas import UserSession

ALL_GATES = [
    permissions.ADMINISTRATOR_ONLY,
    permissions.ADMINISTRATOR_OR_OWN_USERNAME,
    permissions.ADMINISTRATOR_OR_OWN_ID,
    permissions.ADMINISTRATOR_OR_MODULE_TEACHER,
]


def make_session(role, user_id=5, username="alice"):
    return UserSession(id=user_id, username=username, full_name="Alice", role=role, exp=0)


class FakeModules:
    """Stands in for ModuleRepository.teachers_of_module."""
    def __init__(self, teachers=None, error=None):
        self.teachers = teachers or {}
        self.error = error
        self.calls = []

    def teachers_of_module(self, module_id):
        self.calls.append(module_id)
        if self.error is not None:
            raise self.error
        if module_id not in self.teachers:
            raise NotFoundError("module not found")
        return self.teachers[module_id]


@pytest.mark.parametrize("gate", ALL_GATES, ids=lambda g: g.name)
def test_administrator_passes_every_gate(gate):
    admin = make_session(Role.ADMINISTRATOR, user_id=1, username="root")
    ctx = RequestContext(username="someone", user_id=99, module_id=42)
    assert gate.allows(admin, ctx, FakeModules())


@pytest.mark.parametrize("role", [Role.STUDENT, Role.TEACHER])
def test_administrator_only_denies_others(role):
    assert not permissions.ADMINISTRATOR_ONLY.allows(make_session(role), RequestContext())


@pytest.mark.parametrize("role", [Role.STUDENT, Role.TEACHER])
@pytest.mark.parametrize("requested,allowed", [("alice", True), ("bob", False), ("", False), (None, False)])
def test_own_username_gate(role, requested, allowed):
    gate = permissions.ADMINISTRATOR_OR_OWN_USERNAME
    assert gate.allows(make_session(role), RequestContext(username=requested)) is allowed


@pytest.mark.parametrize("requested,allowed", [(5, True), (6, False), (None, False)])
def test_own_id_gate(requested, allowed):
    gate = permissions.ADMINISTRATOR_OR_OWN_ID
    assert gate.allows(make_session(Role.STUDENT), RequestContext(user_id=requested)) is allowed


def test_module_teacher_gate_checks_membership_by_id():
    modules = FakeModules({1: {5, 8}, 2: {8}})
    teacher = make_session(Role.TEACHER, user_id=5)
    gate = permissions.ADMINISTRATOR_OR_MODULE_TEACHER
    assert gate.allows(teacher, RequestContext(module_id=1), modules)
    assert not gate.allows(teacher, RequestContext(module_id=2), modules)
    assert modules.calls == [1, 2]


def test_module_teacher_gate_denies_unknown_module_without_raising():
    teacher = make_session(Role.TEACHER)
    gate = permissions.ADMINISTRATOR_OR_MODULE_TEACHER
    assert not gate.allows(teacher, RequestContext(module_id=404), FakeModules())


def test_module_teacher_gate_denies_on_storage_error():
    teacher = make_session(Role.TEACHER)
    modules = FakeModules(error=OperationalError("select", {}, Exception("db down")))
    assert not permissions.is_module_teacher(teacher, 1, modules)


def test_module_teacher_gate_without_module_id_skips_lookup():
    modules = FakeModules({1: {5}})
    assert not permissions.is_module_teacher(make_session(Role.TEACHER), None, modules)
    assert modules.calls == []


def test_authorize_returns_session_or_raises():
    student = make_session(Role.STUDENT)
    assert permissions.authorize(permissions.ADMINISTRATOR_OR_OWN_ID, student, RequestContext(user_id=5)) is student
    with pytest.raises(PermissionDenied) as exc:
        permissions.authorize(permissions.ADMINISTRATOR_ONLY, student, RequestContext())
    assert exc.value.gate == "AdministratorOnly"
