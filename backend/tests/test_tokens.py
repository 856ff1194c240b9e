import time

import jwt
import pytest

from noodle.config import DEV_SIGNING_KEY, Settings
from noodle.errors import InvalidToken
from noodle.models import Role
from noodle.tokens import TokenService


def test_issue_then_verify_keeps_identity_and_role():
    now = int(time.time())
    svc = TokenService("secret", clock=lambda: now)
    for i, role in enumerate(Role, start=1):
        session = svc.verify(svc.issue(i, f"user{i}", "Some Name", role))
        assert session.id == i
        assert session.username == f"user{i}"
        assert session.full_name == "Some Name"
        assert session.role == role
        assert session.exp == now + 12 * 60 * 60


def test_payload_uses_wire_field_names():
    svc = TokenService("secret")
    payload = jwt.decode(svc.issue(7, "t1", "T One", Role.TEACHER), "secret", algorithms=["HS256"])
    assert set(payload) == {"id", "username", "fullName", "role", "exp"}
    assert payload["role"] == "teacher"
    assert isinstance(payload["exp"], int)


def test_expired_token_is_rejected():
    past = time.time() - 13 * 60 * 60
    svc = TokenService("secret", clock=lambda: past)
    token = svc.issue(1, "old", "Old", Role.ADMINISTRATOR)
    with pytest.raises(InvalidToken):
        TokenService("secret").verify(token)


def test_token_signed_with_other_key_is_rejected():
    token = TokenService("one-key").issue(1, "a", "A", Role.STUDENT)
    with pytest.raises(InvalidToken):
        TokenService("another-key").verify(token)


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
def test_malformed_tokens_are_rejected(token):
    with pytest.raises(InvalidToken):
        TokenService("secret").verify(token)


def test_payload_missing_fields_is_rejected():
    token = jwt.encode({"id": 1, "exp": int(time.time()) + 60}, "secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        TokenService("secret").verify(token)


def test_payload_without_exp_is_rejected():
    token = jwt.encode({"id": 1, "username": "a", "fullName": "A", "role": "student"}, "secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        TokenService("secret").verify(token)


def test_empty_signing_key_is_refused():
    with pytest.raises(ValueError):
        TokenService("")


def test_dev_settings_use_fixed_signing_key(monkeypatch):
    monkeypatch.setenv("ENV", "dev")
    assert Settings().JWT_SIGNING_KEY == DEV_SIGNING_KEY


def test_non_dev_settings_generate_a_fresh_key_per_process(monkeypatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("SEED_ADMINISTRATOR", "false")
    first, second = Settings(), Settings()
    assert first.JWT_SIGNING_KEY != DEV_SIGNING_KEY
    assert first.JWT_SIGNING_KEY != second.JWT_SIGNING_KEY
    token = TokenService(first.JWT_SIGNING_KEY).issue(1, "a", "A", Role.STUDENT)
    with pytest.raises(InvalidToken):
        TokenService(second.JWT_SIGNING_KEY).verify(token)
