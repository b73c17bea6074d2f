import hashlib

import pytest

from files_manager.errors import Unauthorized, ValidationError
from files_manager.services.auth_service import (
    AccessMode,
    User,
    authorize,
    hash_password,
    parse_basic_auth,
)
from tests.fixtures.app_fixtures import basic_auth


def test_hash_password_is_sha1_hex():
    assert hash_password("toto1234!") == hashlib.sha1(b"toto1234!").hexdigest()


def test_register_validation_order(auth_service):
    with pytest.raises(ValidationError, match="Missing email"):
        auth_service.register(None, None)
    with pytest.raises(ValidationError, match="Missing password"):
        auth_service.register("bob@dylan.com", "")


def test_register_rejects_existing_email(auth_service):
    auth_service.register("bob@dylan.com", "toto1234!")
    with pytest.raises(ValidationError, match="Already exist"):
        auth_service.register("bob@dylan.com", "other")


def test_register_stores_digest_not_password(auth_service, adapter):
    user = auth_service.register("bob@dylan.com", "toto1234!")
    stored = adapter.get_document("users", user.id)
    assert stored["password"] == hash_password("toto1234!")


def test_login_then_authenticate(auth_service):
    user = auth_service.register("bob@dylan.com", "toto1234!")

    token = auth_service.login("bob@dylan.com", "toto1234!")

    assert auth_service.authenticate(token) == User(id=user.id, email="bob@dylan.com")


@pytest.mark.parametrize("email, password", [("bob@dylan.com", "wrong"), ("nobody@dylan.com", "toto1234!")])
def test_login_rejects_bad_credentials(auth_service, email, password):
    auth_service.register("bob@dylan.com", "toto1234!")
    with pytest.raises(Unauthorized):
        auth_service.login(email, password)


def test_logout_revokes_token(auth_service):
    auth_service.register("bob@dylan.com", "toto1234!")
    token = auth_service.login("bob@dylan.com", "toto1234!")

    assert auth_service.logout(token) is True
    with pytest.raises(Unauthorized):
        auth_service.authenticate(token)
    assert auth_service.logout(token) is False


@pytest.mark.parametrize("token", [None, "", "not-a-token"])
def test_authenticate_rejects_unknown_tokens(auth_service, token):
    with pytest.raises(Unauthorized):
        auth_service.authenticate(token)


def test_authenticate_rejects_session_of_missing_user(auth_service, session_store):
    session = session_store.create("5f1e7cda04a394508232559c")
    with pytest.raises(Unauthorized):
        auth_service.authenticate(session.token)


def test_authorize():
    owner = User(id="u1", email="a@b.c")
    other = User(id="u2", email="d@e.f")
    private = {"user_id": "u1", "is_public": False}
    public = {"user_id": "u1", "is_public": True}

    assert authorize(owner, private, AccessMode.READ)
    assert authorize(owner, private, AccessMode.WRITE)
    assert not authorize(other, private, AccessMode.READ)
    assert authorize(other, public, AccessMode.READ)
    assert not authorize(other, public, AccessMode.WRITE)


def test_parse_basic_auth():
    header = basic_auth("bob@dylan.com", "to:to")["Authorization"]
    assert parse_basic_auth(header) == ("bob@dylan.com", "to:to")


@pytest.mark.parametrize("header", [None, "", "Bearer abc", "Basic", "Basic !!!", "Basic Ym9iQGR5bGFuLmNvbQ=="])
def test_parse_basic_auth_rejects_malformed(header):
    with pytest.raises(Unauthorized):
        parse_basic_auth(header)
