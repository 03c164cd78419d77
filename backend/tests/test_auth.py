from datetime import timedelta

import pytest
from fastapi import Depends, Request
from jose import jwt

from src.api.auth import TokenService, get_current_user_id, get_password_hash, verify_password
from src.api.config import Settings, load_settings
from src.api.errors import ConfigurationError

from conftest import TEST_SECRET, bearer, register


# -------- Password hashing --------

def test_hash_is_salted_and_verifies():
    first = get_password_hash("hunter22")
    second = get_password_hash("hunter22")
    assert first != second
    assert "hunter22" not in first
    assert verify_password("hunter22", first)
    assert verify_password("hunter22", second)


def test_verify_wrong_password_returns_false():
    hashed = get_password_hash("hunter22")
    assert verify_password("hunter23", hashed) is False


def test_verify_against_garbage_hash_returns_false():
    assert verify_password("hunter22", "not-a-hash") is False


def test_hash_uses_cost_ten():
    assert get_password_hash("hunter22").startswith(("$2b$10$", "$2a$10$"))


# -------- Token service --------

def test_issue_and_verify_round_trip():
    tokens = TokenService(TEST_SECRET, expire_minutes=5)
    assert tokens.verify(tokens.issue("abc123")) == "abc123"


def test_expired_token_is_invalid():
    tokens = TokenService(TEST_SECRET, expire_minutes=5)
    token = tokens.issue("abc123", expires_delta=timedelta(seconds=-10))
    assert tokens.verify(token) is None


def test_token_from_other_secret_is_invalid():
    ours = TokenService(TEST_SECRET, expire_minutes=5)
    theirs = TokenService("another-secret", expire_minutes=5)
    assert ours.verify(theirs.issue("abc123")) is None


@pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "Bearer x"])
def test_malformed_token_is_invalid(token):
    assert TokenService(TEST_SECRET, expire_minutes=5).verify(token) is None


def test_tampered_token_is_invalid():
    tokens = TokenService(TEST_SECRET, expire_minutes=5)
    header, payload, signature = tokens.issue("abc123").split(".")
    forged = jwt.encode({"sub": "someone-else"}, TEST_SECRET, algorithm="HS256").split(".")[1]
    assert tokens.verify(".".join([header, forged, signature])) is None


def test_token_without_subject_is_invalid():
    token = jwt.encode({"user": {"id": "abc123"}}, TEST_SECRET, algorithm="HS256")
    assert TokenService(TEST_SECRET, expire_minutes=5).verify(token) is None


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        TokenService("", expire_minutes=5)


# -------- Configuration --------

def test_missing_secret_aborts_startup():
    with pytest.raises(ConfigurationError):
        load_settings({"DATABASE_URL": "sqlite://"})


def test_blank_secret_aborts_startup():
    with pytest.raises(ConfigurationError):
        load_settings({"SECRET_KEY": "   "})


def test_settings_from_environment():
    settings = load_settings({
        "SECRET_KEY": "s3cret",
        "DATABASE_URL": "sqlite:///./other.db",
        "ACCESS_TOKEN_EXPIRE_MINUTES": "15",
        "PORT": "8080",
        "LOG_LEVEL": "debug",
    })
    assert settings == Settings(
        secret_key="s3cret",
        database_url="sqlite:///./other.db",
        access_token_expire_minutes=15,
        port=8080,
        log_level="DEBUG",
    )


def test_settings_defaults():
    settings = load_settings({"SECRET_KEY": "s3cret"})
    assert settings.database_url == "sqlite:///./notes.db"
    assert settings.access_token_expire_minutes == 60
    assert settings.port == 4000


@pytest.mark.parametrize("value", ["soon", "0", "-5"])
def test_bad_expiry_aborts_startup(value):
    with pytest.raises(ConfigurationError):
        load_settings({"SECRET_KEY": "s3cret", "ACCESS_TOKEN_EXPIRE_MINUTES": value})


# -------- Auth gate --------

@pytest.mark.parametrize("path", ["/profile", "/notes"])
def test_missing_token_is_rejected(client, path):
    response = client.get(path)
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.parametrize("header", ["Bearer", "Bearer not-a-token", "Basic dXNlcjpwdw==", "token"])
def test_bad_authorization_header_is_rejected(client, header):
    response = client.get("/notes", headers={"Authorization": header})
    assert response.status_code == 401


def test_expired_token_is_rejected_by_gate(client, app):
    token = register(client, "carol@example.com")
    user_id = app.state.token_service.verify(token)
    expired = app.state.token_service.issue(user_id, expires_delta=timedelta(seconds=-1))
    assert client.get("/profile", headers=bearer(expired)).status_code == 401


def test_token_signed_with_other_secret_is_rejected_by_gate(client, app):
    token = register(client, "carol@example.com")
    user_id = app.state.token_service.verify(token)
    forged = TokenService("not-the-server-secret", expire_minutes=5).issue(user_id)
    assert client.get("/profile", headers=bearer(forged)).status_code == 401


def test_unauthenticated_request_rejected_before_body_validation(client):
    response = client.post("/notes", json={})
    assert response.status_code == 401


def test_gate_binds_user_id_to_request_state(client, app):
    def whoami(request: Request, user_id: str = Depends(get_current_user_id)):
        return {"state": request.state.user_id, "returned": user_id}

    app.add_api_route("/whoami", whoami, methods=["GET"])
    token = register(client, "dave@example.com")
    expected = app.state.token_service.verify(token)

    response = client.get("/whoami", headers=bearer(token))
    assert response.status_code == 200
    assert response.json() == {"state": expected, "returned": expected}
    assert client.get("/whoami").status_code == 401
