from datetime import datetime, timedelta, timezone

import jwt
import pytest

from auth import Identity, can_manage_user, decode_token, hash_password, issue_token, verify_password
from config import Settings


# --- passwords ---

def test_hash_password_is_salted():
    first, second = hash_password("hunter2"), hash_password("hunter2")
    assert first != second
    assert verify_password("hunter2", first)
    assert verify_password("hunter2", second)


def test_verify_password_rejects_wrong_or_garbage():
    stored = hash_password("hunter2")
    assert not verify_password("hunter3", stored)
    assert not verify_password("hunter2", "hunter2")
    assert not verify_password("hunter2", "md5$1$salt$abc")


# --- tokens ---

def test_issue_and_decode_token(settings):
    token = issue_token(settings, "abc123", True)
    assert decode_token(settings, token) == Identity(user_id="abc123", is_admin=True)


def test_decode_rejects_expired_token(settings):
    expired = Settings(jwt_secret=settings.jwt_secret, token_ttl_minutes=-1)
    token = issue_token(expired, "abc123", False)
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_token(settings, token)


def test_decode_requires_expiry(settings):
    token = jwt.encode({"sub": "abc123"}, settings.jwt_secret, algorithm="HS256")
    with pytest.raises(jwt.InvalidTokenError):
        decode_token(settings, token)


def test_can_manage_user(settings):
    alice = Identity("a", False)
    admin = Identity("z", True)
    assert can_manage_user(settings, alice, "b")

    strict = Settings(jwt_secret=settings.jwt_secret, enforce_user_ownership=True)
    assert can_manage_user(strict, alice, "a")
    assert not can_manage_user(strict, alice, "b")
    assert can_manage_user(strict, admin, "b")


# --- guard ---

def test_missing_header_is_401(client, sample_problem):
    resp = client.post("/problems", json=sample_problem)
    assert resp.status_code == 401
    assert resp.content == b""
    assert resp.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.parametrize("header", ["Bearer", "Token abc.def.ghi", "abc.def.ghi"])
def test_header_without_bearer_token_is_401(client, header):
    resp = client.patch("/problems/0123456789abcdef01234567/solve", headers={"Authorization": header})
    assert resp.status_code == 401


def test_malformed_token_is_403(client):
    resp = client.patch("/problems/0123456789abcdef01234567/solve", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 403
    assert resp.content == b""


def test_token_signed_with_other_secret_is_403(client):
    token = jwt.encode(
        {"sub": "abc", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        "some-other-secret-0123456789-abcdefghij",
        algorithm="HS256",
    )
    resp = client.delete("/users/0123456789abcdef01234567", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


def test_expired_token_is_403(client, settings):
    expired = Settings(jwt_secret=settings.jwt_secret, token_ttl_minutes=-5)
    token = issue_token(expired, "abc", False)
    resp = client.delete("/problems/0123456789abcdef01234567", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


def test_auth_checked_before_body(client):
    resp = client.post("/problems", json={"name": ""})
    assert resp.status_code == 401


def test_valid_token_proceeds(client, auth_headers):
    resp = client.patch("/problems/0123456789abcdef01234567/solve", headers=auth_headers)
    assert resp.status_code == 404
