"""API tests for registration, login and session endpoints."""

import pytest
from httpx import AsyncClient

from media_accounts.models.user import AccountType
from tests.conftest import TEST_USER_EMAIL, TEST_USER_PASSWORD


async def _register(client: AsyncClient, email: str = "new@example.com", **extra):
    payload = {
        "email": email,
        "password": "a-long-password",
        "firstName": "Ana",
        "lastName": "García",
        **extra,
    }
    return await client.post("/api/users", json=payload)


# --- Registration and verification ---


@pytest.mark.asyncio
async def test_register_creates_unverified_account(async_client, outbox):
    response = await _register(async_client, email="New@Example.com")

    assert response.status_code == 201
    data = response.json()
    assert data["email"] == "new@example.com"
    assert data["emailVerified"] is False
    assert data["accountType"] == "NORMAL"
    assert data["slug"] == "ana-garcia"
    assert data["hasPassword"] is True
    assert "passwordHash" not in data
    assert outbox["new@example.com"]["kind"] == "verification"


@pytest.mark.asyncio
async def test_register_duplicate_email(async_client, verified_user):
    response = await _register(async_client, email=TEST_USER_EMAIL.upper())

    assert response.status_code == 409
    assert response.json()["error"] == "EMAIL_ALREADY_EXISTS"


@pytest.mark.asyncio
async def test_register_artist(async_client):
    response = await _register(async_client, accountType="ARTIST", artistId=42)

    assert response.status_code == 201
    assert response.json()["accountType"] == "ARTIST"
    assert response.json()["artistId"] == 42


@pytest.mark.asyncio
async def test_register_listener_with_artist_id_rejected(async_client):
    response = await _register(async_client, artistId=42)

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_DATA"


@pytest.mark.asyncio
async def test_register_slug_collision_gets_suffix(async_client):
    first = await _register(async_client, email="one@example.com")
    second = await _register(async_client, email="two@example.com")

    assert first.json()["slug"] == "ana-garcia"
    assert second.json()["slug"] == "ana-garcia-2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"email": "not-an-email", "password": "a-long-password", "firstName": "Ana"},
        {"email": "ana@example.com", "password": "short", "firstName": "Ana"},
        {"email": "ana@example.com", "password": "a-long-password"},
    ],
)
async def test_register_validation_errors(async_client, payload):
    response = await async_client.post("/api/users", json=payload)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "INVALID_DATA"
    assert body["message"]


@pytest.mark.asyncio
async def test_verify_email_then_login(async_client, outbox):
    await _register(async_client)
    token = outbox["new@example.com"]["token"]

    response = await async_client.get("/api/users/verify-email", params={"token": token})
    assert response.status_code == 200
    assert response.json()["email"] == "new@example.com"

    login = await async_client.post(
        "/api/users/login", json={"email": "new@example.com", "password": "a-long-password"}
    )
    assert login.status_code == 200

    # Tokens are single use
    again = await async_client.get("/api/users/verify-email", params={"token": token})
    assert again.status_code == 400
    assert again.json()["error"] == "INVALID_VERIFICATION_TOKEN"


@pytest.mark.asyncio
async def test_verify_email_unknown_token(async_client):
    response = await async_client.get("/api/users/verify-email", params={"token": "nope"})

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_VERIFICATION_TOKEN"


@pytest.mark.asyncio
async def test_verify_email_requires_token(async_client):
    response = await async_client.get("/api/users/verify-email")

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_DATA"


@pytest.mark.asyncio
async def test_resend_verification_issues_new_token(async_client, outbox):
    await _register(async_client)
    first = outbox["new@example.com"]["token"]

    response = await async_client.post(
        "/api/users/resend-verification", json={"email": "new@example.com"}
    )

    assert response.status_code == 200
    assert outbox["new@example.com"]["token"] != first
    old = await async_client.get("/api/users/verify-email", params={"token": first})
    assert old.status_code == 400


@pytest.mark.asyncio
async def test_resend_verification_unknown_email(async_client):
    response = await async_client.post(
        "/api/users/resend-verification", json={"email": "ghost@example.com"}
    )

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
async def test_resend_verification_already_verified(async_client, verified_user):
    response = await async_client.post(
        "/api/users/resend-verification", json={"email": TEST_USER_EMAIL}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_DATA"


# --- Login ---


@pytest.mark.asyncio
async def test_login_returns_session(async_client, verified_user):
    response = await async_client.post(
        "/api/users/login",
        json={"email": TEST_USER_EMAIL.upper(), "password": TEST_USER_PASSWORD},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["refreshToken"]
    assert data["tokenType"] == "Bearer"
    assert data["user"]["id"] == verified_user.id
    assert data["user"]["lastLoginAt"] is not None


@pytest.mark.asyncio
async def test_login_access_token_claims(async_client, app, user_factory):
    artist = await user_factory(
        email="artist@example.com", account_type=AccountType.ARTIST, artist_id=9
    )

    response = await async_client.post(
        "/api/users/login",
        json={"email": "artist@example.com", "password": TEST_USER_PASSWORD},
    )

    claims = app.state.token_codec.decode(response.json()["token"])
    assert claims["userId"] == artist.id
    assert claims["email"] == "artist@example.com"
    assert claims["accountType"] == "ARTIST"
    assert claims["artistId"] == 9


@pytest.mark.asyncio
async def test_login_wrong_password(async_client, verified_user):
    response = await async_client.post(
        "/api/users/login", json={"email": TEST_USER_EMAIL, "password": "wrong-password"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"


@pytest.mark.asyncio
async def test_login_unknown_email_matches_wrong_password(async_client, verified_user):
    unknown = await async_client.post(
        "/api/users/login", json={"email": "ghost@example.com", "password": "whatever1"}
    )
    wrong = await async_client.post(
        "/api/users/login", json={"email": TEST_USER_EMAIL, "password": "whatever1"}
    )

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json()


@pytest.mark.asyncio
async def test_login_unverified_email(async_client, user_factory):
    await user_factory(email="pending@example.com", email_verified=False)

    response = await async_client.post(
        "/api/users/login", json={"email": "pending@example.com", "password": TEST_USER_PASSWORD}
    )

    assert response.status_code == 403
    assert response.json()["error"] == "EMAIL_NOT_VERIFIED"


@pytest.mark.asyncio
async def test_login_inactive_account(async_client, user_factory):
    await user_factory(email="gone@example.com", is_active=False)

    correct = await async_client.post(
        "/api/users/login", json={"email": "gone@example.com", "password": TEST_USER_PASSWORD}
    )
    wrong = await async_client.post(
        "/api/users/login", json={"email": "gone@example.com", "password": "wrong-password"}
    )

    assert correct.status_code == 403
    assert correct.json()["error"] == "ACCOUNT_INACTIVE"
    # State is only revealed after the password matched
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_login_rate_limit(async_client, verified_user):
    for _ in range(5):
        response = await async_client.post(
            "/api/users/login", json={"email": TEST_USER_EMAIL, "password": "wrong-password"}
        )
        assert response.status_code == 401

    blocked = await async_client.post(
        "/api/users/login", json={"email": TEST_USER_EMAIL, "password": TEST_USER_PASSWORD}
    )

    assert blocked.status_code == 429
    assert blocked.json()["error"] == "TOO_MANY_REQUESTS"


@pytest.mark.asyncio
async def test_successful_logins_do_not_count_towards_limit(async_client, verified_user):
    for _ in range(7):
        response = await async_client.post(
            "/api/users/login", json={"email": TEST_USER_EMAIL, "password": TEST_USER_PASSWORD}
        )
        assert response.status_code == 200


# --- External identity login ---


@pytest.mark.asyncio
async def test_google_login_creates_verified_account(async_client):
    response = await async_client.post(
        "/api/users/login/google", json={"idToken": "valid:sub-1:fan@example.com"}
    )

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["email"] == "fan@example.com"
    assert user["emailVerified"] is True
    assert user["hasPassword"] is False
    assert user["allowsExternalLogin"] is True

    again = await async_client.post(
        "/api/users/login/google", json={"idToken": "valid:sub-1:fan@example.com"}
    )
    assert again.json()["user"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_google_login_on_password_account_requires_opt_in(async_client, verified_user):
    response = await async_client.post(
        "/api/users/login/google", json={"idToken": f"valid:sub-2:{TEST_USER_EMAIL}"}
    )

    assert response.status_code == 403
    assert response.json()["error"] == "EXTERNAL_LOGIN_DISABLED"


@pytest.mark.asyncio
async def test_google_login_links_opted_in_account(async_client, user_factory):
    user = await user_factory(email="linked@example.com", allows_external_login=True)

    response = await async_client.post(
        "/api/users/login/google", json={"idToken": "valid:sub-3:linked@example.com"}
    )

    assert response.status_code == 200
    assert response.json()["user"]["id"] == user.id


@pytest.mark.asyncio
async def test_google_login_invalid_token(async_client):
    response = await async_client.post("/api/users/login/google", json={"idToken": "forged"})

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_EXTERNAL_TOKEN"


@pytest.mark.asyncio
async def test_password_login_on_external_only_account(async_client):
    await async_client.post(
        "/api/users/login/google", json={"idToken": "valid:sub-4:ext@example.com"}
    )

    response = await async_client.post(
        "/api/users/login", json={"email": "ext@example.com", "password": "anything-at-all"}
    )

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"


# --- Refresh and logout ---


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token(async_client, auth_tokens):
    response = await async_client.post(
        "/api/users/refresh", json={"refreshToken": auth_tokens["refreshToken"]}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["refreshToken"] == auth_tokens["refreshToken"]
    assert data["tokenType"] == "Bearer"

    me = await async_client.get(
        "/api/users/me", headers={"Authorization": f"Bearer {data['accessToken']}"}
    )
    assert me.status_code == 200
    assert me.json()["email"] == TEST_USER_EMAIL


@pytest.mark.asyncio
async def test_refresh_unknown_token(async_client):
    response = await async_client.post("/api/users/refresh", json={"refreshToken": "bogus"})

    assert response.status_code == 401
    body = response.json()
    assert body["error"] == "INVALID_REFRESH_TOKEN"
    assert body["message"] == "Invalid or expired refresh token"


@pytest.mark.asyncio
async def test_logout_revokes_refresh_token(async_client, auth_tokens):
    refresh_token = auth_tokens["refreshToken"]

    logout = await async_client.post("/api/users/logout", json={"refreshToken": refresh_token})
    assert logout.status_code == 204

    response = await async_client.post("/api/users/refresh", json={"refreshToken": refresh_token})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired refresh token"


@pytest.mark.asyncio
async def test_logout_unknown_token_is_accepted(async_client):
    response = await async_client.post("/api/users/logout", json={"refreshToken": "bogus"})

    assert response.status_code == 204


@pytest.mark.asyncio
async def test_logout_all_revokes_every_session(async_client, auth_tokens, auth_headers):
    second = await async_client.post(
        "/api/users/login", json={"email": TEST_USER_EMAIL, "password": TEST_USER_PASSWORD}
    )
    tokens = [auth_tokens["refreshToken"], second.json()["refreshToken"]]

    response = await async_client.post("/api/users/logout-all", headers=auth_headers)
    assert response.status_code == 204

    for token in tokens:
        refreshed = await async_client.post("/api/users/refresh", json={"refreshToken": token})
        assert refreshed.status_code == 401

    # Access tokens stay valid until they expire
    me = await async_client.get("/api/users/me", headers=auth_headers)
    assert me.status_code == 200


@pytest.mark.asyncio
async def test_logout_all_requires_authentication(async_client):
    response = await async_client.post("/api/users/logout-all")

    assert response.status_code == 401
    assert response.json()["error"] == "AUTHENTICATION_REQUIRED"
    assert response.headers["WWW-Authenticate"] == "Bearer"


# --- Full session lifecycle ---


@pytest.mark.asyncio
async def test_register_verify_login_refresh_logout(async_client, outbox):
    registered = await _register(async_client, email="journey@example.com")
    assert registered.status_code == 201

    token = outbox["journey@example.com"]["token"]
    verified = await async_client.get("/api/users/verify-email", params={"token": token})
    assert verified.status_code == 200

    login = await async_client.post(
        "/api/users/login", json={"email": "journey@example.com", "password": "a-long-password"}
    )
    assert login.status_code == 200
    refresh_token = login.json()["refreshToken"]

    refreshed = await async_client.post("/api/users/refresh", json={"refreshToken": refresh_token})
    assert refreshed.status_code == 200
    assert refreshed.json()["refreshToken"] == refresh_token

    logout = await async_client.post("/api/users/logout", json={"refreshToken": refresh_token})
    assert logout.status_code == 204

    rejected = await async_client.post("/api/users/refresh", json={"refreshToken": refresh_token})
    assert rejected.status_code == 401
    assert rejected.json() == {
        "error": "INVALID_REFRESH_TOKEN",
        "message": "Invalid or expired refresh token",
    }
