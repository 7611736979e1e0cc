"""Registration, login and token tests.

Covers:
1. Registration links the user to the sensor's bin
2. Duplicate email and unknown sensor are rejected without side effects
3. Login returns a 24h token and stores the device messaging token
4. Bearer token verification (/me)
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import func, select

from ewaste.db.models import User


def _email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


async def _count_users(ctx) -> int:
    async with ctx.session_factory() as db:
        return (await db.execute(select(func.count(User.id)))).scalar_one()


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_assigns_bin_owner(client, provision, register_and_login):
    """Register on S1, then fetching S1 shows the new user as owner."""
    await provision("S1")
    user, token = await register_and_login("S1")

    r = await client.get(
        "/api/v1/bins",
        params={"sensorId": "S1"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert r.status_code == 200
    assert r.json()["userId"] == user["id"]


@pytest.mark.asyncio
async def test_register_returns_201(client, provision):
    await provision("S1")
    email = _email("reg")
    r = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "S1", "name": "Ada", "email": email, "password": "pw_123456"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "User Registered successfully"
    assert body["user"]["email"] == email
    assert body["user"]["sensorId"] == "S1"
    assert "password" not in body["user"]


@pytest.mark.asyncio
async def test_register_duplicate_email(client, provision):
    """A second registration with the same email fails whatever the payload."""
    await provision("S1")
    await provision("S2")
    email = _email("dup")

    r1 = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "S1", "name": "One", "email": email, "password": "pw_1"},
    )
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "S2", "name": "Two", "email": email, "password": "other"},
    )
    assert r2.status_code == 400
    body = r2.json()
    assert body["status"] == "error"
    assert body["errorMessage"] == f"{email} is already registered"


@pytest.mark.asyncio
async def test_register_unknown_sensor_creates_no_user(client, ctx):
    r = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "NOPE", "name": "X", "email": _email("ghost"), "password": "pw"},
    )
    assert r.status_code == 400
    assert r.json()["errorMessage"] == "Invalid sensor ID of NOPE"
    assert await _count_users(ctx) == 0


@pytest.mark.asyncio
async def test_register_invalid_email(client, provision):
    await provision("S1")
    r = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "S1", "name": "X", "email": "not-an-email", "password": "pw"},
    )
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_returns_24h_token(client, provision, register_and_login, settings):
    await provision("S1")
    user, token = await register_and_login("S1")

    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    assert payload["sub"] == user["id"]
    lifetime = payload["exp"] - payload["iat"]
    assert lifetime == 24 * 3600


@pytest.mark.asyncio
async def test_login_updates_messaging_token(client, ctx, provision, register_and_login):
    await provision("S1")
    email = _email("dev")
    await register_and_login("S1", email=email, messaging_token="first-device")

    r = await client.post(
        "/api/v1/login",
        json={"email": email, "password": "password_123", "messagingToken": "second-device"},
    )
    assert r.status_code == 200

    async with ctx.session_factory() as db:
        user = (await db.execute(select(User).where(User.email == email))).scalar_one()
    assert user.messaging_token == "second-device"


@pytest.mark.asyncio
async def test_login_wrong_password(client, provision, register_and_login):
    await provision("S1")
    email = _email("wrong")
    await register_and_login("S1", email=email)

    r = await client.post(
        "/api/v1/login",
        json={"email": email, "password": "not-it", "messagingToken": "t"},
    )
    assert r.status_code == 400
    assert r.json()["errorMessage"] == "Email / Password is incorrect"


@pytest.mark.asyncio
async def test_login_unknown_user(client):
    r = await client.post(
        "/api/v1/login",
        json={"email": "nobody@example.com", "password": "whatever"},
    )
    assert r.status_code == 404
    assert r.json()["errorMessage"] == "User not found"


@pytest.mark.asyncio
async def test_email_is_case_insensitive(client, provision):
    await provision("S1")
    tag = uuid.uuid4().hex[:8]
    mixed = f"Owner.{tag}@Example.COM"

    r = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "S1", "name": "Owner", "email": mixed, "password": "pw_123456"},
    )
    assert r.status_code == 201
    assert r.json()["user"]["email"] == mixed.lower()

    for email in (mixed, mixed.lower(), mixed.upper()):
        r = await client.post(
            "/api/v1/login",
            json={"email": email, "password": "pw_123456", "messagingToken": "t"},
        )
        assert r.status_code == 200, email

    r = await client.post(
        "/api/v1/register-user",
        json={"sensorId": "S1", "name": "Again", "email": mixed.upper(), "password": "pw"},
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Bearer token
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client, provision, register_and_login):
    await provision("S1")
    user, token = await register_and_login("S1")

    r = await client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["email"] == user["email"]


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/me")
    assert r.status_code == 401
    assert r.json()["errorMessage"] == "No Auth Token Provided"


@pytest.mark.asyncio
async def test_me_with_invalid_token(client):
    r = await client.get("/api/v1/me", headers={"Authorization": "Bearer not.a.token"})
    assert r.status_code == 401
    assert r.json()["errorMessage"] == "Token is not valid"


@pytest.mark.asyncio
async def test_me_with_expired_token(client, settings):
    past = datetime.now(timezone.utc) - timedelta(days=2)
    token = jwt.encode(
        {
            "sub": str(uuid.uuid4()),
            "user": "{}",
            "iat": past,
            "exp": past + timedelta(hours=24),
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    r = await client.get("/api/v1/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["errorMessage"] == "Token expired"
