from datetime import timedelta

from fastapi import HTTPException
import pytest

from studysphere.auth import create_access_token, decode_access_token, get_current_actor
from studysphere.principal import Admin, Student, Tutor, actor_from_claims


class _Credentials:
    def __init__(self, token: str):
        self.scheme = "Bearer"
        self.credentials = token


@pytest.mark.parametrize(
    "role,expected", [("tutor", Tutor), ("student", Student), ("admin", Admin)]
)
def test_actor_from_claims(role, expected) -> None:
    actor = actor_from_claims("u1", role)
    assert isinstance(actor, expected)
    assert actor.role == role


def test_unknown_role_rejected() -> None:
    with pytest.raises(ValueError):
        actor_from_claims("u1", "parent")


def test_token_round_trip() -> None:
    claims = decode_access_token(create_access_token("u1", "tutor"))
    assert claims["sub"] == "u1"
    assert claims["role"] == "tutor"


@pytest.mark.asyncio
async def test_current_actor_from_token() -> None:
    actor = await get_current_actor(_Credentials(create_access_token("u1", "student")))
    assert actor == Student("u1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "token",
    [
        create_access_token("u1", "parent"),
        create_access_token("u1", "tutor", expires_delta=timedelta(minutes=-5)),
        "not-a-jwt",
    ],
)
async def test_invalid_tokens_are_unauthorized(token) -> None:
    with pytest.raises(HTTPException) as exc_info:
        await get_current_actor(_Credentials(token))
    assert exc_info.value.status_code == 401
