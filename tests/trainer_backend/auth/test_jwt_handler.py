import asyncio

import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from conftest import add_rows, profile_row
from trainer_backend.auth import jwt_handler
from trainer_backend.auth.dependencies import get_current_user, require_client, require_trainer


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_carries_subject_and_role() -> None:
    payload = jwt_handler.decode_access_token(jwt_handler.create_access_token('trainer-1', 'trainer'))

    assert payload['sub'] == 'trainer-1'
    assert payload['role'] == 'trainer'
    assert payload['exp'] > payload['iat']


def test_token_signed_with_another_key_is_rejected() -> None:
    token = jwt.encode({'sub': 'trainer-1'}, 'not-the-server-key', algorithm='HS256')

    with pytest.raises(jwt.PyJWTError):
        jwt_handler.decode_access_token(token)


def test_current_user_is_loaded_from_the_token(session_factory) -> None:
    asyncio.run(add_rows(session_factory, profile_row('trainer-1', 'trainer')))

    async def run():
        async with session_factory() as session:
            user = await get_current_user(bearer(jwt_handler.create_access_token('trainer-1', 'trainer')), session)
            return user.id, (await require_trainer(user)).id

    assert asyncio.run(run()) == ('trainer-1', 'trainer-1')


@pytest.mark.parametrize(
    ('token', 'detail'),
    [
        ('not-a-token', 'Invalid token'),
        (jwt_handler.create_access_token('', 'client'), 'Invalid token subject'),
        (jwt_handler.create_access_token('ghost', 'client'), 'User not found'),
    ],
)
def test_current_user_rejects_bad_tokens(session_factory, token: str, detail: str) -> None:
    async def run():
        async with session_factory() as session:
            await get_current_user(bearer(token), session)

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(run())

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == detail


def test_roles_are_enforced() -> None:
    client = profile_row('client-1', 'client')
    trainer = profile_row('trainer-1', 'trainer')

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(require_trainer(client))
    assert exception_info.value.status_code == 403

    with pytest.raises(HTTPException) as exception_info:
        asyncio.run(require_client(trainer))
    assert exception_info.value.detail == 'Only clients can request sessions.'
