import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_backend.auth import jwt_handler
from trainer_backend.database import get_db
from trainer_backend.models.user import Profile

security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = await db.get(Profile, user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_trainer(current_user: Profile = Depends(get_current_user)) -> Profile:
    if current_user.role != "trainer":
        raise HTTPException(status_code=403, detail="Only trainers can do this.")
    return current_user


async def require_client(current_user: Profile = Depends(get_current_user)) -> Profile:
    if current_user.role != "client":
        raise HTTPException(status_code=403, detail="Only clients can request sessions.")
    return current_user
