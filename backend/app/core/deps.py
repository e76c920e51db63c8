from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Unauthorized
from app.core.security import decode_token
from app.db.session import get_session
from app.models.user import User

# auto_error=False so a missing header surfaces as our own Unauthorized error
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_session)],
) -> User:
    """Validate the bearer JWT and return the owning User."""
    if not token:
        raise Unauthorized()
    try:
        payload = decode_token(token)
    except JWTError:
        raise Unauthorized("Could not validate credentials")
    if payload.get("type") != "access":
        raise Unauthorized("Could not validate credentials")
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError:
        raise Unauthorized("Could not validate credentials")

    result = await db.execute(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise Unauthorized("Could not validate credentials")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
