import logging

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import CurrentUser
from app.core.errors import Forbidden, Unauthorized
from app.core.security import create_access_token, verify_password
from app.db.session import get_session
from app.models.user import User
from app.schemas.auth import Token, UserOut

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    form: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_session),
):
    result = await db.execute(select(User).where(User.email == form.username, User.deleted_at.is_(None)))
    user = result.scalar_one_or_none()
    if not user or not verify_password(form.password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Forbidden("Account disabled")

    logger.info("User %s logged in", user.id)
    return {"access_token": create_access_token(subject=str(user.id)), "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
async def me(current_user: CurrentUser):
    return current_user
