from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InvalidInput
from app.core.security import create_access_token, verify_password
from app.models.user import User, UserCreate, UserRole
from app.services.user_service import create_user, get_user_by_email


def make_access_token(user: User) -> tuple[str, int]:
    access = create_access_token(user.id, user.role)
    expires_in = settings.access_token_expire_minutes * 60
    return access, expires_in


async def login_user(
    session: AsyncSession, email: str, password: str
) -> tuple[User, str, int] | None:
    user = await get_user_by_email(session, email)
    if not user or user.is_archived or not user.hashed_password:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    access, expires_in = make_access_token(user)
    return user, access, expires_in


async def signup_user(
    session: AsyncSession,
    email: str,
    password: str,
    full_name: str | None = None,
    phone: str | None = None,
) -> tuple[User, str, int] | None:
    """Self-service signup always creates a patient; staff accounts come from admins."""
    try:
        user = await create_user(
            session,
            UserCreate(email=email, password=password, full_name=full_name, phone=phone, role=UserRole.PATIENT),
        )
    except InvalidInput:
        return None
    access, expires_in = make_access_token(user)
    return user, access, expires_in
