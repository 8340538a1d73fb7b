import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InvalidInput, NotFound, Unauthorized
from app.core.security import hash_password
from app.core.timeutils import utc_naive_now
from app.models.appointment_type import AppointmentType, AppointmentTypeCreate
from app.models.user import User, UserCreate, UserProfile, UserProfileUpdate, UserPublic, UserRole
from app.services.audit_service import AuditAction, AuditSink, emit_audit

logger = logging.getLogger(__name__)


async def get_user(session: AsyncSession, user_id: int) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_active_user_with_role(session: AsyncSession, user_id: int, role: UserRole) -> User | None:
    user = await get_user(session, user_id)
    if user is None or user.is_archived or user.role != role:
        return None
    return user


async def list_providers(session: AsyncSession) -> list[User]:
    result = await session.execute(
        select(User)
        .where(User.role == UserRole.PROVIDER, User.is_archived == False)  # noqa: E712
        .order_by(User.full_name, User.email)
    )
    return list(result.scalars().all())


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    email = data.email.strip().lower()
    if not email:
        raise InvalidInput("Email is required")
    if await get_user_by_email(session, email):
        raise InvalidInput("An account with this email already exists")
    user = User(
        email=email,
        full_name=data.full_name,
        phone=data.phone,
        role=data.role,
        hashed_password=hash_password(data.password),
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


async def admin_create_user(
    session: AsyncSession, actor: User, data: UserCreate, audit: AuditSink | None = None
) -> User:
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only admins can create users")
    user = await create_user(session, data)
    emit_audit(audit, actor.id, AuditAction.USER_CREATED, "User", user.id, {"email": user.email, "role": user.role})
    return user


async def archive_user(
    session: AsyncSession, actor: User, user_id: int, audit: AuditSink | None = None
) -> User:
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only admins can archive users")
    if actor.id == user_id:
        raise InvalidInput("Admins cannot archive their own account")
    user = await get_user(session, user_id)
    if user is None:
        raise NotFound("User not found")
    user.is_archived = True
    user.archived_at = utc_naive_now()
    session.add(user)
    await session.flush()
    logger.info("User %s archived by %s", user_id, actor.id)
    emit_audit(
        audit, actor.id, AuditAction.USER_ARCHIVED, "User", user.id, {"email": user.email, "role": user.role}
    )
    return user


async def restore_user(
    session: AsyncSession, actor: User, user_id: int, audit: AuditSink | None = None
) -> User:
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only admins can restore users")
    user = await get_user(session, user_id)
    if user is None:
        raise NotFound("User not found")
    user.is_archived = False
    user.archived_at = None
    session.add(user)
    await session.flush()
    logger.info("User %s restored by %s", user_id, actor.id)
    emit_audit(
        audit, actor.id, AuditAction.USER_RESTORED, "User", user.id, {"email": user.email, "role": user.role}
    )
    return user


async def update_profile(session: AsyncSession, user: User, data: UserProfileUpdate) -> User:
    """Apply the fields present in ``data``; a profile is complete once it has a name and phone."""
    changes = data.model_dump(exclude_unset=True)
    for key in ("full_name", "phone", "address"):
        if isinstance(changes.get(key), str):
            changes[key] = changes[key].strip() or None
    for key, value in changes.items():
        setattr(user, key, value)
    if user.full_name and user.phone:
        user.profile_complete = True
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


def profile_of(user: User) -> UserProfile:
    return UserProfile(
        full_name=user.full_name,
        phone=user.phone,
        date_of_birth=user.date_of_birth,
        address=user.address,
        profile_complete=user.profile_complete,
    )


def user_to_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        phone=user.phone,
        role=user.role,
        is_archived=user.is_archived,
    )


async def get_appointment_type(session: AsyncSession, appointment_type_id: int) -> AppointmentType | None:
    result = await session.execute(select(AppointmentType).where(AppointmentType.id == appointment_type_id))
    return result.scalar_one_or_none()


async def list_appointment_types(session: AsyncSession, active_only: bool = False) -> list[AppointmentType]:
    q = select(AppointmentType).where(AppointmentType.is_archived == False)  # noqa: E712
    if active_only:
        q = q.where(AppointmentType.is_active == True)  # noqa: E712
    result = await session.execute(q.order_by(AppointmentType.name))
    return list(result.scalars().all())


async def create_appointment_type(
    session: AsyncSession, actor: User, data: AppointmentTypeCreate, audit: AuditSink | None = None
) -> AppointmentType:
    if actor.role != UserRole.ADMIN:
        raise Unauthorized("Only admins can manage appointment types")
    appointment_type = AppointmentType.model_validate(data)
    session.add(appointment_type)
    await session.flush()
    await session.refresh(appointment_type)
    emit_audit(
        audit,
        actor.id,
        AuditAction.APPOINTMENT_TYPE_CREATED,
        "AppointmentType",
        appointment_type.id,
        {"name": appointment_type.name, "duration_minutes": appointment_type.duration_minutes},
    )
    return appointment_type
