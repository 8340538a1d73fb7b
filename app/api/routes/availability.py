from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_audit_sink, get_current_user, require_roles
from app.api.schemas.appointment import AvailableSlotsResponse
from app.core.config import settings
from app.core.db import get_session
from app.models.availability import (
    AvailabilityExceptionCreate,
    AvailabilityExceptionPublic,
    AvailabilityRuleCreate,
    AvailabilityRulePublic,
)
from app.models.user import User, UserRole
from app.services.audit_service import AuditSink
from app.services.availability_service import (
    create_exception,
    delete_exception,
    list_exceptions,
    list_rules,
    upsert_rule,
)
from app.services.slot_service import generate_slots

router = APIRouter(prefix="/availability", tags=["availability"])


def _target_provider(provider_id: int | None, current_user: User) -> int:
    if provider_id is not None:
        return provider_id
    if current_user.role != UserRole.PROVIDER:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="provider_id is required",
        )
    return current_user.id


@router.get("/slots", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    duration: int = Query(default=settings.default_slot_duration_minutes),
    session: AsyncSession = Depends(get_session),
) -> AvailableSlotsResponse:
    """Bookable start times for the provider on the given date (UTC)."""
    slots = await generate_slots(session, provider_id, date_param, duration)
    return AvailableSlotsResponse(
        date=date_param,
        provider_id=provider_id,
        duration_minutes=duration,
        slots=slots,
    )


@router.get("", response_model=list[AvailabilityRulePublic])
async def get_weekly_availability(
    provider_id: int | None = Query(None),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AvailabilityRulePublic]:
    rules = await list_rules(session, _target_provider(provider_id, current_user))
    return [AvailabilityRulePublic.model_validate(r) for r in rules]


@router.post("", response_model=AvailabilityRulePublic, status_code=status.HTTP_201_CREATED)
async def set_weekly_availability(
    body: AvailabilityRuleCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.PROVIDER)),
    audit: AuditSink = Depends(get_audit_sink),
) -> AvailabilityRulePublic:
    rule = await upsert_rule(session, current_user, body, audit=audit)
    await session.commit()
    return AvailabilityRulePublic.model_validate(rule)


@router.get("/exceptions", response_model=list[AvailabilityExceptionPublic])
async def get_exceptions(
    provider_id: int | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> list[AvailabilityExceptionPublic]:
    exceptions = await list_exceptions(
        session, _target_provider(provider_id, current_user), start_date, end_date
    )
    return [AvailabilityExceptionPublic.model_validate(e) for e in exceptions]


@router.post("/exceptions", response_model=AvailabilityExceptionPublic, status_code=status.HTTP_201_CREATED)
async def add_exception(
    body: AvailabilityExceptionCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.PROVIDER)),
    audit: AuditSink = Depends(get_audit_sink),
) -> AvailabilityExceptionPublic:
    exception = await create_exception(session, current_user, body, audit=audit)
    await session.commit()
    return AvailabilityExceptionPublic.model_validate(exception)


@router.delete("/exceptions/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_exception(
    exception_id: int,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.PROVIDER)),
    audit: AuditSink = Depends(get_audit_sink),
) -> None:
    await delete_exception(session, current_user, exception_id, audit=audit)
    await session.commit()
