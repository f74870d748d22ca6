"""
Funding source, connector and settings endpoints.

GET   /users/{user_id}/sources                    - List the user's funding sources.
POST  /users/{user_id}/sources                    - Link a new funding source.
PATCH /users/{user_id}/sources/{source_id}/balance - Record a freshly synced balance.
PATCH /users/{user_id}/sources/{source_id}/link    - Link or unlink (consent) a source.
PUT   /users/{user_id}/connectors/{rail}          - Report connector health.
GET   /users/{user_id}/settings                   - Guardrails, fallback preference, today's counter.
PUT   /users/{user_id}/settings                   - Update guardrails and fallback preference.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flow_resolver.audit.logger import log_event
from flow_resolver.database import get_session
from flow_resolver.engine.guardrails import get_or_reset_daily_state
from flow_resolver.models.domain import FundingSource
from flow_resolver.models.enums import ConnectorStatus, FallbackPreference, RailType
from flow_resolver.models.records import FundingSourceRecord, UserPaymentSettings
from flow_resolver.stores.base import SourceNotFoundError
from flow_resolver.stores.sql import (
    SqlConnectorHealthStore,
    SqlFundingSourceStore,
    SqlPaymentSettingsStore,
    to_funding_source,
)

router = APIRouter(prefix="/users/{user_id}", tags=["funding"])


class SourceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    type: RailType
    balance: Decimal = Field(default=Decimal("0"), ge=0)
    priority: int = Field(default=1, ge=1)
    currency: str = "MYR"
    max_auto_top_up: Optional[Decimal] = Field(default=None, ge=0)
    require_confirm_above: Optional[Decimal] = Field(default=None, ge=0)


class SourceDetail(BaseModel):
    id: str
    name: str
    type: RailType
    balance: Decimal
    currency: str
    priority: int
    is_linked: bool
    is_available: bool
    max_auto_top_up: Optional[Decimal] = None
    require_confirm_above: Optional[Decimal] = None

    model_config = {"from_attributes": True}


class BalanceUpdate(BaseModel):
    balance: Decimal = Field(ge=0)


class LinkUpdate(BaseModel):
    is_linked: bool


class ConnectorUpdate(BaseModel):
    status: ConnectorStatus


class SettingsUpdate(BaseModel):
    fallback_preference: Optional[FallbackPreference] = None
    max_auto_top_up_amount: Optional[Decimal] = Field(default=None, ge=0)
    max_single_payment_auto: Optional[Decimal] = Field(default=None, ge=0)
    require_confirmation_above: Optional[Decimal] = Field(default=None, ge=0)
    daily_auto_limit: Optional[Decimal] = Field(default=None, ge=0)


class SettingsDetail(BaseModel):
    fallback_preference: FallbackPreference
    max_auto_top_up_amount: Decimal
    max_single_payment_auto: Decimal
    require_confirmation_above: Decimal
    daily_auto_limit: Decimal
    daily_auto_approved: Decimal
    last_reset_date: str


def _source_detail(source: FundingSource) -> SourceDetail:
    return SourceDetail.model_validate(source)


async def _check_owner(session: AsyncSession, user_id: str, source_id: str):
    record = await session.get(FundingSourceRecord, source_id)
    if record is None or record.user_id != user_id:
        raise HTTPException(status_code=404, detail=f"Funding source not found: {source_id}")


async def _settings_detail(session: AsyncSession, user_id: str) -> SettingsDetail:
    store = SqlPaymentSettingsStore(session)
    config = await store.get_config(user_id)
    state = get_or_reset_daily_state(await store.get_state(user_id))
    return SettingsDetail(
        fallback_preference=await store.get_fallback_preference(user_id),
        max_auto_top_up_amount=config.max_auto_top_up_amount,
        max_single_payment_auto=config.max_single_payment_auto,
        require_confirmation_above=config.require_confirmation_above,
        daily_auto_limit=config.daily_auto_limit,
        daily_auto_approved=state.daily_auto_approved,
        last_reset_date=state.last_reset_date,
    )


@router.get("/sources", response_model=list[SourceDetail])
async def list_sources(user_id: str, session: AsyncSession = Depends(get_session)):
    """List every funding source of the user, linked or not, by priority."""
    sources = await SqlFundingSourceStore(session).get_sources(user_id)
    return [_source_detail(s) for s in sources]


@router.post("/sources", response_model=SourceDetail, status_code=201)
async def create_source(user_id: str, body: SourceCreate, session: AsyncSession = Depends(get_session)):
    """Link a new funding source. A user can link each rail name once."""
    data = body.model_dump()
    data["type"] = body.type.value
    record = FundingSourceRecord(user_id=user_id, **data)
    session.add(record)
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail=f"{body.name} is already linked for this user")

    await log_event(session, "source_linked", user_id=user_id, details={
        "source_id": record.id,
        "name": record.name,
        "type": body.type,
        "priority": record.priority,
    })
    await session.commit()
    return _source_detail(to_funding_source(record))


@router.patch("/sources/{source_id}/balance", response_model=SourceDetail)
async def update_balance(
    user_id: str,
    source_id: str,
    body: BalanceUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Record a balance fetched from the rail's connector."""
    await _check_owner(session, user_id, source_id)
    try:
        source = await SqlFundingSourceStore(session).update_balance(source_id, body.balance)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    await session.commit()
    return _source_detail(source)


@router.patch("/sources/{source_id}/link", response_model=SourceDetail)
async def update_link(
    user_id: str,
    source_id: str,
    body: LinkUpdate,
    session: AsyncSession = Depends(get_session),
):
    """
    Grant or revoke consent for a source.

    Unlinked sources stay on record but are never chosen by either resolver.
    """
    await _check_owner(session, user_id, source_id)
    try:
        source = await SqlFundingSourceStore(session).update_linked_status(source_id, body.is_linked)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await log_event(
        session,
        "source_linked" if body.is_linked else "source_unlinked",
        user_id=user_id,
        details={"source_id": source_id, "name": source.name},
    )
    await session.commit()
    return _source_detail(source)


@router.put("/connectors/{rail}", status_code=204)
async def update_connector(
    user_id: str,
    rail: str,
    body: ConnectorUpdate,
    session: AsyncSession = Depends(get_session),
):
    await SqlConnectorHealthStore(session).set_status(user_id, rail, body.status)
    await session.commit()


@router.get("/settings", response_model=SettingsDetail)
async def get_settings(user_id: str, session: AsyncSession = Depends(get_session)):
    """Effective guardrails (defaults filled in) and today's auto-approved total."""
    return await _settings_detail(session, user_id)


@router.put("/settings", response_model=SettingsDetail)
async def update_settings(user_id: str, body: SettingsUpdate, session: AsyncSession = Depends(get_session)):
    """Update only the fields given; the rest keep their current value."""
    row = await session.get(UserPaymentSettings, user_id)
    if row is None:
        row = UserPaymentSettings(user_id=user_id)
        session.add(row)

    changes = body.model_dump(exclude_none=True)
    for name, value in changes.items():
        setattr(row, name, value.value if isinstance(value, FallbackPreference) else value)
    await session.flush()

    await log_event(session, "settings_updated", user_id=user_id, details=changes)
    await session.commit()
    return await _settings_detail(session, user_id)
