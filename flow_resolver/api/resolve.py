"""
Resolution endpoints.

POST /users/{user_id}/resolve               - Rule-based plan for one payment.
POST /users/{user_id}/smart-resolve         - Every rail scored and ranked, with explanations.
POST /users/{user_id}/payments              - Report an executed payment (history + daily counter).
GET  /users/{user_id}/payments/{intent_id}/trace - Full audit trail for a payment intent.
"""

import json
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from flow_resolver.database import get_session
from flow_resolver.engine.orchestrator import record_payment_outcome, resolve_for_user, smart_resolve_for_user
from flow_resolver.engine.resolver import explain_resolution
from flow_resolver.models.domain import PaymentRequest, PaymentResolution
from flow_resolver.models.enums import (
    ConnectorStatus,
    IntentType,
    PaymentStatus,
    RailType,
    ReasonCode,
    ResolutionError,
    RiskLevel,
    StepAction,
)
from flow_resolver.models.records import AuditLog
from flow_resolver.scoring.smart_resolver import (
    ScoredRail,
    SmartResolutionContext,
    SmartResolutionResult,
    resolution_summary,
)

router = APIRouter(prefix="/users/{user_id}", tags=["resolve"])


class ResolveRequest(BaseModel):
    intent_id: str
    amount: Decimal
    currency: str = "MYR"
    merchant_id: Optional[str] = None
    merchant_rails: Optional[list[str]] = None
    today: Optional[date] = None


class StepDetail(BaseModel):
    action: StepAction
    source_id: str
    amount: Decimal


class ResolutionResponse(BaseModel):
    success: bool
    total_amount: Decimal
    explanation: str
    summary: str
    error: Optional[ResolutionError] = None
    steps: list[StepDetail] = []
    chosen_rail: Optional[str] = None
    chosen_source_id: Optional[str] = None
    fallback_rail: Optional[str] = None
    topup_needed: bool = False
    topup_amount: Decimal = Decimal("0")
    topup_source_id: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.LOW
    requires_confirmation: bool = False
    guardrail_exceeded: bool = False
    reason_codes: list[ReasonCode] = []


class SmartResolveRequest(BaseModel):
    amount: Decimal
    intent_type: IntentType = IntentType.PAY_MERCHANT
    currency: str = "MYR"
    merchant_rails: Optional[list[str]] = None
    recipient_wallets: Optional[list[str]] = None
    recipient_preferred_wallet: Optional[str] = None


class ScoreBreakdown(BaseModel):
    compatibility: float
    balance: float
    priority: float
    history: float
    health: float


class ScoredRailDetail(BaseModel):
    name: str
    funding_source_id: str
    type: RailType
    balance: Decimal
    priority: int
    status: ConnectorStatus
    score: int
    total_score: float
    scores: ScoreBreakdown
    explanation: str


class SmartResolutionResponse(BaseModel):
    success: bool
    explanation: str
    summary: str
    error: Optional[ResolutionError] = None
    recommended_rail: Optional[ScoredRailDetail] = None
    alternatives: list[ScoredRailDetail] = []
    requires_top_up: bool = False
    top_up_amount: Optional[Decimal] = None
    top_up_source: Optional[str] = None
    top_up_source_id: Optional[str] = None


class PaymentReport(BaseModel):
    intent_id: str = Field(min_length=1)
    rail: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    status: PaymentStatus
    auto_approved: bool = False
    currency: str = "MYR"
    today: Optional[date] = None


class DailyStateResponse(BaseModel):
    daily_auto_approved: Decimal
    last_reset_date: str


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]


def _resolution_response(resolution: PaymentResolution) -> ResolutionResponse:
    return ResolutionResponse(
        success=resolution.success,
        total_amount=resolution.total_amount,
        explanation=resolution.explanation,
        summary=explain_resolution(resolution),
        error=resolution.error,
        steps=[StepDetail(action=s.action, source_id=s.source_id, amount=s.amount) for s in resolution.steps],
        chosen_rail=resolution.chosen_rail,
        chosen_source_id=resolution.chosen_source_id,
        fallback_rail=resolution.fallback_rail,
        topup_needed=resolution.topup_needed,
        topup_amount=resolution.topup_amount,
        topup_source_id=resolution.topup_source_id,
        risk_level=resolution.risk_level,
        requires_confirmation=resolution.requires_confirmation,
        guardrail_exceeded=resolution.guardrail_exceeded,
        reason_codes=list(resolution.reason_codes),
    )


def _scored_detail(rail: ScoredRail) -> ScoredRailDetail:
    return ScoredRailDetail(
        name=rail.name,
        funding_source_id=rail.funding_source_id,
        type=rail.type,
        balance=rail.balance,
        priority=rail.priority,
        status=rail.status,
        score=rail.display_score,
        total_score=rail.total_score,
        scores=ScoreBreakdown(
            compatibility=rail.scores.compatibility,
            balance=rail.scores.balance,
            priority=rail.scores.priority,
            history=rail.scores.history,
            health=rail.scores.health,
        ),
        explanation=rail.explanation,
    )


def _smart_response(result: SmartResolutionResult) -> SmartResolutionResponse:
    return SmartResolutionResponse(
        success=result.success,
        explanation=result.explanation,
        summary=resolution_summary(result),
        error=result.error,
        recommended_rail=_scored_detail(result.recommended_rail) if result.recommended_rail else None,
        alternatives=[_scored_detail(r) for r in result.alternatives],
        requires_top_up=result.requires_top_up,
        top_up_amount=result.top_up_amount,
        top_up_source=result.top_up_source,
        top_up_source_id=result.top_up_source_id,
    )


@router.post("/resolve", response_model=ResolutionResponse)
async def resolve(user_id: str, body: ResolveRequest, session: AsyncSession = Depends(get_session)):
    """
    Decide how to pay.

    Always 200 for business outcomes: an insufficient balance or an
    incompatible merchant comes back as `success: false` with an `error`
    category and a user-facing explanation. Nothing is debited.
    """
    request = PaymentRequest(
        amount=body.amount,
        intent_id=body.intent_id,
        currency=body.currency,
        merchant_id=body.merchant_id,
        merchant_rails=body.merchant_rails,
    )
    resolution = await resolve_for_user(session, user_id, request, today=body.today)
    return _resolution_response(resolution)


@router.post("/smart-resolve", response_model=SmartResolutionResponse)
async def smart_resolve(user_id: str, body: SmartResolveRequest, session: AsyncSession = Depends(get_session)):
    """Score every linked rail and explain the ranking."""
    context = SmartResolutionContext(
        user_id=user_id,
        amount=body.amount,
        intent_type=body.intent_type,
        merchant_rails=body.merchant_rails,
        recipient_wallets=body.recipient_wallets,
        recipient_preferred_wallet=body.recipient_preferred_wallet,
        currency=body.currency,
    )
    result = await smart_resolve_for_user(session, context)
    return _smart_response(result)


@router.post("/payments", response_model=DailyStateResponse, status_code=201)
async def report_payment(user_id: str, body: PaymentReport, session: AsyncSession = Depends(get_session)):
    """
    Report a payment that was executed.

    Each intent can be reported once; a second report is rejected so the
    daily counter is never incremented twice for the same payment.
    """
    try:
        state = await record_payment_outcome(
            session,
            user_id,
            body.intent_id,
            body.rail,
            body.amount,
            body.status,
            auto_approved=body.auto_approved,
            currency=body.currency,
            today=body.today,
        )
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail=f"Payment already recorded: {body.intent_id}")
    return DailyStateResponse(
        daily_auto_approved=state.daily_auto_approved,
        last_reset_date=state.last_reset_date,
    )


@router.get("/payments/{intent_id}/trace", response_model=list[AuditEntry])
async def get_payment_trace(user_id: str, intent_id: str, session: AsyncSession = Depends(get_session)):
    """Every audit entry for the intent, oldest first: each resolution, then the reported outcome."""
    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.user_id == user_id, AuditLog.intent_id == intent_id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
    )
    logs = result.scalars().all()
    if not logs:
        raise HTTPException(status_code=404, detail=f"No audit trail for intent: {intent_id}")

    trail = []
    for log in logs:
        details = None
        if log.details:
            try:
                details = json.loads(log.details)
            except (json.JSONDecodeError, TypeError):
                details = {"raw": log.details}

        trail.append(AuditEntry(
            id=log.id,
            action=log.action,
            details=details,
            timestamp=log.timestamp.isoformat() if log.timestamp else None,
        ))
    return trail
