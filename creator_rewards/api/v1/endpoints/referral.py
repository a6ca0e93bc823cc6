"""
Referral programme endpoints: dashboard, commissions and withdrawals.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.orm import Session
from creator_rewards.api.deps import get_db, get_current_user, get_pagination_params, require_admin, require_role
from creator_rewards.models.db import ReferralCommission, ReferralInvoice, User
from creator_rewards.models.db.enums import CommissionStatus, InvoiceStatus, PaymentMethod, UserRole
from creator_rewards.models.schemas.base import ResponseBase
from creator_rewards.models.schemas.referral import (
    RefereeRead,
    ReferralCommissionRead,
    ReferralDashboardRead,
    ReferralInvoiceRead,
)
from creator_rewards.services import referral_engine
from creator_rewards.services.claim_workflow import build_payment_proof
from creator_rewards.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)

@router.get("/dashboard", response_model=ReferralDashboardRead, summary="Referral dashboard")
async def get_dashboard(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReferralDashboardRead:
    return ReferralDashboardRead.model_validate(referral_engine.referral_dashboard(db, current_user))

@router.get("/referees", response_model=List[RefereeRead], summary="Users who signed up with my code")
async def list_referees(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[RefereeRead]:
    referees = db.query(User).filter(User.referred_by_id == current_user.id).order_by(User.created_at.desc()).all()
    return [RefereeRead.model_validate(u) for u in referees]

@router.get("/commissions", response_model=List[ReferralCommissionRead], summary="My commissions")
async def list_commissions(
    status_filter: Optional[CommissionStatus] = Query(None, alias="status"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[ReferralCommissionRead]:
    query = db.query(ReferralCommission).filter(ReferralCommission.referrer_id == current_user.id)
    if status_filter is not None:
        query = query.filter(ReferralCommission.status == status_filter)
    commissions = (
        query.order_by(ReferralCommission.created_at.desc(), ReferralCommission.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [ReferralCommissionRead.model_validate(c) for c in commissions]

@router.post(
    "/commissions/promote",
    response_model=ResponseBase,
    summary="Release pending commissions past the hold period"
)
async def promote_commissions(
    request: Request,
    hold_days: Optional[int] = Query(None, ge=0),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> ResponseBase:
    promoted = referral_engine.promote_commissions(db, hold_days=hold_days)
    logger.info(
        "Commission promotion run",
        promoted=len(promoted),
        request_id=request.headers.get("X-Request-ID", "unknown")
    )
    return ResponseBase(
        message=f"{len(promoted)} commission(s) released",
        data={"commission_ids": [c.id for c in promoted]}
    )

@router.post(
    "/invoices",
    response_model=ReferralInvoiceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Request a withdrawal of available commissions",
    description="Multipart form: amount_eur (cents, must match whole commissions oldest first), payment_method and the PDF for invoice payment"
)
async def request_withdrawal(
    request: Request,
    amount_eur: int = Form(...),
    payment_method: PaymentMethod = Form(PaymentMethod.INVOICE),
    file: Optional[UploadFile] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> ReferralInvoiceRead:
    pdf = await file.read() if file is not None else None
    proof = build_payment_proof(
        payment_method,
        pdf,
        file.filename if file is not None else None,
        file.content_type if file is not None else None,
    )
    referral_invoice = referral_engine.request_withdrawal(
        db,
        current_user,
        amount_eur,
        proof,
        request_id=request.headers.get("X-Request-ID", "unknown"),
    )
    return ReferralInvoiceRead.model_validate(referral_invoice)

@router.get(
    "/invoices",
    response_model=List[ReferralInvoiceRead],
    summary="List withdrawal invoices",
    description="Referrers see their own; brand users and operators see every request"
)
async def list_referral_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
) -> List[ReferralInvoiceRead]:
    query = db.query(ReferralInvoice)
    if current_user.role == UserRole.CREATOR:
        query = query.filter(ReferralInvoice.user_id == current_user.id)
    if status_filter is not None:
        query = query.filter(ReferralInvoice.status == status_filter)
    invoices = (
        query.order_by(ReferralInvoice.uploaded_at.desc(), ReferralInvoice.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [ReferralInvoiceRead.model_validate(i) for i in invoices]

@router.post(
    "/invoices/{referral_invoice_id}/mark-paid",
    response_model=ReferralInvoiceRead,
    summary="Mark a withdrawal invoice as paid"
)
async def mark_referral_invoice_paid(
    referral_invoice_id: int,
    request: Request,
    current_user: User = Depends(require_role([UserRole.BRAND, UserRole.ADMIN])),
    db: Session = Depends(get_db)
) -> ReferralInvoiceRead:
    referral_invoice = referral_engine.mark_referral_invoice_paid(
        db,
        referral_invoice_id,
        current_user,
        request_id=request.headers.get("X-Request-ID", "unknown"),
    )
    return ReferralInvoiceRead.model_validate(referral_invoice)
