"""
Reward claim endpoints: multipart invoice upload and payment.
"""
import json
import time
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from sqlalchemy.orm import Session
from creator_rewards.api.deps import get_db, get_current_creator, get_pagination_params, require_role
from creator_rewards.models.db import Campaign, Invoice, User
from creator_rewards.models.db.enums import InvoiceStatus, PaymentMethod, UserRole
from creator_rewards.models.schemas.invoices import InvoiceRead
from creator_rewards.services.claim_workflow import build_payment_proof, mark_paid, submit_claim
from creator_rewards.utils import get_logger, log_performance

router = APIRouter()
logger = get_logger(__name__)

def parse_ads_codes(raw: Optional[str]) -> Dict[int, str]:
    """Decode the ``ads_codes`` form field: JSON object of submission id -> code."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="ads_codes must be a JSON object")
    if not isinstance(decoded, dict):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="ads_codes must be a JSON object")
    codes: Dict[int, str] = {}
    for key, value in decoded.items():
        try:
            codes[int(key)] = "" if value is None else str(value)
        except (TypeError, ValueError):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid submission id in ads_codes: {key!r}"
            )
    return codes

@router.post(
    "/",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
    summary="Claim an unlocked reward",
    description="Multipart form: reward_id, submission_id (anchor), payment_method, ads_codes (JSON) and the PDF for invoice payment"
)
async def create_claim(
    request: Request,
    reward_id: int = Form(...),
    submission_id: int = Form(...),
    payment_method: PaymentMethod = Form(PaymentMethod.INVOICE),
    ads_codes: Optional[str] = Form(None),
    campaign_id: Optional[int] = Form(None),
    file: Optional[UploadFile] = File(None),
    creator: User = Depends(get_current_creator),
    db: Session = Depends(get_db)
) -> InvoiceRead:
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", "unknown")
    codes = parse_ads_codes(ads_codes)

    logger.info(
        "Claim submission started",
        creator_id=creator.id,
        reward_id=reward_id,
        submission_id=submission_id,
        payment_method=payment_method.value,
        has_file=file is not None,
        request_id=request_id
    )

    pdf: Optional[bytes] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None
    if file is not None:
        pdf = await file.read()
        filename = file.filename
        content_type = file.content_type
    proof = build_payment_proof(payment_method, pdf, filename, content_type)

    invoice = submit_claim(
        db,
        creator,
        reward_id,
        submission_id,
        proof,
        codes,
        campaign_id,
        request_id=request_id,
    )
    log_performance(
        operation="submit_claim",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"invoice_id": invoice.id, "payment_method": payment_method.value}
    )
    return InvoiceRead.model_validate(invoice)

@router.get(
    "/",
    response_model=List[InvoiceRead],
    summary="List claims",
    description="Creators see their own claims; brand users see claims on their campaigns; operators see all"
)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    campaign_id: Optional[int] = Query(None),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(require_role([UserRole.CREATOR, UserRole.BRAND, UserRole.ADMIN])),
    db: Session = Depends(get_db)
) -> List[InvoiceRead]:
    query = db.query(Invoice)
    if current_user.role == UserRole.CREATOR:
        query = query.filter(Invoice.creator_id == current_user.id)
    elif current_user.role == UserRole.BRAND:
        query = query.join(Campaign, Invoice.campaign_id == Campaign.id).filter(Campaign.brand_id == current_user.brand_id)
    if campaign_id is not None:
        query = query.filter(Invoice.campaign_id == campaign_id)
    if status_filter is not None:
        query = query.filter(Invoice.status == status_filter)
    invoices = (
        query.order_by(Invoice.uploaded_at.desc(), Invoice.id.desc())
        .offset(pagination["offset"])
        .limit(pagination["limit"])
        .all()
    )
    return [InvoiceRead.model_validate(i) for i in invoices]

@router.post(
    "/{invoice_id}/mark-paid",
    response_model=InvoiceRead,
    summary="Mark a claim as paid"
)
async def mark_invoice_paid(
    invoice_id: int,
    request: Request,
    current_user: User = Depends(require_role([UserRole.BRAND, UserRole.ADMIN])),
    db: Session = Depends(get_db)
) -> InvoiceRead:
    request_id = request.headers.get("X-Request-ID", "unknown")
    invoice = mark_paid(db, invoice_id, current_user, request_id=request_id)
    return InvoiceRead.model_validate(invoice)
