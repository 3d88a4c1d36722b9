"""Invoice and payment endpoints."""

from decimal import Decimal
from uuid import UUID

from fastapi import APIRouter, File, Form, Query, UploadFile, status

from app.core.storage import ProofFile
from app.dependencies import ClinicUser, CurrentUser, DatabaseSession, ProofStorageDep
from app.schemas.billing import (
    ApprovalStatus,
    InvoiceCreate,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStatus,
    PaymentListResponse,
    PaymentMethod,
    PaymentResponse,
    PaymentSubmissionResponse,
)
from app.schemas.users import UserRole
from app.services.billing_service import BillingService

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/invoices", response_model=InvoiceListResponse, summary="List invoices")
async def list_invoices(
    db: DatabaseSession,
    current_user: CurrentUser,
    patient_id: UUID | None = Query(None, description="Filter by patient (clinic users)"),
    status_filter: InvoiceStatus | None = Query(None, alias="status"),
) -> InvoiceListResponse:
    """List invoices, newest first. Patients only see their own."""
    if current_user["role"] == UserRole.PATIENT.value:
        patient_id = current_user["id"]
    return await BillingService(db).list_invoices(patient_id=patient_id, status=status_filter)


@router.post(
    "/invoices",
    response_model=InvoiceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue an invoice",
)
async def create_invoice(
    data: InvoiceCreate,
    db: DatabaseSession,
    clinic_user: ClinicUser,
) -> InvoiceResponse:
    """
    Issue an invoice for a patient.

    Args:
        data: Line items, discount and tax rate
        db: Database session
        clinic_user: Authenticated admin, doctor or staff member

    Returns:
        Created invoice with totals
    """
    return await BillingService(db).create_invoice(data, clinic_user["id"])


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse, summary="Get invoice")
async def get_invoice(
    invoice_id: UUID,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> InvoiceResponse:
    """Get an invoice with its line items."""
    return await BillingService(db).get_invoice(invoice_id, actor=current_user)


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentSubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a payment",
)
async def submit_payment(
    invoice_id: UUID,
    db: DatabaseSession,
    current_user: CurrentUser,
    proof_storage: ProofStorageDep,
    amount: Decimal = Form(..., gt=0),
    payment_method: PaymentMethod = Form(PaymentMethod.GCASH),
    reference_number: str | None = Form(None),
    proof: UploadFile | None = File(None),
) -> PaymentSubmissionResponse:
    """
    Pay an invoice, optionally attaching a receipt.

    Either a reference number or a receipt file is required. If the
    receipt cannot be uploaded the payment is still recorded and the
    response lists a warning.

    Args:
        invoice_id: Invoice being paid
        db: Database session
        current_user: Authenticated user
        proof_storage: Receipt store
        amount: Amount paid
        payment_method: gcash, cash or other
        reference_number: Transaction reference
        proof: Receipt image or PDF

    Returns:
        Payment, updated invoice and warnings
    """
    proof_file = None
    if proof is not None and proof.filename:
        proof_file = ProofFile(
            filename=proof.filename,
            content_type=proof.content_type or "",
            data=await proof.read(),
        )

    service = BillingService(db, proof_storage)
    return await service.submit_payment(
        invoice_id,
        amount,
        payment_method,
        actor=current_user,
        reference_number=reference_number,
        proof=proof_file,
    )


@router.get("/payments", response_model=PaymentListResponse, summary="List payments")
async def list_payments(
    db: DatabaseSession,
    current_user: CurrentUser,
    invoice_id: UUID | None = Query(None),
    approval_status: ApprovalStatus | None = Query(None),
) -> PaymentListResponse:
    """List payments with their approval status and receipt link."""
    return await BillingService(db).list_payments(
        current_user, invoice_id=invoice_id, approval_status=approval_status
    )


@router.post(
    "/payments/{payment_id}/approve",
    response_model=PaymentResponse,
    summary="Approve a payment",
)
async def approve_payment(
    payment_id: UUID,
    db: DatabaseSession,
    clinic_user: ClinicUser,
) -> PaymentResponse:
    """Mark a payment approved."""
    return await BillingService(db).approve_payment(payment_id, clinic_user)


@router.post(
    "/payments/{payment_id}/reject",
    response_model=PaymentResponse,
    summary="Reject a payment",
)
async def reject_payment(
    payment_id: UUID,
    db: DatabaseSession,
    clinic_user: ClinicUser,
) -> PaymentResponse:
    """Mark a payment rejected; its amount no longer counts toward the invoice."""
    return await BillingService(db).reject_payment(payment_id, clinic_user)
