"""Invoices, payment submission and payment approval."""

import time
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.core.storage import ProofFile, ProofStorage, validate_proof
from app.models.billing import invoice_items, invoices, payments
from app.schemas.billing import (
    ApprovalStatus,
    BillingSummaryResponse,
    DiscountType,
    InvoiceCreate,
    InvoiceItemResponse,
    InvoiceListResponse,
    InvoiceResponse,
    InvoiceStatus,
    PaymentListResponse,
    PaymentMethod,
    PaymentResponse,
    PaymentSubmissionResponse,
)
from app.schemas.users import UserRole
from app.services.payment_notes import (
    derive_approval_status,
    extract_proof_url,
    proof_note,
)

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


def _money(value: Decimal | int | float | str | None) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


def invoice_status(amount_paid: Decimal, total_amount: Decimal) -> InvoiceStatus:
    """Invoice state for a paid amount."""
    if amount_paid >= total_amount:
        return InvoiceStatus.PAID
    if amount_paid > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.PENDING


def compute_totals(data: InvoiceCreate) -> dict[str, Decimal]:
    """
    Work out invoice amounts from line items.

    The discount is a percentage of the subtotal or a fixed amount. Tax is
    charged on the discounted subtotal.

    Raises:
        BadRequestException: If a fixed discount exceeds the subtotal
    """
    subtotal = _money(sum(item.price * item.quantity for item in data.items))

    if data.discount_type == DiscountType.PERCENTAGE:
        discount = _money(subtotal * data.discount / 100)
    else:
        discount = _money(data.discount)
    if discount > subtotal:
        raise BadRequestException("Discount cannot exceed the invoice subtotal")

    tax = _money((subtotal - discount) * data.tax_rate / 100)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": tax,
        "total_amount": subtotal - discount + tax,
    }


def payment_reference(reference_number: str | None) -> str:
    """Use the given reference or synthesize one from the current time."""
    if reference_number and reference_number.strip():
        return reference_number.strip()
    return f"PAY-{int(time.time() * 1000)}"


def to_payment_response(row) -> PaymentResponse:
    """Payment row with approval status and receipt link resolved."""
    values = dict(row)
    return PaymentResponse(
        **{key: value for key, value in values.items() if key != "approval_status"},
        approval_status=derive_approval_status(values),
        proof_url=extract_proof_url(values.get("notes")),
    )


class BillingService:
    """Service for invoices and payments."""

    def __init__(self, db: AsyncSession, proof_storage: ProofStorage | None = None):
        """Initialize service with database session and optional proof store."""
        self.db = db
        self.proof_storage = proof_storage

    async def _next_invoice_number(self, today: datetime) -> str:
        prefix = f"INV-{today:%y%m%d}-"
        result = await self.db.execute(
            select(func.count())
            .select_from(invoices)
            .where(invoices.c.invoice_number.like(f"{prefix}%"))
        )
        sequence = (result.scalar() or 0) + 1
        return f"{prefix}{sequence:03d}"

    async def _load_items(self, invoice_ids: list[UUID]) -> dict[UUID, list[InvoiceItemResponse]]:
        if not invoice_ids:
            return {}
        result = await self.db.execute(
            select(invoice_items)
            .where(invoice_items.c.invoice_id.in_(invoice_ids))
            .order_by(invoice_items.c.created_at)
        )
        items: dict[UUID, list[InvoiceItemResponse]] = {}
        for row in result.mappings().all():
            items.setdefault(row["invoice_id"], []).append(
                InvoiceItemResponse.model_validate(dict(row))
            )
        return items

    async def create_invoice(self, data: InvoiceCreate, created_by: UUID) -> InvoiceResponse:
        """
        Issue an invoice with its line items.

        Args:
            data: Patient, line items, discount and tax
            created_by: Profile ID of the issuing clinic user

        Returns:
            Created invoice
        """
        totals = compute_totals(data)
        now = datetime.now(UTC)

        stmt = (
            insert(invoices)
            .values(
                invoice_number=await self._next_invoice_number(now),
                patient_id=data.patient_id,
                invoice_date=now,
                due_date=now + timedelta(days=settings.invoice_due_days),
                amount_paid=Decimal("0"),
                status=InvoiceStatus.PENDING.value,
                payment_method=data.payment_method.value if data.payment_method else None,
                notes=data.notes,
                created_by=created_by,
                **totals,
            )
            .returning(invoices)
        )
        result = await self.db.execute(stmt)
        invoice = dict(result.mappings().first())

        await self.db.execute(
            insert(invoice_items),
            [
                {
                    "invoice_id": invoice["id"],
                    "service_name": item.service_name,
                    "description": item.description,
                    "quantity": item.quantity,
                    "price": item.price,
                }
                for item in data.items
            ],
        )
        await self.db.commit()

        logger.info(
            "invoice_created",
            invoice_id=str(invoice["id"]),
            invoice_number=invoice["invoice_number"],
            total_amount=str(invoice["total_amount"]),
        )
        return await self.get_invoice(invoice["id"])

    async def get_invoice(self, invoice_id: UUID, actor: dict | None = None) -> InvoiceResponse:
        """
        Get an invoice with its items.

        Raises:
            NotFoundException: If the invoice does not exist
            ForbiddenException: If a patient asks for someone else's invoice
        """
        invoice = await self._get_invoice_row(invoice_id)
        self._check_owner(invoice, actor)
        items = await self._load_items([invoice_id])
        return InvoiceResponse(**invoice, items=items.get(invoice_id, []))

    async def list_invoices(
        self,
        patient_id: UUID | None = None,
        status: InvoiceStatus | None = None,
    ) -> InvoiceListResponse:
        """List invoices, newest first."""
        query = select(invoices).order_by(invoices.c.invoice_date.desc())
        if patient_id is not None:
            query = query.where(invoices.c.patient_id == patient_id)
        if status is not None:
            query = query.where(invoices.c.status == status.value)

        result = await self.db.execute(query)
        rows = [dict(row) for row in result.mappings().all()]
        items = await self._load_items([row["id"] for row in rows])

        return InvoiceListResponse(
            total=len(rows),
            items=[InvoiceResponse(**row, items=items.get(row["id"], [])) for row in rows],
        )

    async def _get_invoice_row(self, invoice_id: UUID, for_update: bool = False) -> dict:
        query = select(invoices).where(invoices.c.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Invoice not found")
        return dict(row)

    @staticmethod
    def _check_owner(invoice: dict, actor: dict | None) -> None:
        if actor and actor["role"] == UserRole.PATIENT.value and invoice["patient_id"] != actor["id"]:
            raise ForbiddenException("Access denied to this invoice")

    async def submit_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        payment_method: PaymentMethod,
        actor: dict,
        reference_number: str | None = None,
        proof: ProofFile | None = None,
    ) -> PaymentSubmissionResponse:
        """
        Record a payment against an invoice.

        The receipt upload is best-effort: when it fails the payment is still
        recorded, without a receipt link, and a warning is returned. The
        payment row and the invoice balance are written in one transaction.

        Args:
            invoice_id: Invoice being paid
            amount: Amount paid
            payment_method: Payment channel
            actor: Signed-in profile submitting the payment
            reference_number: Transaction reference, synthesized when empty
            proof: Receipt file

        Returns:
            The payment, the updated invoice and any warnings

        Raises:
            NotFoundException: If the invoice does not exist
            ForbiddenException: If a patient pays someone else's invoice
            BadRequestException: If the amount, reference or receipt is invalid
        """
        amount = _money(amount)
        if amount <= 0:
            raise BadRequestException("Please enter a valid payment amount")

        invoice = await self._get_invoice_row(invoice_id)
        self._check_owner(invoice, actor)

        remaining = _money(invoice["total_amount"]) - _money(invoice["amount_paid"])
        if amount > remaining:
            raise BadRequestException(
                f"Payment amount cannot exceed the remaining balance of {remaining}"
            )

        has_reference = bool(reference_number and reference_number.strip())
        if not has_reference and proof is None:
            raise BadRequestException("Please provide a reference number or upload a payment proof")
        if proof is not None:
            validate_proof(proof)

        # End the read transaction before the upload
        await self.db.rollback()

        warnings: list[str] = []
        proof_url = None
        if proof is not None:
            proof_url = await self._upload_proof(actor, proof, warnings)

        # Re-read under lock so concurrent payments add up
        locked = await self._get_invoice_row(invoice_id, for_update=True)
        if amount > _money(locked["total_amount"]) - _money(locked["amount_paid"]):
            await self.db.rollback()
            raise BadRequestException("Invoice balance changed, please review and try again")

        now = datetime.now(UTC)
        payment_stmt = (
            insert(payments)
            .values(
                invoice_id=invoice_id,
                amount=amount,
                payment_date=now,
                payment_method=payment_method.value,
                reference_number=payment_reference(reference_number),
                notes=proof_note(proof_url) if proof_url else None,
                doctor_approval_status=ApprovalStatus.PENDING.value,
                created_by=actor["id"],
            )
            .returning(payments)
        )
        payment_row = (await self.db.execute(payment_stmt)).mappings().first()
        updated = await self._apply_to_invoice(locked, amount, now)
        await self.db.commit()

        logger.info(
            "payment_submitted",
            payment_id=str(payment_row["id"]),
            invoice_id=str(invoice_id),
            amount=str(amount),
            invoice_status=updated["status"],
            has_proof=proof_url is not None,
        )

        items = await self._load_items([invoice_id])
        return PaymentSubmissionResponse(
            payment=to_payment_response(payment_row),
            invoice=InvoiceResponse(**updated, items=items.get(invoice_id, [])),
            warnings=warnings,
        )

    async def _upload_proof(self, actor: dict, proof: ProofFile, warnings: list[str]) -> str | None:
        if self.proof_storage is None:
            warnings.append("File upload not available. Payment recorded without receipt.")
            logger.warning("proof_upload_failed", error="no proof storage configured")
            return None
        try:
            return await self.proof_storage.upload(str(actor["id"]), proof)
        except Exception as e:
            warnings.append("Could not upload payment proof. Payment recorded without receipt.")
            logger.warning("proof_upload_failed", user_id=str(actor["id"]), error=str(e))
            return None

    async def _apply_to_invoice(self, invoice: dict, delta: Decimal, now: datetime) -> dict:
        total = _money(invoice["total_amount"])
        amount_paid = max(_money(invoice["amount_paid"]) + delta, Decimal("0"))
        status = invoice_status(amount_paid, total)

        result = await self.db.execute(
            update(invoices)
            .where(invoices.c.id == invoice["id"])
            .values(amount_paid=amount_paid, status=status.value, updated_at=now)
            .returning(invoices)
        )
        return dict(result.mappings().first())

    async def list_payments(
        self,
        actor: dict,
        invoice_id: UUID | None = None,
        approval_status: ApprovalStatus | None = None,
    ) -> PaymentListResponse:
        """
        List payments, newest first.

        Patients see only payments on their own invoices. The approval
        filter applies to the derived status.
        """
        query = (
            select(payments)
            .join(invoices, invoices.c.id == payments.c.invoice_id)
            .order_by(payments.c.payment_date.desc())
        )
        if actor["role"] == UserRole.PATIENT.value:
            query = query.where(invoices.c.patient_id == actor["id"])
        if invoice_id is not None:
            query = query.where(payments.c.invoice_id == invoice_id)

        result = await self.db.execute(query)
        items = [to_payment_response(row) for row in result.mappings().all()]
        if approval_status is not None:
            items = [item for item in items if item.approval_status == approval_status]

        return PaymentListResponse(total=len(items), items=items)

    async def approve_payment(self, payment_id: UUID, actor: dict) -> PaymentResponse:
        """Mark a payment approved."""
        return await self._set_approval(payment_id, ApprovalStatus.APPROVED, actor)

    async def reject_payment(self, payment_id: UUID, actor: dict) -> PaymentResponse:
        """Mark a payment rejected and take its amount back off the invoice."""
        return await self._set_approval(payment_id, ApprovalStatus.REJECTED, actor)

    async def _set_approval(
        self, payment_id: UUID, new_status: ApprovalStatus, actor: dict
    ) -> PaymentResponse:
        """
        Write an approval decision to both status columns.

        Moving into or out of rejected adjusts the invoice balance by the
        payment amount, so a rejected payment never counts as paid. Taking a
        payment out of rejected is refused when the invoice no longer has
        room for it.

        Raises:
            NotFoundException: If the payment does not exist
            BadRequestException: If restoring the payment would overpay the invoice
        """
        result = await self.db.execute(select(payments).where(payments.c.id == payment_id))
        payment = result.mappings().first()
        if not payment:
            raise NotFoundException("Payment not found")

        current = derive_approval_status(payment)
        now = datetime.now(UTC)

        delta = Decimal("0")
        if new_status == ApprovalStatus.REJECTED and current != ApprovalStatus.REJECTED:
            delta = -_money(payment["amount"])
        elif current == ApprovalStatus.REJECTED and new_status != ApprovalStatus.REJECTED:
            delta = _money(payment["amount"])

        invoice = None
        if delta:
            invoice = await self._get_invoice_row(payment["invoice_id"], for_update=True)
            remaining = _money(invoice["total_amount"]) - _money(invoice["amount_paid"])
            if delta > remaining:
                await self.db.rollback()
                logger.warning(
                    "payment_approval_refused",
                    payment_id=str(payment_id),
                    amount=str(delta),
                    remaining=str(remaining),
                )
                raise BadRequestException(
                    f"Approving this payment would exceed the remaining balance of {remaining}"
                )

        updated = await self.db.execute(
            update(payments)
            .where(payments.c.id == payment_id)
            .values(doctor_approval_status=new_status.value, approval_status=new_status.value)
            .returning(payments)
        )
        row = updated.mappings().first()

        if invoice is not None:
            await self._apply_to_invoice(invoice, delta, now)
        await self.db.commit()

        logger.info(
            "payment_approval_updated",
            payment_id=str(payment_id),
            old_status=current.value,
            new_status=new_status.value,
            actor_id=str(actor["id"]),
        )
        return to_payment_response(row)

    async def billing_summary(self) -> BillingSummaryResponse:
        """Clinic-wide totals over all invoices and payments."""
        result = await self.db.execute(
            select(
                func.coalesce(func.sum(invoices.c.total_amount), 0),
                func.coalesce(func.sum(invoices.c.amount_paid), 0),
                func.count(),
            ).select_from(invoices)
        )
        total_invoiced, total_collected, invoice_count = result.one()

        unpaid = await self.db.execute(
            select(func.count())
            .select_from(invoices)
            .where(invoices.c.status != InvoiceStatus.PAID.value)
        )

        payment_rows = await self.db.execute(
            select(
                payments.c.doctor_approval_status,
                payments.c.approval_status,
                payments.c.notes,
            )
        )
        pending_approval = sum(
            1
            for row in payment_rows.mappings().all()
            if derive_approval_status(row) == ApprovalStatus.PENDING
        )

        total_invoiced = _money(total_invoiced)
        total_collected = _money(total_collected)
        return BillingSummaryResponse(
            total_invoiced=total_invoiced,
            total_collected=total_collected,
            outstanding=total_invoiced - total_collected,
            invoice_count=invoice_count,
            unpaid_invoice_count=unpaid.scalar() or 0,
            pending_approval_count=pending_approval,
        )
