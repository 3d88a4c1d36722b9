"""Invoice and payment schemas."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, PlainSerializer, model_validator

# Decimal in Python, number in JSON
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class InvoiceStatus(str, Enum):
    """Invoice payment state."""

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"


class ApprovalStatus(str, Enum):
    """Doctor approval state of a submitted payment."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DiscountType(str, Enum):
    """How an invoice discount is expressed."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PaymentMethod(str, Enum):
    """Accepted payment channels."""

    GCASH = "gcash"
    CASH = "cash"
    OTHER = "other"


class InvoiceItemCreate(BaseModel):
    """Line item on a new invoice."""

    service_name: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    quantity: int = Field(default=1, ge=1)
    price: Decimal = Field(..., ge=0)


class InvoiceCreate(BaseModel):
    """Schema for issuing an invoice."""

    patient_id: UUID
    items: list[InvoiceItemCreate] = Field(..., min_length=1)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.PERCENTAGE
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    payment_method: PaymentMethod | None = None
    notes: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_discount(self) -> "InvoiceCreate":
        """Percentage discounts cannot exceed 100."""
        if self.discount_type == DiscountType.PERCENTAGE and self.discount > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class InvoiceItemResponse(BaseModel):
    """Invoice line item."""

    id: UUID
    service_name: str
    description: str | None = None
    quantity: int
    price: Money


class InvoiceResponse(BaseModel):
    """Invoice with its line items."""

    id: UUID
    invoice_number: str
    patient_id: UUID
    invoice_date: datetime
    due_date: datetime | None = None
    subtotal: Money
    discount: Money
    tax: Money
    total_amount: Money
    amount_paid: Money
    status: InvoiceStatus
    payment_method: str | None = None
    notes: str | None = None
    items: list[InvoiceItemResponse] = []


class InvoiceListResponse(BaseModel):
    """Invoice listing."""

    total: int
    items: list[InvoiceResponse]


class PaymentResponse(BaseModel):
    """Payment with its resolved approval status and receipt link."""

    id: UUID
    invoice_id: UUID
    amount: Money
    payment_date: datetime
    payment_method: str
    reference_number: str
    notes: str | None = None
    approval_status: ApprovalStatus
    proof_url: str | None = None
    created_by: UUID | None = None


class PaymentListResponse(BaseModel):
    """Payment listing."""

    total: int
    items: list[PaymentResponse]


class PaymentSubmissionResponse(BaseModel):
    """Result of submitting a payment."""

    payment: PaymentResponse
    invoice: InvoiceResponse
    warnings: list[str] = []


class BillingSummaryResponse(BaseModel):
    """Clinic-wide billing figures."""

    total_invoiced: Money
    total_collected: Money
    outstanding: Money
    invoice_count: int
    unpaid_invoice_count: int
    pending_approval_count: int
