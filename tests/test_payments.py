"""Tests for payment submission and approval."""

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy import func, insert, select

from app.core.storage import ProofFile
from app.models.billing import invoices, payments
from app.schemas.billing import PaymentMethod
from app.services.billing_service import BillingService


def _payment_url(invoice: dict) -> str:
    return f"/api/v1/billing/invoices/{invoice['id']}/payments"


async def _invoice_row(db_session, invoice_id) -> dict:
    result = await db_session.execute(select(invoices).where(invoices.c.id == invoice_id))
    return dict(result.mappings().one())


@pytest.mark.asyncio
async def test_partial_payment(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    sample_invoice: dict,
) -> None:
    """A payment below the balance leaves the invoice partial."""
    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "400", "payment_method": "gcash", "reference_number": "GC-778812"},
        headers=patient_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["payment"]["amount"] == 400.0
    assert data["payment"]["reference_number"] == "GC-778812"
    assert data["payment"]["approval_status"] == "pending"
    assert data["payment"]["proof_url"] is None
    assert data["invoice"]["amount_paid"] == 400.0
    assert data["invoice"]["status"] == "partial"
    assert data["warnings"] == []

    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("400.00")
    assert invoice["status"] == "partial"


@pytest.mark.asyncio
async def test_exact_balance_marks_paid(
    client: AsyncClient,
    patient_headers: dict,
    sample_invoice: dict,
) -> None:
    """Paying the remaining balance exactly settles the invoice."""
    url = _payment_url(sample_invoice)
    await client.post(
        url, data={"amount": "250.50", "reference_number": "A1"}, headers=patient_headers
    )
    response = await client.post(
        url, data={"amount": "749.50", "reference_number": "A2"}, headers=patient_headers
    )

    assert response.status_code == 201
    invoice = response.json()["invoice"]
    assert invoice["amount_paid"] == 1000.0
    assert invoice["status"] == "paid"


@pytest.mark.asyncio
async def test_overpayment_rejected_before_any_write(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    make_invoice,
    patient_user: dict,
) -> None:
    """An amount above the balance changes nothing."""
    invoice = await make_invoice(
        db_session, patient_user["id"], total_amount="1000.00", amount_paid="600.00", status="partial"
    )

    response = await client.post(
        _payment_url(invoice),
        data={"amount": "400.01", "reference_number": "TOO-MUCH"},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "BadRequestException"

    row = await _invoice_row(db_session, invoice["id"])
    assert row["amount_paid"] == Decimal("600.00")
    assert row["status"] == "partial"
    count = await db_session.execute(select(func.count()).select_from(payments))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_non_positive_amount_rejected(
    client: AsyncClient,
    patient_headers: dict,
    sample_invoice: dict,
) -> None:
    """Zero and negative amounts fail validation."""
    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "0", "reference_number": "ZERO"},
        headers=patient_headers,
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reference_or_proof_required(
    client: AsyncClient,
    patient_headers: dict,
    sample_invoice: dict,
) -> None:
    """A payment needs a reference number or a receipt."""
    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "100", "reference_number": "   "},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert "reference number" in response.json()["message"]


@pytest.mark.asyncio
async def test_proof_upload_recorded_in_notes(
    client: AsyncClient,
    db_session,
    patient_user: dict,
    patient_headers: dict,
    sample_invoice: dict,
    proof_storage,
) -> None:
    """An uploaded receipt is linked from the payment notes."""
    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "500", "payment_method": "gcash"},
        files={"proof": ("receipt.png", b"\x89PNG fake image", "image/png")},
        headers=patient_headers,
    )

    assert response.status_code == 201
    payment = response.json()["payment"]
    assert payment["proof_url"] == f"https://storage.test/payment-proofs/{patient_user['id']}/1.png"
    assert payment["reference_number"].startswith("PAY-")
    assert payment["notes"] == f"Payment proof: {payment['proof_url']}"

    assert len(proof_storage.uploads) == 1
    user_id, proof = proof_storage.uploads[0]
    assert user_id == str(patient_user["id"])
    assert proof.content_type == "image/png"


@pytest.mark.asyncio
async def test_failed_upload_still_records_payment(
    client: AsyncClient,
    patient_headers: dict,
    sample_invoice: dict,
    proof_storage,
) -> None:
    """A failing receipt upload does not block the payment."""
    proof_storage.fail = True

    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "300", "reference_number": "GC-1"},
        files={"proof": ("receipt.jpg", b"jpeg bytes", "image/jpeg")},
        headers=patient_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["payment"]["notes"] is None
    assert data["payment"]["proof_url"] is None
    assert len(data["warnings"]) == 1
    assert data["invoice"]["amount_paid"] == 300.0


@pytest.mark.asyncio
async def test_disallowed_proof_type(
    client: AsyncClient,
    patient_headers: dict,
    sample_invoice: dict,
    proof_storage,
) -> None:
    """Only images and PDFs are accepted as receipts."""
    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "100"},
        files={"proof": ("receipt.txt", b"plain text", "text/plain")},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Please upload an image (JPG, PNG, GIF) or PDF file"
    assert proof_storage.uploads == []


@pytest.mark.asyncio
async def test_oversized_proof(
    client: AsyncClient,
    patient_headers: dict,
    sample_invoice: dict,
) -> None:
    """Receipts over 5 MB are refused."""
    response = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "100"},
        files={"proof": ("scan.pdf", b"0" * (5 * 1024 * 1024 + 1), "application/pdf")},
        headers=patient_headers,
    )

    assert response.status_code == 400
    assert "5MB" in response.json()["message"]


@pytest.mark.asyncio
async def test_patient_cannot_pay_other_invoice(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    make_profile,
    make_invoice,
) -> None:
    """Patients only pay their own invoices."""
    stranger = await make_profile(db_session, "patient", "Other Patient")
    invoice = await make_invoice(db_session, stranger["id"])

    response = await client.post(
        _payment_url(invoice),
        data={"amount": "100", "reference_number": "X"},
        headers=patient_headers,
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_payment_for_missing_invoice(client: AsyncClient, patient_headers: dict) -> None:
    """Unknown invoices return 404."""
    response = await client.post(
        f"/api/v1/billing/invoices/{uuid4()}/payments",
        data={"amount": "100", "reference_number": "X"},
        headers=patient_headers,
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_approve_payment(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    doctor_headers: dict,
    sample_invoice: dict,
) -> None:
    """Approval is written to both status columns without touching the balance."""
    submitted = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "1000", "reference_number": "FULL"},
        headers=patient_headers,
    )
    payment_id = submitted.json()["payment"]["id"]

    response = await client.post(
        f"/api/v1/billing/payments/{payment_id}/approve", headers=doctor_headers
    )

    assert response.status_code == 200
    assert response.json()["approval_status"] == "approved"

    result = await db_session.execute(select(payments))
    row = result.mappings().one()
    assert row["doctor_approval_status"] == "approved"
    assert row["approval_status"] == "approved"
    assert row["notes"] is None

    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("1000.00")
    assert invoice["status"] == "paid"


@pytest.mark.asyncio
async def test_reject_payment_reverses_amount(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    staff_headers: dict,
    sample_invoice: dict,
) -> None:
    """A rejected payment no longer counts toward the invoice."""
    url = _payment_url(sample_invoice)
    await client.post(url, data={"amount": "300", "reference_number": "P1"}, headers=patient_headers)
    second = await client.post(
        url, data={"amount": "200", "reference_number": "P2"}, headers=patient_headers
    )
    payment_id = second.json()["payment"]["id"]

    response = await client.post(
        f"/api/v1/billing/payments/{payment_id}/reject", headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json()["approval_status"] == "rejected"

    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("300.00")
    assert invoice["status"] == "partial"

    # Rejecting again changes nothing
    await client.post(f"/api/v1/billing/payments/{payment_id}/reject", headers=staff_headers)
    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("300.00")


@pytest.mark.asyncio
async def test_rejecting_only_payment_resets_invoice(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    doctor_headers: dict,
    sample_invoice: dict,
) -> None:
    """With nothing left paid the invoice is pending again."""
    submitted = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "1000", "reference_number": "FULL"},
        headers=patient_headers,
    )
    payment_id = submitted.json()["payment"]["id"]

    await client.post(f"/api/v1/billing/payments/{payment_id}/reject", headers=doctor_headers)

    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("0.00")
    assert invoice["status"] == "pending"


@pytest.mark.asyncio
async def test_restoring_rejected_payment_cannot_overpay(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    doctor_headers: dict,
    sample_invoice: dict,
) -> None:
    """A rejected payment cannot be approved once the invoice has been settled."""
    url = _payment_url(sample_invoice)
    first = await client.post(
        url, data={"amount": "600", "reference_number": "FIRST"}, headers=patient_headers
    )
    first_id = first.json()["payment"]["id"]
    await client.post(f"/api/v1/billing/payments/{first_id}/reject", headers=doctor_headers)
    settled = await client.post(
        url, data={"amount": "1000", "reference_number": "SECOND"}, headers=patient_headers
    )
    assert settled.json()["invoice"]["status"] == "paid"

    response = await client.post(
        f"/api/v1/billing/payments/{first_id}/approve", headers=doctor_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "BadRequestException"

    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("1000.00")
    assert invoice["status"] == "paid"
    result = await db_session.execute(
        select(payments).where(payments.c.reference_number == "FIRST")
    )
    assert result.mappings().one()["approval_status"] == "rejected"


@pytest.mark.asyncio
async def test_restoring_rejected_payment_within_balance(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    doctor_headers: dict,
    sample_invoice: dict,
) -> None:
    """Approving a rejected payment counts it again when the balance allows."""
    submitted = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "600", "reference_number": "BACK"},
        headers=patient_headers,
    )
    payment_id = submitted.json()["payment"]["id"]
    await client.post(f"/api/v1/billing/payments/{payment_id}/reject", headers=doctor_headers)

    response = await client.post(
        f"/api/v1/billing/payments/{payment_id}/approve", headers=doctor_headers
    )

    assert response.status_code == 200
    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("600.00")
    assert invoice["status"] == "partial"


@pytest.mark.asyncio
async def test_patient_cannot_approve(
    client: AsyncClient,
    patient_headers: dict,
) -> None:
    """Approval is reserved for clinic users."""
    response = await client.post(
        f"/api/v1/billing/payments/{uuid4()}/approve", headers=patient_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_approve_missing_payment(client: AsyncClient, doctor_headers: dict) -> None:
    """Unknown payments return 404."""
    response = await client.post(
        f"/api/v1/billing/payments/{uuid4()}/approve", headers=doctor_headers
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_payments_reads_legacy_notes(
    client: AsyncClient,
    db_session,
    doctor_headers: dict,
    sample_invoice: dict,
) -> None:
    """Older rows with decisions only in notes are classified from the text."""
    await db_session.execute(
        insert(payments).values(
            invoice_id=sample_invoice["id"],
            amount=Decimal("150"),
            payment_date=datetime(2026, 9, 1, 10, 0),
            payment_method="gcash",
            reference_number="PAY-1693562400000",
            notes="Payment proof: https://cdn.example/p/abc.png (Approved by doctor)",
        )
    )
    await db_session.commit()

    response = await client.get("/api/v1/billing/payments", headers=doctor_headers)

    assert response.status_code == 200
    item = response.json()["items"][0]
    assert item["approval_status"] == "approved"
    assert item["proof_url"] == "https://cdn.example/p/abc.png"


@pytest.mark.asyncio
async def test_list_payments_scoping_and_filter(
    client: AsyncClient,
    db_session,
    patient_headers: dict,
    doctor_headers: dict,
    sample_invoice: dict,
    make_profile,
    make_invoice,
) -> None:
    """Patients see their own payments; the status filter uses derived status."""
    stranger = await make_profile(db_session, "patient", "Other Patient")
    other_invoice = await make_invoice(db_session, stranger["id"])
    await client.post(
        _payment_url(other_invoice),
        data={"amount": "100", "reference_number": "OTHER"},
        headers=doctor_headers,
    )
    mine = await client.post(
        _payment_url(sample_invoice),
        data={"amount": "100", "reference_number": "MINE"},
        headers=patient_headers,
    )
    await client.post(
        f"/api/v1/billing/payments/{mine.json()['payment']['id']}/approve",
        headers=doctor_headers,
    )

    own = await client.get("/api/v1/billing/payments", headers=patient_headers)
    assert [item["reference_number"] for item in own.json()["items"]] == ["MINE"]

    pending = await client.get(
        "/api/v1/billing/payments?approval_status=pending", headers=doctor_headers
    )
    assert [item["reference_number"] for item in pending.json()["items"]] == ["OTHER"]


class _TransactionCheckingStorage:
    """Receipt store that records whether the session was mid-transaction."""

    def __init__(self, session) -> None:
        self.session = session
        self.in_transaction: list[bool] = []

    async def upload(self, user_id: str, proof: ProofFile) -> str:
        self.in_transaction.append(self.session.in_transaction())
        return f"https://storage.test/payment-proofs/{user_id}/receipt.{proof.extension}"


@pytest.mark.asyncio
async def test_receipt_upload_runs_outside_transaction(
    db_session,
    patient_user: dict,
    sample_invoice: dict,
) -> None:
    """No database transaction is held open while the receipt uploads."""
    storage = _TransactionCheckingStorage(db_session)
    service = BillingService(db_session, storage)

    result = await service.submit_payment(
        sample_invoice["id"],
        Decimal("250"),
        PaymentMethod.GCASH,
        actor=patient_user,
        proof=ProofFile(filename="receipt.png", content_type="image/png", data=b"png"),
    )

    assert storage.in_transaction == [False]
    assert result.payment.proof_url.endswith("receipt.png")
    invoice = await _invoice_row(db_session, sample_invoice["id"])
    assert invoice["amount_paid"] == Decimal("250.00")
