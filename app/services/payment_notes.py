"""
Compatibility readers for payment notes.

Older payment rows carry their receipt link and their approval decision
inside the free-text ``notes`` column, e.g.::

    Payment proof: https://storage.example/abc.png (Approved by doctor)

New rows keep the decision in the status columns; these helpers recover
both facts from rows written either way.
"""

from collections.abc import Mapping
from typing import Any

from app.schemas.billing import ApprovalStatus

PROOF_PREFIX = "Payment proof:"

APPROVED_PHRASES = (
    "(Approved by doctor)",
    " (Approved by doctor)",
    "Approved by doctor",
    "(Approved)",
    " (Approved)",
)

REJECTED_PHRASES = (
    "(Rejected by doctor)",
    " (Rejected by doctor)",
    "Rejected by doctor",
    "(Rejected)",
    " (Rejected)",
)

TRAILING_ANNOTATIONS = APPROVED_PHRASES + REJECTED_PHRASES

STATUS_COLUMNS = ("doctor_approval_status", "approval_status")


def proof_note(url: str) -> str:
    """Notes value recording an uploaded receipt."""
    return f"{PROOF_PREFIX} {url}"


def _parse_status(value: Any) -> ApprovalStatus | None:
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    try:
        return ApprovalStatus(text)
    except ValueError:
        return None


def status_from_notes(notes: str | None) -> ApprovalStatus | None:
    """
    Classify an approval decision written into notes.

    A notes value that is exactly a status word is read as that status.
    Otherwise the right-most approval or rejection phrase wins, so a
    payment approved and later rejected reads as rejected.

    Returns:
        The status found, or None when the notes carry no decision
    """
    status = _parse_status(notes)
    if status is not None or not notes:
        return status

    last_index = -1
    found = None
    for phrases, candidate in (
        (APPROVED_PHRASES, ApprovalStatus.APPROVED),
        (REJECTED_PHRASES, ApprovalStatus.REJECTED),
    ):
        for phrase in phrases:
            index = notes.rfind(phrase)
            if index > last_index:
                last_index = index
                found = candidate
    return found


def derive_approval_status(payment: Mapping[str, Any]) -> ApprovalStatus:
    """
    Resolve the approval status of a payment row.

    Sources in order: ``doctor_approval_status``, ``approval_status``, then
    the notes text. Unrecognised column values are skipped. Defaults to
    pending.
    """
    for column in STATUS_COLUMNS:
        status = _parse_status(payment.get(column))
        if status is not None:
            return status

    return status_from_notes(payment.get("notes")) or ApprovalStatus.PENDING


def extract_proof_url(notes: str | None) -> str | None:
    """
    Recover the receipt URL from a notes value.

    Everything after the ``Payment proof:`` prefix is taken, cut at the
    first approval or rejection annotation, and stripped.

    Returns:
        The URL, or None when the notes do not record a receipt
    """
    if not notes or PROOF_PREFIX not in notes:
        return None

    url = notes.split(PROOF_PREFIX, 1)[1]

    cut = len(url)
    for annotation in TRAILING_ANNOTATIONS:
        index = url.find(annotation)
        if index != -1 and index < cut:
            cut = index
    url = url[:cut].strip()

    return url or None
