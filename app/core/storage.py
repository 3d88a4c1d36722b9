"""Object storage for payment proof uploads."""

import asyncio
import time
from dataclasses import dataclass

import structlog

from app.config import settings
from app.core.exceptions import BadRequestException
from app.core.firebase import get_storage_bucket

logger = structlog.get_logger(__name__)

ALLOWED_PROOF_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "application/pdf": "pdf",
}

PROOF_PREFIX = "payment-proofs"


@dataclass
class ProofFile:
    """An uploaded receipt held in memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        if "." in self.filename:
            return self.filename.rsplit(".", 1)[1].lower()
        return ALLOWED_PROOF_TYPES.get(self.content_type, "bin")


def validate_proof(proof: ProofFile) -> None:
    """
    Check size and type limits of a proof file.

    Raises:
        BadRequestException: If the file is too large or of a disallowed type
    """
    if proof.content_type not in ALLOWED_PROOF_TYPES:
        raise BadRequestException("Please upload an image (JPG, PNG, GIF) or PDF file")
    if proof.size > settings.max_proof_size_bytes:
        limit_mb = settings.max_proof_size_bytes // (1024 * 1024)
        raise BadRequestException(f"File size must be less than {limit_mb}MB")


def build_proof_key(user_id: str, proof: ProofFile, now_ms: int | None = None) -> str:
    """Object key namespaced by uploader and upload time."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{PROOF_PREFIX}/{user_id}/{now_ms}.{proof.extension}"


class ProofStorage:
    """Uploads payment proofs to the Firebase Storage bucket."""

    def __init__(self, bucket=None):
        self._bucket = bucket

    @property
    def bucket(self):
        if self._bucket is None:
            self._bucket = get_storage_bucket()
        return self._bucket

    def _upload_sync(self, key: str, proof: ProofFile) -> str:
        blob = self.bucket.blob(key)
        blob.cache_control = "public, max-age=3600"
        blob.upload_from_string(proof.data, content_type=proof.content_type)
        blob.make_public()
        return blob.public_url

    async def upload(self, user_id: str, proof: ProofFile) -> str:
        """
        Upload a proof and return its public URL.

        The blocking Google Cloud Storage client runs in a worker thread.
        """
        key = build_proof_key(user_id, proof)
        url = await asyncio.to_thread(self._upload_sync, key, proof)
        logger.info("proof_uploaded", key=key, size=proof.size)
        return url


def get_proof_storage() -> ProofStorage:
    """Dependency returning the proof store."""
    return ProofStorage()
