import os
from typing import Optional
from uuid import uuid4

from courierhub.config import settings

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


class ProofStorageError(Exception):
    pass


class LocalProofStorage:
    """
    Stores delivery proofs (photos, signatures) on local disk and returns the
    URL they are served from. The workflow only ever keeps that URL.
    """

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None, max_bytes: Optional[int] = None):
        self.root = root or settings.PROOF_UPLOAD_DIR
        self.base_url = (base_url or settings.PROOF_PUBLIC_BASE_URL).rstrip("/")
        self.max_bytes = max_bytes or settings.PROOF_MAX_BYTES

    def save(self, shipment_id: int, proof_type: str, content: bytes, content_type: Optional[str] = None) -> str:
        if not content:
            raise ProofStorageError("Empty upload")
        if len(content) > self.max_bytes:
            raise ProofStorageError(f"Upload exceeds {self.max_bytes} bytes")
        ext = ALLOWED_CONTENT_TYPES.get(content_type or "image/jpeg")
        if ext is None:
            raise ProofStorageError(f"Unsupported content type: {content_type}")

        os.makedirs(self.root, exist_ok=True)
        filename = f"{shipment_id}-{proof_type}-{uuid4().hex[:12]}{ext}"
        with open(os.path.join(self.root, filename), "wb") as fh:
            fh.write(content)
        return f"{self.base_url}/{filename}"

    def health_check(self) -> bool:
        try:
            os.makedirs(self.root, exist_ok=True)
            return os.access(self.root, os.W_OK)
        except OSError:
            return False
