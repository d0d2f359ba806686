"""Shared-secret and HMAC checks for inbound webhooks."""
import hashlib
import hmac
from typing import Optional


def verify_shared_secret(provided: Optional[str], expected: Optional[str]) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def compute_hmac_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_hmac_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Accepts a hex HMAC-SHA256 digest, optionally prefixed with 'sha256='."""
    if not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = compute_hmac_signature(body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())
