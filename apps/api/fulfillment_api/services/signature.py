import hmac
from hashlib import sha256

SIGNATURE_PREFIX = "sha256="


def compute_signature(raw_body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode(), raw_body, sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(raw_body: bytes, signature_header: str | None, secret: str | None) -> bool:
    """Check a provider webhook signature against the raw request body.

    The body must be the exact bytes received on the wire; a re-serialised
    JSON document will not verify. Missing header or secret fails closed.
    """
    if not signature_header or not secret:
        return False

    try:
        expected = compute_signature(raw_body, secret)
        return hmac.compare_digest(signature_header.strip().encode(), expected.encode())
    except (TypeError, ValueError, UnicodeError):
        return False
