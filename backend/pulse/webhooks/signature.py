import hashlib
import hmac


class InvalidSignature(Exception):
    """Signature header present but does not match the payload."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Invalid signature for {source} webhook")


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), msg=raw_body, digestmod=hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str, source: str = "webhook") -> bool:
    """Check an HMAC-SHA256 signature over the raw request bytes.

    Returns False when verification was skipped (no signature header or no
    secret configured), True when it passed. Raises InvalidSignature on mismatch.
    Both bare hex and GitHub's ``sha256=<hex>`` forms are accepted.
    """
    if not signature or not secret:
        return False

    provided = signature.strip()
    if provided.startswith("sha256="):
        provided = provided[len("sha256="):]

    expected = compute_signature(raw_body, secret)
    if not hmac.compare_digest(expected.encode(), provided.encode()):
        raise InvalidSignature(source)
    return True
