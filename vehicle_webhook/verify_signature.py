import hmac
import hashlib
from typing import Optional, Union


def hmac_hex(secret: str, message: Union[bytes, str]) -> str:
    """Lowercase hex HMAC-SHA256 of ``message`` keyed by ``secret``."""
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), msg=message, digestmod=hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature_header: Optional[str]) -> bool:
    """
    Verify the provider's webhook signature.

    secret: Shared webhook secret
    body: Raw request body (bytes), exactly as received
    signature_header: The value of the 'SC-Signature' header (bare hex digest)
    """
    if not secret or not signature_header:
        return False

    provided = signature_header.strip()
    expected = hmac_hex(secret, body)

    # compare_digest needs equal-length inputs to stay constant-time
    if len(provided) != len(expected):
        return False
    return hmac.compare_digest(expected, provided)


def sign_challenge(secret: str, challenge: str) -> str:
    """Answer a VERIFY handshake: the challenge string signed with the shared secret."""
    return hmac_hex(secret, challenge)
