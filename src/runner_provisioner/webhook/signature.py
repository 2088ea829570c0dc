"""
GitHub Webhook Signature

HMAC-SHA256 validation of the X-Hub-Signature-256 header.
"""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def sign_payload(payload: bytes, secret: str) -> str:
    """Return the X-Hub-Signature-256 value GitHub would send for payload."""
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(
    payload: bytes,
    signature_header: str | None,
    secret: str,
) -> bool:
    """
    Validate a GitHub webhook signature.

    Args:
        payload: Raw request body bytes
        signature_header: X-Hub-Signature-256 header value
        secret: Webhook secret

    Returns:
        True if signature is valid
    """
    if not signature_header:
        return False

    if not signature_header.startswith(SIGNATURE_PREFIX):
        logger.warning("Invalid signature format")
        return False

    expected = signature_header[len(SIGNATURE_PREFIX):]

    computed = hmac.new(
        secret.encode("utf-8"),
        payload,
        hashlib.sha256,
    ).hexdigest()

    return hmac.compare_digest(computed.encode("ascii"), expected.encode("utf-8"))


class SignatureVerifier:
    """
    Verifies webhook bodies against the configured secret.

    With no secret, verification is disabled: every body is accepted and a
    warning is logged once.
    """

    def __init__(self, secret: str = ""):
        self.secret = secret
        self._warned = False

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    def warn_if_disabled(self) -> None:
        if not self.enabled and not self._warned:
            logger.warning(
                "Webhook secret is not set; signature verification is disabled "
                "and every webhook will be accepted"
            )
            self._warned = True

    def verify(self, payload: bytes, signature_header: str | None) -> bool:
        if not self.enabled:
            self.warn_if_disabled()
            return True
        return verify_signature(payload, signature_header, self.secret)
