"""
GitHub Webhook

Signature validation and the ingestion endpoint.
"""

from runner_provisioner.webhook.signature import (
    SIGNATURE_HEADER,
    SignatureVerifier,
    sign_payload,
    verify_signature,
)

__all__ = [
    "SIGNATURE_HEADER",
    "SignatureVerifier",
    "sign_payload",
    "verify_signature",
]
