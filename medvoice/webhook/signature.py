"""
Signature Verifier — HMAC-SHA256 authenticity check for inbound webhooks.

The voice platform signs the raw request body with the shared secret and
sends the hex digest in the ``x-webhook-signature`` header. The digest is
recomputed over the exact bytes received and compared in constant time.

Modes:
  no secret configured        → open mode, every request is authentic
  secret, header missing      → MissingSignaturePolicy (reject / warn)
  secret, header present      → digest must match
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from medvoice.settings import MissingSignaturePolicy

logger = logging.getLogger("webhook.signature")

SIGNATURE_HEADER = "x-webhook-signature"


def compute_signature(body: bytes | str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed with ``secret``."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def _normalise_signature(value: str) -> str:
    value = value.strip()
    if value.lower().startswith("sha256="):
        value = value.split("=", 1)[1].strip()
    return value


class SignatureVerifier:
    """Verifies webhook bodies against a shared secret."""

    def __init__(
        self,
        secret: Optional[str] = None,
        missing_policy: MissingSignaturePolicy = MissingSignaturePolicy.REJECT,
    ) -> None:
        self._secret = secret or None
        self._missing_policy = missing_policy

    @property
    def enabled(self) -> bool:
        return self._secret is not None

    def verify(self, body: bytes | str, signature: Optional[str]) -> bool:
        """
        Return True when the request should be treated as authentic.

        Only logs; never raises.
        """
        if self._secret is None:
            logger.warning("Webhook secret not configured, skipping signature verification")
            return True

        if not signature:
            if self._missing_policy == MissingSignaturePolicy.WARN:
                logger.warning("Missing webhook signature — accepted (policy=warn)")
                return True
            logger.error("Missing webhook signature")
            return False

        expected = compute_signature(body, self._secret)
        provided = _normalise_signature(signature)
        try:
            is_valid = hmac.compare_digest(provided, expected)
        except TypeError:
            # compare_digest refuses non-ASCII str input
            is_valid = False

        if not is_valid:
            logger.error("Invalid webhook signature")
        return is_valid
