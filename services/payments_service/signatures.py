"""HMAC-SHA256 signature checks for gateway callbacks.

Both checks return a ``SignatureCheck`` value instead of raising, so callers
branch explicitly on ``Verified`` / ``Rejected``.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Verified:
    pass


@dataclass(frozen=True)
class Rejected:
    reason: str


SignatureCheck = Union[Verified, Rejected]


def _hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _compare(expected: str, supplied: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))


def verify_payment_signature(
    *, order_id: str, payment_id: str, signature: str | None, key_secret: str
) -> SignatureCheck:
    """
    Check the signature the checkout widget hands back to the client.

    The gateway signs ``"{order_id}|{payment_id}"`` with the account's key
    secret.
    """
    if not key_secret:
        return Rejected("payment key secret is not configured")
    if not signature:
        return Rejected("missing signature")
    if not order_id or not payment_id:
        return Rejected("missing order or payment id")

    expected = _hmac_sha256_hex(key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
    if not _compare(expected, signature):
        return Rejected("signature mismatch")
    return Verified()


def verify_webhook_signature(
    *, raw_body: bytes, signature: str | None, webhook_secret: str
) -> SignatureCheck:
    """
    Check a webhook signature over the exact raw request body.

    An unset webhook secret rejects everything rather than skipping the check.
    """
    if not webhook_secret:
        return Rejected("webhook secret is not configured")
    if not signature:
        return Rejected("missing signature")

    expected = _hmac_sha256_hex(webhook_secret, raw_body)
    if not _compare(expected, signature):
        return Rejected("signature mismatch")
    return Verified()
