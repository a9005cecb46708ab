"""Webhook signature verification"""

import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, secret: str) -> str:
    """`sha256=<hex>` HMAC of the raw request body, as GitHub sends it"""
    mac = hmac.new(secret.encode("utf-8"), msg=body, digestmod=hashlib.sha256)
    return SIGNATURE_PREFIX + mac.hexdigest()


def verify_signature(body: bytes, signature_header: Optional[str], secret: str) -> bool:
    """Constant-time check of X-Hub-Signature-256 against the raw body"""
    if not signature_header:
        logger.warning("Missing GitHub signature header")
        return False

    received = signature_header.encode("utf-8")
    expected = compute_signature(body, secret).encode("utf-8")

    if len(received) != len(expected):
        logger.warning("Invalid GitHub signature length")
        return False

    if not hmac.compare_digest(received, expected):
        logger.warning("Invalid GitHub signature")
        return False

    return True
