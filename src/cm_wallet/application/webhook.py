"""Payment gateway webhook verification.

The gateway signs the raw request body with HMAC-SHA512 using the shared
secret and sends the hex digest in ``X-Payment-Signature``.
"""

import hashlib
import hmac

from config.settings import settings
from src.cm_common.errors import InvalidSignatureError

SIGNATURE_HEADER = "X-Payment-Signature"

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"
TRANSFER_SUCCESS = "transfer.success"
TRANSFER_FAILED = "transfer.failed"


def sign_payload(body: bytes, secret: str | None = None) -> str:
    key = (secret or settings.PAYMENT_WEBHOOK_SECRET).encode()
    return hmac.new(key, body, hashlib.sha512).hexdigest()


def verify_signature(body: bytes, signature: str | None, secret: str | None = None) -> None:
    """Raise InvalidSignatureError unless ``signature`` matches ``body``."""
    if not signature:
        raise InvalidSignatureError()
    if not hmac.compare_digest(sign_payload(body, secret), signature.strip().lower()):
        raise InvalidSignatureError()
