import time
from typing import Any, Callable, Dict, Optional

from billingio_webhook import (
    DEFAULT_TOLERANCE,
    SIGNATURE_HEADER,
    SIGNATURE_SCHEME,
    FailureKind,
    Payload,
    SignatureHeader,
    VerificationFailure,
    VerificationResult,
    WebhookVerificationError,
    check_timestamp,
    compute_signature,
    decode_event,
    parse_header,
    secure_compare,
    verify,
)

__all__ = [
    "DEFAULT_TOLERANCE",
    "SIGNATURE_HEADER",
    "SIGNATURE_SCHEME",
    "FailureKind",
    "SignatureHeader",
    "VerificationFailure",
    "VerificationResult",
    "WebhookVerificationError",
    "check_timestamp",
    "compute_signature",
    "decode_event",
    "generate_signature_header",
    "parse_header",
    "secure_compare",
    "verify",
    "verify_signature",
]


def verify_signature(
    payload: Payload,
    header: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE,
    *,
    clock: Optional[Callable[[], float]] = None,
) -> Dict[str, Any]:
    """
    Verify a webhook payload and return the parsed event.

    Same checks as verify(), but raises WebhookVerificationError on failure; inspect
    err.kind to tell a forged delivery from a stale one or a malformed body.
    """
    return verify(payload, header, secret, tolerance, clock=clock).unwrap()


def generate_signature_header(
    payload: Payload,
    secret: str,
    timestamp: Optional[int] = None,
    *,
    scheme: str = SIGNATURE_SCHEME,
) -> str:
    """
    Produce an X-Billing-Signature value for payload, as billing.io would send it.
    Meant for tests and for replaying captured deliveries against a local endpoint.
    """
    if not secret:
        raise ValueError("secret is required")
    ts = int(time.time()) if timestamp is None else int(timestamp)
    if ts < 0:
        raise ValueError("timestamp must not be negative")
    sig = compute_signature(secret, ts, payload)
    return f"t={ts},{scheme}={sig}"
