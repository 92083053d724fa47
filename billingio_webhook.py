"""
Webhook signature verification for billing.io deliveries.

The X-Billing-Signature header has the format:
    t=<unix_timestamp>,v1=<hex_hmac_sha256>

The signed payload is "<timestamp>.<raw_body>", computed over the body bytes exactly as received.
"""
import hashlib
import hmac
import json
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

DEFAULT_TOLERANCE = 300
SIGNATURE_HEADER = "X-Billing-Signature"
SIGNATURE_SCHEME = "v1"

# capped so int() stays under the interpreter's digit limit
_DIGITS = re.compile(r"[0-9]{1,18}")

Payload = Union[bytes, bytearray, memoryview, str]


class FailureKind(str, Enum):
    MISSING_SIGNATURE_HEADER = "missing_signature_header"
    MISSING_SECRET = "missing_secret"
    MALFORMED_HEADER = "malformed_header"
    TIMESTAMP_OUT_OF_TOLERANCE = "timestamp_out_of_tolerance"
    SIGNATURE_MISMATCH = "signature_mismatch"
    INVALID_PAYLOAD = "invalid_payload"


class WebhookVerificationError(Exception):
    """Raised by the raising entry points when a delivery fails verification."""

    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class SignatureHeader:
    timestamp: int
    signature: str


@dataclass(frozen=True)
class VerificationFailure:
    kind: FailureKind
    message: str


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification: the decoded event, or the failure that stopped it."""

    event: Optional[Dict[str, Any]] = None
    failure: Optional[VerificationFailure] = None

    @property
    def valid(self) -> bool:
        return self.failure is None

    @property
    def kind(self) -> Optional[FailureKind]:
        return self.failure.kind if self.failure else None

    def __bool__(self) -> bool:
        return self.valid

    def unwrap(self) -> Dict[str, Any]:
        if self.failure is not None:
            raise WebhookVerificationError(self.failure.kind, self.failure.message)
        return self.event


_MALFORMED = VerificationFailure(
    FailureKind.MALFORMED_HEADER,
    "Invalid signature header format. Expected: t={timestamp},v1={signature}",
)


def _as_bytes(payload: Payload) -> bytes:
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return bytes(payload)


def parse_header(header: Optional[str]) -> Union[SignatureHeader, VerificationFailure]:
    """Split "t=...,v1=..." into a SignatureHeader; unknown segments are ignored, the last duplicate wins."""
    if not header:
        return VerificationFailure(FailureKind.MISSING_SIGNATURE_HEADER, "Missing signature header")
    parts: Dict[str, str] = {}
    for segment in header.split(","):
        if not segment.strip():
            continue
        key, _, value = segment.partition("=")
        parts[key.strip()] = value.strip()

    t = parts.get("t")
    if t is None or not _DIGITS.fullmatch(t):
        return _MALFORMED
    v1 = parts.get(SIGNATURE_SCHEME)
    if not v1:
        return _MALFORMED
    return SignatureHeader(timestamp=int(t), signature=v1)


def check_timestamp(timestamp: int, tolerance: int, now: int) -> Optional[VerificationFailure]:
    # symmetric: future-dated events are rejected like stale ones
    if abs(now - timestamp) > tolerance:
        return VerificationFailure(
            FailureKind.TIMESTAMP_OUT_OF_TOLERANCE,
            f"Timestamp outside tolerance. Event: {timestamp}, now: {now}, tolerance: {tolerance}s",
        )
    return None


def compute_signature(secret: str, timestamp: int, payload: Payload) -> str:
    msg = f"{timestamp}.".encode() + _as_bytes(payload)
    return hmac.new(secret.encode("utf-8"), msg, hashlib.sha256).hexdigest()


def secure_compare(a: str, b: str) -> bool:
    a_bytes = a.encode("utf-8")
    b_bytes = b.encode("utf-8")
    # signature length is fixed by the algorithm, so a length mismatch leaks nothing
    if len(a_bytes) != len(b_bytes):
        return False
    # constant-time compare
    return hmac.compare_digest(a_bytes, b_bytes)


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def decode_event(payload: Payload) -> Union[Dict[str, Any], VerificationFailure]:
    try:
        text = payload if isinstance(payload, str) else bytes(payload).decode("utf-8")
        event = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return VerificationFailure(FailureKind.INVALID_PAYLOAD, "Invalid JSON in webhook body")
    if not isinstance(event, dict):
        return VerificationFailure(FailureKind.INVALID_PAYLOAD, "Webhook body is not a JSON object")
    return event


def verify(
    payload: Payload,
    header: Optional[str],
    secret: Optional[str],
    tolerance: int = DEFAULT_TOLERANCE,
    *,
    clock: Optional[Callable[[], float]] = None,
) -> VerificationResult:
    """
    Verify a webhook delivery and decode its event.

    - payload: raw request body, exactly as received (never re-serialized JSON).
    - header: value of the X-Billing-Signature header, as transmitted.
    - secret: webhook endpoint secret (whsec_...).
    - tolerance: maximum distance in seconds between the event timestamp and now, either direction.
    - clock: zero-argument callable returning seconds since epoch; defaults to time.time.

    Checks run in order and the first failure is returned; the body is decoded only after the
    signature matches.
    """
    if not header:
        return VerificationResult(
            failure=VerificationFailure(FailureKind.MISSING_SIGNATURE_HEADER, "Missing signature header")
        )
    if not secret:
        return VerificationResult(failure=VerificationFailure(FailureKind.MISSING_SECRET, "Missing webhook secret"))

    parsed = parse_header(header)
    if isinstance(parsed, VerificationFailure):
        return VerificationResult(failure=parsed)

    now = int((clock or time.time)())
    stale = check_timestamp(parsed.timestamp, tolerance, now)
    if stale:
        return VerificationResult(failure=stale)

    expected = compute_signature(secret, parsed.timestamp, payload)
    if not secure_compare(expected, parsed.signature):
        return VerificationResult(failure=VerificationFailure(FailureKind.SIGNATURE_MISMATCH, "Signature mismatch"))

    event = decode_event(payload)
    if isinstance(event, VerificationFailure):
        return VerificationResult(failure=event)
    return VerificationResult(event=event)
