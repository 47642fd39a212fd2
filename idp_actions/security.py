"""Webhook signature helpers.

The platform signs ``"<t>.<raw body>"`` with HMAC-SHA256 and sends
``t=<unix timestamp>,v1=<hex digest>`` in the signature header. The digest is
computed over the exact request bytes, so callers must pass the body as
received, before any JSON parsing.

No freshness window is applied to ``t``; a captured body and header pair stays
valid for as long as the secret does.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass

from .errors import InvalidSignature, MalformedHeader


@dataclass(frozen=True)
class SignatureHeader:
    timestamp: str
    signatures: tuple[str, ...]


def parse_signature_header(header: str | None) -> SignatureHeader:
    if not header:
        raise MalformedHeader("Missing signature header")

    timestamp: str | None = None
    signatures: list[str] = []
    for element in header.split(","):
        key, sep, value = element.partition("=")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if key == "t" and value:
            timestamp = value
        elif key == "v1" and value:
            signatures.append(value)

    if timestamp is None or not signatures:
        raise MalformedHeader("Signature header must contain t= and v1= elements")
    return SignatureHeader(timestamp=timestamp, signatures=tuple(signatures))


def compute_signature(payload: bytes, timestamp: str, secret: bytes) -> str:
    signed_payload = timestamp.encode("utf-8") + b"." + payload
    return hmac.new(secret, signed_payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature_header: str | None, secret: bytes) -> None:
    """Validate a webhook payload against its signature header.

    Raises ``MalformedHeader`` before any digest is computed when the header
    cannot be parsed, and ``InvalidSignature`` when no ``v1`` value matches.
    """
    header = parse_signature_header(signature_header)
    expected = compute_signature(payload, header.timestamp, secret).encode("ascii")

    matched = False
    for candidate in header.signatures:
        # compare_digest runs in time independent of where the inputs differ
        # and returns False on a length mismatch.
        if hmac.compare_digest(expected, candidate.encode("utf-8")):
            matched = True
    if not matched:
        raise InvalidSignature("Signature mismatch")


def build_signature_header(payload: bytes, secret: bytes, timestamp: int | None = None) -> str:
    """Produce a header value the way the platform signs outgoing calls."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return f"t={ts},v1={compute_signature(payload, ts, secret)}"
