"""Error taxonomy for webhook handling and remote calls."""

from __future__ import annotations

from collections.abc import Sequence


class WebhookError(Exception):
    """Base class for every error raised by this package."""


class SignatureVerificationError(WebhookError):
    """The caller could not be authenticated."""


class MalformedHeader(SignatureVerificationError):
    """Signature header is absent or lacks the ``t``/``v1`` elements."""


class InvalidSignature(SignatureVerificationError):
    """No supplied digest matches the recomputed one."""


class CodecError(WebhookError):
    """A metadata value is not valid transport-encoded text."""


class MissingRequiredField(WebhookError):
    def __init__(self, fields: Sequence[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Missing or invalid field(s): {', '.join(self.fields) or 'payload'}")


class UnknownEndpoint(WebhookError):
    """No signing secret is registered for the endpoint."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"No signing secret registered for endpoint {endpoint!r}")


class RemoteError(WebhookError):
    """Identity platform call failed at the transport level or returned non-2xx."""

    def __init__(self, status: int | None, body: str, *, operation: str = "request") -> None:
        self.status = status
        self.body = body
        self.operation = operation
        super().__init__(f"{operation} failed: status={status}, body={body[:200]!r}")
