"""FastAPI app serving identity platform action webhooks.

Run with ``uvicorn idp_actions.main:create_app --factory``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TypeVar

import httpx
import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Request, status
from pydantic import BaseModel, ValidationError

from .client import IdentityPlatformClient
from .codec import claims_from_metadata, encode_entries, with_prefix
from .config import Settings, SigningKeyRegistry, get_settings
from .errors import MissingRequiredField, RemoteError, SignatureVerificationError, UnknownEndpoint
from .logging_config import configure_logging
from .schemas import (
    ClaimsOut,
    FederatedClaimsPayload,
    MetadataOut,
    ObservedResponsePayload,
    PreAccessTokenPayload,
    SessionCleanupOut,
    UniqueSessionPayload,
)
from .security import verify_signature
from .sessions import enforce_unique_session

PayloadT = TypeVar("PayloadT", bound=BaseModel)

logger = structlog.get_logger(__name__)
router = APIRouter()


def create_app(
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = IdentityPlatformClient(settings, transport=transport)
        app.state.platform = client
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(
        title="Identity Platform Actions",
        description="Signed webhook targets for login, token and password flows.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.signing_keys = SigningKeyRegistry.from_settings(settings)
    app.include_router(router)
    return app


def platform_client(request: Request) -> IdentityPlatformClient:
    return request.app.state.platform


async def read_verified_payload(request: Request, endpoint: str, model: type[PayloadT]) -> PayloadT:
    """Authenticate the raw body, then parse it into the endpoint's payload model.

    The body is read in full and verified before any parsing happens.
    """
    raw_payload = await request.body()
    settings: Settings = request.app.state.settings
    registry: SigningKeyRegistry = request.app.state.signing_keys

    try:
        secret = registry.secret_for(endpoint)
    except UnknownEndpoint as exc:
        logger.error("signing_secret_missing", endpoint=endpoint)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Endpoint is not configured.",
        ) from exc

    try:
        verify_signature(raw_payload, request.headers.get(settings.signature_header), secret)
    except SignatureVerificationError as exc:
        logger.warning("webhook_rejected", endpoint=endpoint, reason=type(exc).__name__)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook signature.",
        ) from None

    try:
        payload = parse_payload(raw_payload, model)
    except MissingRequiredField as exc:
        logger.warning("webhook_payload_invalid", endpoint=endpoint, fields=exc.fields)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None

    logger.debug("webhook_received", endpoint=endpoint, payload=payload.model_dump(mode="json"))
    return payload


def parse_payload(raw_payload: bytes, model: type[PayloadT]) -> PayloadT:
    try:
        return model.model_validate_json(raw_payload)
    except ValidationError as exc:
        fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
        raise MissingRequiredField(fields) from None


def remote_failure(exc: RemoteError) -> HTTPException:
    logger.error("remote_call_failed", operation=exc.operation, status=exc.status, body=exc.body)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error",
    )


@router.get("/health")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/action/uniqueSession", response_model=SessionCleanupOut)
async def unique_session(request: Request) -> SessionCleanupOut:
    payload = await read_verified_payload(request, "uniqueSession", UniqueSessionPayload)
    try:
        result = await enforce_unique_session(platform_client(request), payload.user_id)
    except RemoteError as exc:
        raise remote_failure(exc) from None
    return SessionCleanupOut(kept=result.kept, deleted=result.deleted + result.already_gone)


@router.post("/action/preAccessToken", response_model=ClaimsOut)
async def pre_access_token(request: Request) -> ClaimsOut:
    payload = await read_verified_payload(request, "preAccessToken", PreAccessTokenPayload)
    prefix = request.app.state.settings.claim_prefix
    claims = claims_from_metadata(payload.user_metadata or [], prefix)
    logger.info("claims_appended", user_id=payload.user.id, claim_keys=[claim.key for claim in claims])
    return ClaimsOut(append_claims=claims)


@router.post("/action/storeFederatedClaims", response_model=MetadataOut)
async def store_federated_claims(request: Request) -> MetadataOut:
    payload = await read_verified_payload(request, "storeFederatedClaims", FederatedClaimsPayload)
    prefix = request.app.state.settings.claim_prefix
    entries = encode_entries(with_prefix(payload.claims, prefix))
    if entries:
        try:
            await platform_client(request).set_user_metadata(payload.user_id, entries)
        except RemoteError as exc:
            raise remote_failure(exc) from None
    return MetadataOut(set_user_metadata=entries)


@router.post("/action/postPasswordReset")
async def post_password_reset(request: Request) -> dict:
    payload = await read_verified_payload(request, "postPasswordReset", ObservedResponsePayload)
    logger.info("password_reset_observed", response=payload.response)
    return payload.response

