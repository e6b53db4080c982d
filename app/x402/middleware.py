# app/x402/middleware.py
"""
Payment gate for capability calls.

Every POST /capability/{slug} for a registered slug must carry a settled x402
payment before the request reaches the router:

1. No X-PAYMENT header: answer 402 with a challenge priced from the
   registry descriptor.
2. X-PAYMENT present: decode it and check it was issued for this
   capability at its current price (see app.x402.binding).
3. Verify with the facilitator, then settle. Any failure answers 402.
4. Only a settled payment passes through; the settlement is returned in
   the X-PAYMENT-RESPONSE header.

The gate keeps no state between requests. Each transition is appended to the
PaymentLog.
"""
import asyncio
import binascii
import json
import logging
import re
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from x402.encoding import safe_base64_decode, safe_base64_encode
from x402.facilitator import FacilitatorClient
from x402.types import PaymentPayload, PaymentRequirements, SettleResponse

from app.capabilities.models import CapabilityDescriptor
from app.capabilities.registry import CapabilityRegistry
from app.core.config import settings
from app.core.errors import PaymentError
from app.core.network import get_payment_asset, get_payment_network
from app.x402.binding import get_binding_secret, issue_nonce, nonce_matches
from app.x402.payment_log import PaymentLog, PaymentStatus, generate_attempt_id
from app.x402.ratelimit import get_client_ip

logger = logging.getLogger(__name__)

X_PAYMENT_HEADER = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

PLACEHOLDER_PAY_TO = "0x0000000000000000000000000000000000000000"

X402_VERSION = 1

CAPABILITY_PATH = re.compile(r"^/capability/([^/]+)/?$")


def capability_slug(method: str, path: str) -> Optional[str]:
    """Slug of a gated capability call, or None for any other route."""
    if method != "POST":
        return None
    match = CAPABILITY_PATH.match(path)
    return match.group(1) if match else None


def get_pay_to() -> str:
    if not settings.X402_PAY_TO_ADDRESS:
        logger.warning("X402_PAY_TO_ADDRESS not configured, using placeholder address")
        return PLACEHOLDER_PAY_TO
    return settings.X402_PAY_TO_ADDRESS


def create_payment_requirements(
    descriptor: CapabilityDescriptor,
    nonce: Optional[str] = None,
) -> PaymentRequirements:
    """
    Payment terms for one capability call.

    Built per request from the registry descriptor, so a price change takes
    effect on the next challenge.
    """
    asset = get_payment_asset(settings)
    extra: Dict[str, Any] = dict(asset["eip712"])
    if nonce:
        extra["nonce"] = nonce

    return PaymentRequirements(
        scheme="exact",
        network=get_payment_network(settings),
        max_amount_required=str(descriptor.price_atomic),
        resource=descriptor.resource,
        description=descriptor.description,
        mime_type="application/json",
        pay_to=get_pay_to(),
        max_timeout_seconds=settings.X402_MAX_TIMEOUT_SECONDS,
        asset=asset["address"],
        extra=extra,
    )


def issue_challenge_nonce(requirements: PaymentRequirements) -> str:
    return issue_nonce(
        requirements.resource,
        requirements.max_amount_required,
        requirements.pay_to,
        requirements.network,
        requirements.asset,
        get_binding_secret(settings),
    )


def create_402_response(descriptor: CapabilityDescriptor, error_message: str) -> JSONResponse:
    """402 with a fresh challenge. Every 402, including rejections, carries one."""
    requirements = create_payment_requirements(descriptor)
    requirements.extra["nonce"] = issue_challenge_nonce(requirements)

    accepts = requirements.model_dump(by_alias=True, exclude_none=True)
    accepts["price"] = descriptor.price_label

    return JSONResponse(
        status_code=402,
        content={
            "x402Version": X402_VERSION,
            "error": error_message,
            "accepts": accepts,
        },
    )


def decode_payment_header(header_value: str) -> Optional[PaymentPayload]:
    """Decode the base64 JSON X-PAYMENT header. None if malformed."""
    try:
        decoded = safe_base64_decode(header_value)
        return PaymentPayload.model_validate(json.loads(decoded))
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.warning(f"x402: X-PAYMENT header is not valid base64: {e}")
    except json.JSONDecodeError as e:
        logger.warning(f"x402: Failed to parse X-PAYMENT header JSON: {e}")
    except ValidationError as e:
        logger.warning(f"x402: X-PAYMENT header has unexpected shape: {e.error_count()} errors")
    return None


def check_binding(payment: PaymentPayload, requirements: PaymentRequirements) -> None:
    """
    Check the proof was issued for these exact payment terms.

    Raises:
        PaymentError: With the mismatching term as reason
    """
    authorization = payment.payload.authorization

    if payment.scheme != requirements.scheme:
        raise PaymentError(f"unsupported scheme {payment.scheme}", "binding")
    if payment.network != requirements.network:
        raise PaymentError(f"network {payment.network} != {requirements.network}", "binding")
    if authorization.value != requirements.max_amount_required:
        raise PaymentError(
            f"amount {authorization.value} != {requirements.max_amount_required}", "binding"
        )
    if authorization.to.lower() != requirements.pay_to.lower():
        raise PaymentError("recipient does not match payTo", "binding")

    if not nonce_matches(
        authorization.nonce,
        requirements.resource,
        requirements.max_amount_required,
        requirements.pay_to,
        requirements.network,
        requirements.asset,
        get_binding_secret(settings),
    ):
        raise PaymentError("nonce was not issued for this resource and price", "binding")


def encode_payment_response(settle_response: SettleResponse) -> str:
    """Base64 JSON settlement summary for the X-PAYMENT-RESPONSE header."""
    body = {
        "success": bool(settle_response.success),
        "transaction": settle_response.transaction,
        "network": settle_response.network,
        "payer": settle_response.payer,
    }
    return safe_base64_encode(json.dumps(body).encode("utf-8"))


class X402Middleware(BaseHTTPMiddleware):
    """
    x402 payment gate for FastAPI.

    With SKIP_X402=true outside production, requests pass through and are
    logged as settled without a reference. In production SKIP_X402 is
    refused with 503; startup validation refuses it earlier.
    """

    def __init__(
        self,
        app,
        registry: CapabilityRegistry,
        payment_log: PaymentLog,
        facilitator_client: Optional[Any] = None,
    ):
        super().__init__(app)
        self.registry = registry
        self.payment_log = payment_log
        self._facilitator_client = facilitator_client

    @property
    def facilitator_client(self) -> FacilitatorClient:
        """Lazy initialization of facilitator client."""
        if self._facilitator_client is None:
            self._facilitator_client = FacilitatorClient({"url": settings.X402_FACILITATOR_URL})
        return self._facilitator_client

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any]
    ) -> Response:
        slug = capability_slug(request.method, request.url.path)
        if slug is None:
            return await call_next(request)

        descriptor = self.registry.get(slug)
        if descriptor is None:
            # The router answers 404 CAPABILITY_NOT_FOUND
            return await call_next(request)

        attempt_id = generate_attempt_id()
        network = get_payment_network(settings)
        client_ip = get_client_ip(request)
        logger.info(f"x402: [{attempt_id}] {slug} requested by {client_ip} ({descriptor.price_label})")

        def record(status: PaymentStatus, **kwargs):
            return self.payment_log.record(
                capability=slug,
                price=descriptor.price_label,
                network=network,
                status=status,
                attempt_id=attempt_id,
                **kwargs,
            )

        if settings.SKIP_X402:
            if settings.is_production:
                logger.error("x402: SKIP_X402 is set in production, refusing request")
                record(PaymentStatus.FAILED, reason="bypass refused in production")
                return JSONResponse(
                    status_code=503,
                    content={
                        "success": False,
                        "error": "SERVICE_UNAVAILABLE",
                        "message": "Payments are temporarily unavailable.",
                        "recoverable": True,
                    },
                )
            logger.warning(f"x402: [{attempt_id}] Bypass mode, payment not enforced for {slug}")
            record(PaymentStatus.SETTLED, reason="bypass")
            request.state.payment = {"bypass": True, "attemptId": attempt_id}
            return await call_next(request)

        payment_header = request.headers.get(X_PAYMENT_HEADER)
        if not payment_header:
            logger.info(f"x402: [{attempt_id}] No X-PAYMENT header, returning 402 for {descriptor.price_label}")
            record(PaymentStatus.PENDING)
            return create_402_response(descriptor, "X-PAYMENT header is required")

        def reject(reason: str, message: str, payer: Optional[str] = None) -> JSONResponse:
            logger.warning(f"x402: [{attempt_id}] Payment rejected for {slug}: {reason}")
            record(PaymentStatus.FAILED, payer=payer, reason=reason)
            return create_402_response(descriptor, message)

        payment = decode_payment_header(payment_header)
        if payment is None:
            return reject("undecodable X-PAYMENT header", "Invalid X-PAYMENT header format")

        authorization = payment.payload.authorization
        requirements = create_payment_requirements(descriptor, nonce=authorization.nonce)

        try:
            check_binding(payment, requirements)
        except PaymentError as e:
            return reject(e.reason, "Payment does not match this capability or price", payer=authorization.from_)

        try:
            verify_response = await self._call_facilitator("verify", payment, requirements)
        except Exception as e:
            logger.error(f"x402: [{attempt_id}] Facilitator verification failed: {e}")
            return reject(f"verify error: {type(e).__name__}", "Payment verification failed", payer=authorization.from_)

        if not verify_response.is_valid:
            return reject(
                f"invalid: {verify_response.invalid_reason or 'unknown reason'}",
                "Payment verification failed",
                payer=authorization.from_,
            )

        payer = verify_response.payer or authorization.from_
        logger.info(f"x402: [{attempt_id}] Payment verified for payer {payer}")
        record(PaymentStatus.VERIFIED, payer=payer)

        try:
            settle_response = await self._call_facilitator("settle", payment, requirements)
        except Exception as e:
            logger.error(f"x402: [{attempt_id}] Facilitator settlement failed: {e}")
            return reject(f"settle error: {type(e).__name__}", "Payment settlement failed", payer=payer)

        if not settle_response.success or not settle_response.transaction:
            return reject(
                f"not settled: {settle_response.error_reason or 'no transaction'}",
                "Payment settlement failed",
                payer=payer,
            )

        logger.info(f"x402: [{attempt_id}] Payment settled: {settle_response.transaction}")
        record(PaymentStatus.SETTLED, payer=payer, reference=settle_response.transaction)
        request.state.payment = {
            "attemptId": attempt_id,
            "payer": payer,
            "transaction": settle_response.transaction,
            "network": network,
        }

        response = await call_next(request)
        response.headers[X_PAYMENT_RESPONSE_HEADER] = encode_payment_response(settle_response)
        return response

    async def _call_facilitator(self, method: str, payment: PaymentPayload, requirements: PaymentRequirements):
        call = getattr(self.facilitator_client, method)
        return await asyncio.wait_for(
            call(payment=payment, payment_requirements=requirements),
            timeout=settings.X402_FACILITATOR_TIMEOUT_SECONDS,
        )
