# tests/test_x402_facilitator.py
"""
Tests for the gate's use of the x402 SDK: wire models, the facilitator
client it builds, and how facilitator answers reach the gate.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

from x402.facilitator import FacilitatorClient
from x402.types import PaymentPayload, PaymentRequirements, SettleResponse, VerifyResponse

from app.capabilities import build_registry
from app.core.config import settings
from app.x402.middleware import X402Middleware, create_402_response, decode_payment_header
from app.x402.payment_log import PaymentLog

from conftest import PAYER, build_payment_header

PAY_TO = "0x" + "b" * 40


def make_requirements():
    return PaymentRequirements(
        scheme="exact",
        network="base-sepolia",
        max_amount_required="10000",
        resource="/capability/contract-scan",
        description="Contract scan",
        mime_type="application/json",
        pay_to=PAY_TO,
        max_timeout_seconds=300,
        asset="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
        extra={"name": "USDC", "version": "2"},
    )


def make_payment():
    descriptor = build_registry().get("contract-scan")
    accepts = json.loads(create_402_response(descriptor, "x").body)["accepts"]
    return decode_payment_header(build_payment_header(accepts))


def http_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


class TestWireModels:
    def test_header_decodes_to_sdk_payload(self):
        payment = make_payment()

        assert isinstance(payment, PaymentPayload)
        assert payment.x402_version == 1
        assert payment.payload.authorization.from_ == PAYER

        dumped = payment.model_dump(by_alias=True)
        assert dumped["x402Version"] == 1
        assert dumped["payload"]["authorization"]["from"] == PAYER
        assert dumped["payload"]["authorization"]["validBefore"] == "9999999999"

    def test_requirements_aliases(self):
        dumped = make_requirements().model_dump(by_alias=True, exclude_none=True)
        assert dumped["maxAmountRequired"] == "10000"
        assert dumped["payTo"] == PAY_TO
        assert "outputSchema" not in dumped


class TestGateFacilitatorClient:
    """The gate builds an SDK client against the configured facilitator."""

    def test_lazy_client_uses_configured_url(self):
        middleware = X402Middleware(MagicMock(), build_registry(), PaymentLog())

        with patch.object(settings, "X402_FACILITATOR_URL", "https://facilitator.example/"):
            client = middleware.facilitator_client

        assert isinstance(client, FacilitatorClient)
        assert client.config["url"] == "https://facilitator.example"
        assert middleware.facilitator_client is client

    def test_injected_client_is_kept(self):
        injected = MagicMock()
        middleware = X402Middleware(MagicMock(), build_registry(), PaymentLog(), facilitator_client=injected)
        assert middleware.facilitator_client is injected


class TestFacilitatorCalls:
    """Verify and settle go through the SDK client and are awaited by the gate."""

    def setup_method(self):
        self.middleware = X402Middleware(
            MagicMock(),
            build_registry(),
            PaymentLog(),
            facilitator_client=FacilitatorClient({"url": "https://facilitator.example"}),
        )

    def _call(self, method):
        return asyncio.run(self.middleware._call_facilitator(method, make_payment(), make_requirements()))

    @patch("httpx.AsyncClient.post", new_callable=AsyncMock)
    def test_verify(self, mock_post):
        mock_post.return_value = http_response({"isValid": True, "payer": PAYER})

        result = self._call("verify")

        assert isinstance(result, VerifyResponse)
        assert result.is_valid is True
        assert result.payer == PAYER

        url = mock_post.call_args[0][0]
        body = mock_post.call_args.kwargs["json"]
        assert url == "https://facilitator.example/verify"
        assert body["x402Version"] == 1
        assert body["paymentPayload"]["payload"]["authorization"]["from"] == PAYER
        assert body["paymentRequirements"]["maxAmountRequired"] == "10000"

    @patch("httpx.AsyncClient.post", new_callable=AsyncMock)
    def test_settle_failure_reason(self, mock_post):
        mock_post.return_value = http_response({"success": False, "errorReason": "insufficient_funds"})

        result = self._call("settle")

        assert isinstance(result, SettleResponse)
        assert result.success is False
        assert result.error_reason == "insufficient_funds"
        assert mock_post.call_args[0][0] == "https://facilitator.example/settle"
