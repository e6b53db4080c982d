# tests/conftest.py
"""
Shared fixtures: deterministic settings and payment proof construction.
"""
import json

import pytest
from unittest.mock import patch
from x402.encoding import safe_base64_encode

from app.core.config import settings

PAY_TO = "0x" + "b" * 40
PAYER = "0x" + "c" * 40
TX_HASH = "0x" + "d" * 64


@pytest.fixture(autouse=True)
def gateway_settings():
    """Pin the settings every module shares to a known development profile."""
    with patch.multiple(
        settings,
        ENVIRONMENT="development",
        NETWORK_MODE="testnet",
        ALLOW_MAINNET=False,
        SKIP_X402=False,
        X402_PAY_TO_ADDRESS=PAY_TO,
        X402_BINDING_SECRET="test-binding-secret",
        X402_AUDIT_LOG_PATH=None,
        ANTHROPIC_API_KEY=None,
    ):
        yield settings


def build_payment_header(accepts, **authorization_overrides):
    """Encode an X-PAYMENT header that answers the given challenge terms."""
    authorization = {
        "from": PAYER,
        "to": accepts["payTo"],
        "value": accepts["maxAmountRequired"],
        "validAfter": "0",
        "validBefore": "9999999999",
        "nonce": accepts["extra"]["nonce"],
    }
    authorization.update(authorization_overrides)
    network = authorization.pop("network", accepts["network"])
    envelope = {
        "x402Version": 1,
        "scheme": "exact",
        "network": network,
        "payload": {
            "signature": "0x" + "ab" * 65,
            "authorization": authorization,
        },
    }
    return safe_base64_encode(json.dumps(envelope))


@pytest.fixture
def payment_header():
    return build_payment_header
