# app/x402/binding.py
"""
Binding nonces tie a payment authorization to one capability at one price.

The gate keeps no state between the 402 challenge and the paid retry. The
challenge therefore carries a nonce the gateway can re-derive: 16 random
bytes followed by a truncated HMAC over the salt and the payment terms. The
client uses it as the EIP-3009 authorization nonce, so the facilitator-
verified wallet signature covers it. A proof issued for one resource or
price never re-derives under another.
"""
import hashlib
import hmac
import logging
import secrets
from typing import Optional

from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

SALT_BYTES = 16
MAC_BYTES = 16

# Used when X402_BINDING_SECRET is unset outside production; challenges do
# not survive a restart in that case.
_process_secret = secrets.token_bytes(32)


def get_binding_secret(config: Optional[Settings] = None) -> bytes:
    config = config or settings
    if config.X402_BINDING_SECRET:
        return config.X402_BINDING_SECRET.encode("utf-8")
    return _process_secret


def _terms(resource: str, amount: str, pay_to: str, network: str, asset: str) -> bytes:
    return "|".join([resource, amount, pay_to.lower(), network, asset.lower()]).encode("utf-8")


def _mac(secret: bytes, salt: bytes, terms: bytes) -> bytes:
    return hmac.new(secret, salt + terms, hashlib.sha256).digest()[:MAC_BYTES]


def issue_nonce(
    resource: str,
    amount: str,
    pay_to: str,
    network: str,
    asset: str,
    secret: bytes,
) -> str:
    """A fresh 32-byte hex nonce bound to the given payment terms."""
    salt = secrets.token_bytes(SALT_BYTES)
    return "0x" + (salt + _mac(secret, salt, _terms(resource, amount, pay_to, network, asset))).hex()


def nonce_matches(
    nonce: Optional[str],
    resource: str,
    amount: str,
    pay_to: str,
    network: str,
    asset: str,
    secret: bytes,
) -> bool:
    """True if nonce was issued for exactly these payment terms."""
    if not nonce or not isinstance(nonce, str):
        return False
    try:
        raw = bytes.fromhex(nonce[2:] if nonce.startswith("0x") else nonce)
    except ValueError:
        return False
    if len(raw) != SALT_BYTES + MAC_BYTES:
        return False
    salt, mac = raw[:SALT_BYTES], raw[SALT_BYTES:]
    expected = _mac(secret, salt, _terms(resource, amount, pay_to, network, asset))
    return hmac.compare_digest(mac, expected)
