# app/x402/__init__.py
"""
x402 Payment Protocol Integration Module.

Every capability call must be paid with an x402 "exact" USDC payment before
the capability runs.

Key components:
- middleware: payment gate (challenge, verify, settle, pass through)
- binding: nonces that tie a payment to one capability and price
- payment_log: bounded record of payment attempts
- ratelimit: per-IP rate limiting by route class

Wire models, base64 helpers and the facilitator client come from the x402
SDK. Configuration is loaded from environment variables via app.core.config.
"""
