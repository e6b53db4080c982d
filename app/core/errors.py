# app/core/errors.py
"""
Error taxonomy shared by the orchestrator, the capabilities and the HTTP layer.

CapabilityError and its subclasses carry everything the HTTP boundary needs:
a stable machine-readable code, a user-facing message, a recoverable flag and
the status code to answer with. FormattingError and PaymentError never reach
the boundary; they are recovered where they are raised.
"""
from typing import Any, Dict, Optional


class CapabilityError(Exception):
    """Base error for conditions the caller can act on."""

    status_code = 400

    def __init__(
        self,
        code: str,
        user_message: str,
        recoverable: bool = True,
        status_code: Optional[int] = None,
    ):
        super().__init__(f"{code}: {user_message}")
        self.code = code
        self.user_message = user_message
        self.recoverable = recoverable
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.code,
            "message": self.user_message,
            "recoverable": self.recoverable,
        }


class CapabilityNotFoundError(CapabilityError):
    status_code = 404

    def __init__(self, slug: str):
        super().__init__(
            "CAPABILITY_NOT_FOUND",
            f"Capability '{slug}' not found",
            recoverable=False,
        )
        self.slug = slug


class InvalidInputError(CapabilityError):
    def __init__(self, user_message: str):
        super().__init__("INVALID_INPUT", user_message, recoverable=True)


class InternalError(CapabilityError):
    status_code = 500

    def __init__(self):
        super().__init__(
            "INTERNAL_ERROR",
            "An unexpected error occurred. Please try again.",
            recoverable=False,
        )


class FormattingError(Exception):
    """The external formatter failed; callers fall back to templates."""


class PaymentError(Exception):
    """A payment proof could not be verified or settled."""

    def __init__(self, reason: str, stage: str):
        super().__init__(reason)
        self.reason = reason
        self.stage = stage
