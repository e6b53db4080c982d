# app/orchestrator.py
"""
Runs a paid capability request end to end: lookup, input validation,
execution and rendering.

The orchestrator is only reached after the payment gate has settled the
payment, so every call here corresponds to exactly one paid attempt.
"""
import asyncio
import logging
import time
from typing import Any, Literal, Optional

from pydantic import BaseModel, ValidationError
from starlette.concurrency import run_in_threadpool

from app.capabilities.models import CapabilityResult
from app.capabilities.registry import CapabilityRegistry
from app.core.errors import (
    CapabilityError,
    CapabilityNotFoundError,
    InternalError,
    InvalidInputError,
)
from app.formatting.fallback import fallback_render
from app.formatting.llm import ResultFormatter

logger = logging.getLogger(__name__)


class OrchestratorResponse(BaseModel):
    success: bool
    capability: str
    cost: str
    result: CapabilityResult
    response: str
    rendered_by: Literal["formatter", "fallback"]
    processing_time_ms: int


def first_error_message(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return "Invalid input"
    return errors[0].get("msg") or "Invalid input"


class Orchestrator:
    def __init__(
        self,
        registry: CapabilityRegistry,
        formatter: Optional[ResultFormatter] = None,
        formatter_timeout: float = 8.0,
    ):
        self.registry = registry
        self.formatter = formatter
        self.formatter_timeout = formatter_timeout

    async def execute(self, slug: str, raw_input: Any) -> OrchestratorResponse:
        """
        Execute a capability and render its result.

        Raises:
            CapabilityNotFoundError: If slug is not registered
            InvalidInputError: If raw_input fails the capability's input model
            CapabilityError: Domain errors raised by the executor
            InternalError: For any other executor failure
        """
        started = time.monotonic()

        descriptor = self.registry.get(slug)
        if descriptor is None:
            raise CapabilityNotFoundError(slug)

        try:
            params = descriptor.input_model.model_validate(raw_input)
        except ValidationError as e:
            message = first_error_message(e)
            logger.info(f"Invalid input for {slug}: {message}")
            raise InvalidInputError(message)

        logger.info(f"Executing capability: {slug}")
        try:
            result = await run_in_threadpool(descriptor.executor, params)
        except CapabilityError:
            raise
        except Exception:
            logger.exception(f"Capability {slug} failed")
            raise InternalError()

        text, rendered_by = await self._render(slug, result)

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Capability {slug} completed in {elapsed_ms}ms (rendered by {rendered_by})")

        return OrchestratorResponse(
            success=result.success,
            capability=slug,
            cost=descriptor.price_label,
            result=result,
            response=text,
            rendered_by=rendered_by,
            processing_time_ms=elapsed_ms,
        )

    async def _render(self, slug: str, result: CapabilityResult):
        if self.formatter is not None:
            try:
                text = await asyncio.wait_for(
                    self.formatter.render(slug, result),
                    timeout=self.formatter_timeout,
                )
                if text:
                    return text, "formatter"
                logger.warning(f"Formatter returned no text for {slug}, using fallback")
            except asyncio.TimeoutError:
                logger.warning(f"Formatter timed out for {slug}, using fallback")
            except Exception as e:
                logger.warning(f"Formatter failed for {slug}, using fallback: {e}")
        return fallback_render(slug, result), "fallback"
