# app/api/endpoints/capabilities.py
import json
import logging

from fastapi import APIRouter, Request

from app.api.models.capability import (
    CapabilityExecutionResponse,
    CapabilityListResponse,
)
from app.core.errors import InvalidInputError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=CapabilityListResponse)
async def list_capabilities(request: Request) -> CapabilityListResponse:
    """Catalogue of every registered capability with its price and limitations."""
    registry = request.app.state.registry
    return CapabilityListResponse(capabilities=registry.list_all())


@router.post("/{slug}", response_model=CapabilityExecutionResponse)
async def execute_capability(slug: str, request: Request) -> CapabilityExecutionResponse:
    """
    Run a capability. Reached only after the payment gate has settled the
    payment for this slug (or in bypass mode).

    Raises:
        CapabilityError: Translated to a JSON error body by the app's handlers
    """
    raw = await request.body()
    try:
        body = json.loads(raw) if raw.strip() else {}
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidInputError("Request body must be valid JSON")

    outcome = await request.app.state.orchestrator.execute(slug, body)
    result = outcome.result

    return CapabilityExecutionResponse(
        success=outcome.success,
        capability=outcome.capability,
        cost=outcome.cost,
        result=result.data,
        response=outcome.response,
        renderedBy=outcome.rendered_by,
        warnings=result.warnings,
        limitations=result.limitations,
        processingTimeMs=outcome.processing_time_ms,
    )
