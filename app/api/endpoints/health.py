# app/api/endpoints/health.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.api.models.capability import HealthResponse, ServiceStatus
from app.core.version import VERSION
from app.formatting.llm import check_formatter_connection
from app.services.chain_rpc import is_rpc_reachable

logger = logging.getLogger(__name__)

router = APIRouter()

FORMATTER_UP = ("ok", "configured")


@router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """
    Dependency health.

    The chain RPC node is critical: without it no capability can answer, so
    its outage turns the status code to 503. The formatter is optional and
    only reported.
    """
    rpc_ok = await run_in_threadpool(is_rpc_reachable)
    formatter_status = await check_formatter_connection(request.app.state.formatter)

    payload = HealthResponse(
        status="healthy" if rpc_ok else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
        services=ServiceStatus(
            rpc=rpc_ok,
            formatter=formatter_status["status"] in FORMATTER_UP,
            formatterStatus=formatter_status["status"],
        ),
    )
    if not rpc_ok:
        logger.warning("Health check: RPC node unreachable")
    return JSONResponse(status_code=200 if rpc_ok else 503, content=payload.model_dump())
