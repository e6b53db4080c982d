# app/api/models/capability.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from app.capabilities.models import ResultWarning


class CapabilitySummary(BaseModel):
    """
    Catalogue entry for one capability.
    """
    slug: str
    name: str
    description: str
    price: str
    limitations: List[str]


class CapabilityListResponse(BaseModel):
    success: bool = True
    capabilities: List[CapabilitySummary]


class CapabilityExecutionResponse(BaseModel):
    """
    Response model for a paid capability call.

    `result` is the raw capability data; `response` is the rendered text.
    """
    success: bool
    capability: str
    cost: str
    result: Optional[Dict[str, Any]]
    response: str
    renderedBy: str
    warnings: List[ResultWarning]
    limitations: List[str]
    processingTimeMs: int


class ServiceStatus(BaseModel):
    rpc: bool
    formatter: bool
    formatterStatus: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    services: ServiceStatus


class PaymentNetworkInfo(BaseModel):
    network: str
    asset: str
    symbol: str
    decimals: int
    facilitatorUrl: str
    payTo: Optional[str]
    bypass: bool


class NetworkResponse(BaseModel):
    mode: str
    chainId: int
    rpcUrl: str
    explorerUrl: str
    nativeToken: Dict[str, Any]
    payment: PaymentNetworkInfo


class PaymentAttemptModel(BaseModel):
    timestamp: str
    attemptId: str
    capability: str
    price: str
    network: str
    status: str
    payer: Optional[str] = None
    reference: Optional[str] = None
    reason: Optional[str] = None


class PaymentLogResponse(BaseModel):
    success: bool = True
    count: int
    payments: List[PaymentAttemptModel]
