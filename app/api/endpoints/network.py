# app/api/endpoints/network.py
from fastapi import APIRouter

from app.api.models.capability import NetworkResponse
from app.core.network import get_network_config

router = APIRouter()


@router.get("/network", response_model=NetworkResponse)
async def get_network() -> NetworkResponse:
    """Active network mode, analysed chain and payment settings."""
    return NetworkResponse(**get_network_config())
