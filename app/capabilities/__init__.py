# app/capabilities/__init__.py
"""
Priced capabilities offered by the gateway.

build_registry() assembles the production catalogue; tests build their own
CapabilityRegistry with whatever descriptors they need.
"""
from app.capabilities.registry import CapabilityRegistry


def build_registry() -> CapabilityRegistry:
    from app.capabilities import contract_scan, tx_simulate, wallet_approvals

    registry = CapabilityRegistry()
    registry.register(contract_scan.DESCRIPTOR)
    registry.register(wallet_approvals.DESCRIPTOR)
    registry.register(tx_simulate.DESCRIPTOR)
    return registry


__all__ = ["CapabilityRegistry", "build_registry"]
