# app/capabilities/registry.py
import logging
from typing import Any, Dict, List, Optional

from app.capabilities.models import CapabilityDescriptor

logger = logging.getLogger(__name__)


class CapabilityRegistry:
    """
    Capabilities available to the gateway, keyed by slug.

    Built once at startup and handed to the payment gate, the orchestrator
    and the routers. Registration happens before traffic is accepted, so
    lookups need no locking.
    """

    def __init__(self):
        self._capabilities: Dict[str, CapabilityDescriptor] = {}

    def register(self, descriptor: CapabilityDescriptor) -> None:
        """Add a capability. Re-registering a slug replaces the old descriptor."""
        if descriptor.slug in self._capabilities:
            logger.warning(f"Overwriting capability: {descriptor.slug}")
        self._capabilities[descriptor.slug] = descriptor
        logger.info(f"Registered capability: {descriptor.slug} ({descriptor.price_label})")

    def get(self, slug: str) -> Optional[CapabilityDescriptor]:
        return self._capabilities.get(slug)

    def has(self, slug: str) -> bool:
        return slug in self._capabilities

    def list_all(self) -> List[Dict[str, Any]]:
        """Catalogue metadata for every capability, in registration order."""
        return [descriptor.metadata() for descriptor in self._capabilities.values()]

    def __contains__(self, slug: str) -> bool:
        return self.has(slug)

    def __len__(self) -> int:
        return len(self._capabilities)
