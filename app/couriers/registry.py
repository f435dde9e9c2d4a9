"""
Courier adapter registry, keyed by Courier.code.
"""
from typing import Dict, Iterable, Optional
import logging

import requests

from app.couriers.base import CourierAdapter
from app.couriers.internal import InternalCourier
from app.couriers.pathao import PathaoCourier
from app.couriers.steadfast import SteadfastCourier
from app.exceptions import CourierNotFound
from app.models.courier import Courier, CourierType

logger = logging.getLogger(__name__)

_registry_instance = None


class CourierRegistry:
    def __init__(self, adapters: Iterable[CourierAdapter] = ()):
        self._adapters: Dict[str, CourierAdapter] = {}
        self._internal: CourierAdapter = InternalCourier()
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: CourierAdapter) -> None:
        self._adapters[adapter.code] = adapter
        if adapter.code == InternalCourier.code:
            self._internal = adapter

    def get(self, code: str) -> Optional[CourierAdapter]:
        return self._adapters.get(code)

    def for_courier(self, courier: Courier) -> CourierAdapter:
        """Resolve the adapter for a courier row; every internal courier shares one adapter"""
        adapter = self._adapters.get(courier.code)
        if adapter:
            return adapter
        if courier.courier_type == CourierType.INTERNAL.value:
            return self._internal
        raise CourierNotFound(f"No integration registered for courier '{courier.code}'")


def get_courier_registry() -> CourierRegistry:
    """Return the process-wide registry (singleton), sharing one HTTP session"""
    global _registry_instance
    if _registry_instance is None:
        session = requests.Session()
        _registry_instance = CourierRegistry([
            PathaoCourier(session=session),
            SteadfastCourier(session=session),
            InternalCourier(),
        ])
        logger.info("Courier registry initialised")
    return _registry_instance


def reset_courier_registry() -> None:
    """Drop the singleton (tests)"""
    global _registry_instance
    _registry_instance = None
