"""Inventory fetchers and the registry the waste workflow dispatches from."""
from __future__ import annotations

import importlib
import pkgutil
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping

from ..clients import AwsClients
from ..concurrency import CancelToken

Fetcher = Callable[[AwsClients, CancelToken], Any]


class InventoryRegistry:
    """Registry that stores the fetcher for each named inventory."""

    def __init__(self) -> None:
        self._fetchers: Dict[str, Fetcher] = {}

    @staticmethod
    def _normalize(name: str) -> str:
        if not name:
            raise ValueError("Inventory name must be a non-empty string")
        return name.strip().lower()

    def register(self, name: str) -> Callable[[Fetcher], Fetcher]:
        """Return a decorator that registers the wrapped fetcher as *name*."""

        normalized = self._normalize(name)

        def decorator(func: Fetcher) -> Fetcher:
            if normalized in self._fetchers and self._fetchers[normalized] is not func:
                raise ValueError(f"Inventory '{name}' is already registered")
            self._fetchers[normalized] = func
            return func

        return decorator

    def as_mapping(self) -> Mapping[str, Fetcher]:
        return MappingProxyType(self._fetchers)


INVENTORY_REGISTRY = InventoryRegistry()
register_inventory = INVENTORY_REGISTRY.register


def _import_fetcher_modules() -> None:
    """Import modules that register fetchers via decorators."""

    package_name = __name__
    package_paths = getattr(__spec__, "submodule_search_locations", None)
    if not package_paths:
        return

    for module_info in pkgutil.iter_modules(package_paths):
        module_name = module_info.name
        if module_name.startswith("_"):
            continue
        importlib.import_module(f"{package_name}.{module_name}")


_import_fetcher_modules()

INVENTORY_FETCHERS: Mapping[str, Fetcher] = INVENTORY_REGISTRY.as_mapping()

__all__ = [
    "Fetcher",
    "INVENTORY_FETCHERS",
    "INVENTORY_REGISTRY",
    "InventoryRegistry",
    "register_inventory",
]
