from __future__ import annotations

import logging
from importlib import import_module
from types import ModuleType
from typing import List

logger = logging.getLogger(__name__)

# Router submodules, imported on first attribute access.
_ROUTER_MODULES: List[str] = [
    "health",
    "insurance",
    "logs",
    "reminders",
]

__all__ = _ROUTER_MODULES


def __getattr__(name: str) -> ModuleType:
    """
    Lazy import router submodules so that

        from insuretrack.routers import insurance as insurance_router

    does not pull in every router (and the email stack) eagerly.
    """
    if name not in _ROUTER_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    full_name = f"{__name__}.{name}"
    logger.debug("Lazy-importing router module %s", full_name)
    return import_module(full_name)
