"""
Shared Services Registry

Independent registry for shared services that doesn't import fastapi_server.
FastAPI server registers services here at startup (the content catalog);
sessions and routers read them from here.
"""

from typing import Optional, Any, Dict

from loguru import logger

# Independent shared services registry - populated by fastapi_server at startup
_shared_registry: Dict[str, Any] = {}

CATALOG_SERVICE = 'catalog'


def register_shared_service(name: str, service: Any) -> None:
    """
    Register a shared service (called by fastapi_server during startup).

    Args:
        name: Service name (e.g., 'catalog')
        service: Service instance
    """
    _shared_registry[name] = service
    logger.debug(f"Registered shared service: {name}")


def get_shared_catalog() -> Optional[Any]:
    """
    Get the shared content catalog.

    Returns:
        The Catalog registered at startup or by the last reload, or None
    """
    return _shared_registry.get(CATALOG_SERVICE)


def get_shared_service(name: str) -> Optional[Any]:
    return _shared_registry.get(name)


def clear_shared_services() -> None:
    """Clear all shared services (useful for testing)."""
    _shared_registry.clear()
    logger.debug("Cleared all shared services")


def list_shared_services() -> Dict[str, str]:
    """
    List all registered shared services.

    Returns:
        Dict mapping service names to their type names
    """
    return {name: type(service).__name__ for name, service in _shared_registry.items()}


def is_service_available(name: str) -> bool:
    return _shared_registry.get(name) is not None
