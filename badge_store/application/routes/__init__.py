from .cache_admin import get_container, health_router, router

__all__ = ["get_container", "health_router", "router"]
