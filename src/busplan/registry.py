"""Registry for pluggable components in busplan."""

from busplan.utils.logging import BusplanLogger

from .interfaces import Clusterer, RoutingProvider

logger = BusplanLogger.get_logger(__name__)

# Registries for each component type
CLUSTERER_REGISTRY: dict[str, type[Clusterer]] = {}
ROUTING_PROVIDER_REGISTRY: dict[str, type[RoutingProvider]] = {}

__all__ = [
    "register_clusterer",
    "register_routing_provider",
    "get_clusterer",
    "get_routing_provider",
    # Expose registries for advanced users who need direct access
    "CLUSTERER_REGISTRY",
    "ROUTING_PROVIDER_REGISTRY",
]


def register_clusterer(name: str):
    """Decorator to register a clustering strategy."""

    def decorator(cls: type[Clusterer]):
        if name in CLUSTERER_REGISTRY:
            raise ValueError(f"Clusterer '{name}' is already registered")
        CLUSTERER_REGISTRY[name] = cls
        return cls

    return decorator


def register_routing_provider(name: str):
    """Decorator to register a routing provider implementation."""

    def decorator(cls: type[RoutingProvider]):
        if name in ROUTING_PROVIDER_REGISTRY:
            raise ValueError(f"Routing provider '{name}' is already registered")
        ROUTING_PROVIDER_REGISTRY[name] = cls
        return cls

    return decorator


def get_clusterer(name: str) -> Clusterer:
    """Instantiate the clustering strategy registered under ``name``."""
    clusterer_class = CLUSTERER_REGISTRY.get(name)
    if clusterer_class is None:
        available = ", ".join(sorted(CLUSTERER_REGISTRY))
        logger.error(f"Unknown clustering method: {name}")
        raise ValueError(f"Unknown clustering method: {name}. Available: {available}")
    return clusterer_class()


def get_routing_provider(name: str, *args, **kwargs) -> RoutingProvider:
    """Instantiate the routing provider registered under ``name``."""
    provider_class = ROUTING_PROVIDER_REGISTRY.get(name)
    if provider_class is None:
        available = ", ".join(sorted(ROUTING_PROVIDER_REGISTRY))
        raise ValueError(f"Unknown routing provider: {name}. Available: {available}")
    return provider_class(*args, **kwargs)
