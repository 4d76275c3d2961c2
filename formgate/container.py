"""Lightweight dependency injection container for formgate services.

The container owns every long-lived service instance of the gateway: the
settings, the key registry, the rate limiter (the only component with shared
mutable state), the request authorizer, the field value transformer and the
form store. Endpoints resolve services from ``app.state.container`` instead of
reaching for module-level globals, which keeps rate-limit state explicitly
owned and lets each test build an isolated container.

Service Lifetimes:
    - Singleton: Created on first resolution and reused (registry, limiter, authorizer)
    - Transient: New instance per resolution
    - Instance: Pre-created objects registered directly (settings, store)

Error Handling:
    - Circular dependencies raise ValueError naming the service
    - Unregistered services raise ValueError; ``try_get`` returns None instead
    - Disposal errors are logged and do not stop other services from closing
"""

from typing import Any, Callable, Optional, Union

import structlog

logger = structlog.get_logger()

ServiceKey = Union[type, str]


class ServiceLifetime:
    """Service lifetime constants defining instance management strategies."""

    SINGLETON = "singleton"
    TRANSIENT = "transient"


class ServiceDescriptor:
    """Registration metadata: factory, lifetime and the services it depends on."""

    def __init__(
        self,
        service_type: ServiceKey,
        implementation: Callable[..., Any],
        lifetime: str = ServiceLifetime.SINGLETON,
        dependencies: Optional[list] = None,
    ):
        self.service_type = service_type
        self.implementation = implementation
        self.lifetime = lifetime
        self.dependencies = dependencies or []


def _service_name(service_type: ServiceKey) -> str:
    return service_type if isinstance(service_type, str) else service_type.__name__


class Container:
    """Dependency injection container with singleton and transient lifetimes.

    Resolution is expected to happen during application startup or from
    already-created singletons; creation itself is not guarded by a lock.
    """

    def __init__(self):
        self._services: dict[ServiceKey, ServiceDescriptor] = {}
        self._instances: dict[ServiceKey, Any] = {}
        self._resolving: set = set()  # Circular dependency detection

    def register_singleton(
        self,
        service_type: ServiceKey,
        implementation: Callable[..., Any],
        dependencies: Optional[list] = None,
    ) -> "Container":
        """Register a service created once on first resolution.

        Args:
            service_type: Type or string identifier of the service
            implementation: Class or factory called with resolved dependencies
            dependencies: Services passed positionally to the factory

        Returns:
            Container: Self for fluent registration chaining
        """
        self._services[service_type] = ServiceDescriptor(
            service_type, implementation, ServiceLifetime.SINGLETON, dependencies
        )
        return self

    def register_transient(
        self,
        service_type: ServiceKey,
        implementation: Callable[..., Any],
        dependencies: Optional[list] = None,
    ) -> "Container":
        """Register a service created anew on every resolution."""
        self._services[service_type] = ServiceDescriptor(
            service_type, implementation, ServiceLifetime.TRANSIENT, dependencies
        )
        return self

    def register_instance(self, service_type: ServiceKey, instance: Any) -> "Container":
        """Register an already-built instance (settings, stores, test doubles)."""
        self._instances[service_type] = instance
        return self

    def get(self, service_type: ServiceKey) -> Any:
        """Resolve a service, creating it and its dependencies as needed.

        Raises:
            ValueError: If a circular dependency is detected or the service is not registered
        """
        service_name = _service_name(service_type)

        if service_type in self._resolving:
            raise ValueError(f"Circular dependency detected for {service_name}")

        if service_type in self._instances:
            return self._instances[service_type]

        if service_type not in self._services:
            raise ValueError(f"Service {service_name} is not registered")

        descriptor = self._services[service_type]
        self._resolving.add(service_type)
        try:
            resolved_dependencies = [self.get(dep) for dep in descriptor.dependencies]
            instance = descriptor.implementation(*resolved_dependencies)

            if descriptor.lifetime == ServiceLifetime.SINGLETON:
                self._instances[service_type] = instance

            logger.debug(
                "Service resolved successfully",
                service=service_name,
                lifetime=descriptor.lifetime,
                dependencies=[_service_name(dep) for dep in descriptor.dependencies],
            )
            return instance
        finally:
            self._resolving.discard(service_type)

    def try_get(self, service_type: ServiceKey) -> Optional[Any]:
        """Resolve a service, returning None when it is not registered."""
        try:
            return self.get(service_type)
        except ValueError:
            return None

    def is_registered(self, service_type: ServiceKey) -> bool:
        return service_type in self._services or service_type in self._instances

    def dispose(self) -> None:
        """Close every instance exposing ``close()`` and clear the cache."""
        for instance in self._instances.values():
            if hasattr(instance, "close"):
                try:
                    instance.close()
                except Exception as e:
                    logger.error("Error disposing service", error=str(e))

        self._instances.clear()
        logger.info("Container disposed successfully")

    def get_service_info(self) -> dict[str, Any]:
        """Describe registered services for diagnostics."""
        info = {
            "registered_services": len(self._services),
            "active_instances": len(self._instances),
            "services": {},
        }

        for service_key, descriptor in self._services.items():
            info["services"][_service_name(service_key)] = {
                "lifetime": descriptor.lifetime,
                "dependencies": [_service_name(dep) for dep in descriptor.dependencies],
                "instantiated": service_key in self._instances,
            }

        return info


def configure_services(
    settings=None,
    store=None,
    key_provider=None,
    limiter=None,
) -> Container:
    """Build a container with every formgate service registered.

    Args:
        settings: Settings instance; read from the environment when omitted
        store: FormStore implementation; an empty InMemoryFormStore when omitted
        key_provider: Optional CustomKeyProvider merged into the key registry
        limiter: Pre-built RateLimiter, e.g. one shared with a test

    Returns:
        Container: Configured container
    """
    # Import here to avoid circular dependencies
    from .auth.authorizer import RequestAuthorizer
    from .auth.key_registry import KeyRegistry
    from .auth.rate_limiter import RateLimiter
    from .config import get_settings
    from .fields.normalize import FieldValueTransformer
    from .store import InMemoryFormStore

    if settings is None:
        settings = get_settings()
    container = Container()

    container.register_instance("settings", settings)
    container.register_instance("store", store if store is not None else InMemoryFormStore())
    container.register_instance("key_provider", key_provider)

    if limiter is not None:
        container.register_instance("rate_limiter", limiter)
    else:
        container.register_singleton("rate_limiter", RateLimiter)

    container.register_singleton("key_registry", KeyRegistry, ["settings", "key_provider"])
    container.register_singleton(
        "authorizer",
        lambda s, registry, rate_limiter: RequestAuthorizer(
            registry,
            rate_limiter,
            window_seconds=s.rate_window_seconds,
            debug=s.dev_mode,
        ),
        ["settings", "key_registry", "rate_limiter"],
    )
    container.register_singleton("transformer", FieldValueTransformer)

    logger.info(
        "Service container configured successfully",
        environment=settings.environment,
        dev_mode=settings.dev_mode,
    )
    return container
