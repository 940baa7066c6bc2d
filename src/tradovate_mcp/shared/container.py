"""Dependency injection container for the Tradovate MCP server.

Holds the process-wide singletons: configuration, token manager, request
client, connection supervisor, client facade and domain cache.
"""

import inspect
from collections.abc import Callable
from typing import Any, TypeVar

T = TypeVar("T")


class DIContainer:
    """Dependency injection container keyed by type.

    Features:
    - Factory-based registration with lazy construction
    - Pre-built singletons
    - Circular dependency detection
    """

    def __init__(self, config: Any | None = None) -> None:
        self._singletons: dict[type, Any] = {}
        self._factories: dict[type, Callable] = {}
        self._instances: dict[type, Any] = {}
        self._resolving: set[type] = set()

        if config is not None:
            self._singletons[type(config)] = config

    def register_factory(
        self, factory: Callable[["DIContainer"], T]
    ) -> type[T]:
        """Register a factory function for a dependency.

        The dependency type is taken from the factory's return annotation.

        Args:
            factory: A callable that takes the container and returns an instance.

        Returns:
            The type the factory was registered for.
        """
        return_type = inspect.signature(factory).return_annotation
        if return_type is inspect.Signature.empty:
            raise ValueError(
                f"Factory {factory.__name__} needs a return annotation"
            )
        self._factories[return_type] = factory  # type: ignore[assignment]
        return return_type  # type: ignore[return-value]

    def register_singleton(
        self, instance: T, cls: type[T] | None = None
    ) -> None:
        """Register a singleton instance.

        Args:
            instance: The singleton instance to register.
            cls: The type to register for (defaults to instance type).
        """
        if cls is None:
            cls = type(instance)
        self._singletons[cls] = instance

    def get(self, cls: type[T]) -> T:
        """Resolve a dependency by type.

        Raises:
            ValueError: If the dependency cannot be resolved or is circular.
        """
        if cls in self._singletons:
            return self._singletons[cls]

        if cls in self._instances:
            return self._instances[cls]

        if cls in self._factories:
            if cls in self._resolving:
                raise ValueError(
                    f"Circular dependency while resolving {cls.__name__}"
                )
            self._resolving.add(cls)
            try:
                instance = self._factories[cls](self)
            finally:
                self._resolving.discard(cls)
            self._instances[cls] = instance
            return instance

        raise ValueError(f"Cannot resolve dependency: {cls.__name__}")

    def has(self, cls: type) -> bool:
        return (
            cls in self._singletons
            or cls in self._instances
            or cls in self._factories
        )


def create_container(config: Any | None = None) -> DIContainer:
    """Create a container wired with the Tradovate services.

    Args:
        config: Configuration; loaded from the environment when omitted.

    Returns:
        A configured DIContainer instance.
    """
    from tradovate_mcp.core.config import Config
    from tradovate_mcp.data.cache import DomainCache
    from tradovate_mcp.infrastructure.brokers.tradovate import (
        ConnectionSupervisor,
        TokenManager,
        TradovateClient,
        TradovateRequestClient,
        SubscriptionManager,
    )

    container = DIContainer(config or Config.from_env())

    def token_manager(c: DIContainer) -> TokenManager:
        return TokenManager(c.get(Config))

    def request_client(c: DIContainer) -> TradovateRequestClient:
        return TradovateRequestClient(c.get(Config), c.get(TokenManager))

    def supervisor(c: DIContainer) -> ConnectionSupervisor:
        return ConnectionSupervisor(c.get(Config), c.get(TokenManager))

    def subscriptions(c: DIContainer) -> SubscriptionManager:
        return SubscriptionManager(c.get(TradovateRequestClient))

    def client(c: DIContainer) -> TradovateClient:
        return TradovateClient(
            config=c.get(Config),
            token_manager=c.get(TokenManager),
            request_client=c.get(TradovateRequestClient),
            supervisor=c.get(ConnectionSupervisor),
            subscriptions=c.get(SubscriptionManager),
        )

    def cache(c: DIContainer) -> DomainCache:
        return DomainCache(c.get(TradovateClient))

    for factory in (
        token_manager,
        request_client,
        supervisor,
        subscriptions,
        client,
        cache,
    ):
        container.register_factory(factory)

    return container
