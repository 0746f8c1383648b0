"""Dependency injection container for the bridge's services."""
from __future__ import annotations

import inspect
from functools import lru_cache
from typing import Any, Callable, Dict, Type

from st_spotify.application.token_lifecycle import TokenLifecycleManager
from st_spotify.config import settings as app_settings
from st_spotify.domain.token_storage import CredentialStore
from st_spotify.infrastructure.client_factory import SpotifyClientFactory
from st_spotify.infrastructure.token_storage import JsonFileCredentialStore

ServiceType = Type[Any]
Factory = Callable[["Container"], Any]


class Container:
    """Minimal service container supporting factories, singletons and instances."""

    def __init__(self) -> None:
        self._factories: Dict[ServiceType, Factory] = {}
        self._instances: Dict[ServiceType, Any] = {}
        self._singletons: set[ServiceType] = set()

    def register(
        self,
        service: ServiceType,
        *,
        factory: Factory | None = None,
        instance: Any | None = None,
        singleton: bool = False,
    ) -> None:
        if instance is not None:
            self._instances[service] = instance
            self._factories.pop(service, None)
            self._singletons.discard(service)
            return
        if factory is None:
            raise ValueError("Either factory or instance must be provided.")
        self._factories[service] = factory
        self._instances.pop(service, None)
        if singleton:
            self._singletons.add(service)
        else:
            self._singletons.discard(service)

    def resolve(self, service: ServiceType) -> Any:
        if service in self._instances:
            return self._instances[service]
        try:
            factory = self._factories[service]
        except KeyError as exc:
            raise KeyError(f"No provider registered for {service!r}") from exc
        value = factory(self)
        if service in self._singletons:
            self._instances[service] = value
        return value


def _register_defaults(container: Container) -> None:
    """Register the production service graph with the container."""
    container.register(
        CredentialStore,
        factory=lambda _c: JsonFileCredentialStore(app_settings.TOKEN_FILE_PATH),
        singleton=True,
    )
    container.register(SpotifyClientFactory, factory=lambda _c: SpotifyClientFactory.from_settings())
    # One manager per process so refreshes share a lock.
    container.register(
        TokenLifecycleManager,
        factory=lambda c: TokenLifecycleManager(
            c.resolve(CredentialStore),
            c.resolve(SpotifyClientFactory),
        ),
        singleton=True,
    )


def _wrap_override(provider: Any) -> Factory:
    if inspect.isfunction(provider) or inspect.ismethod(provider):
        signature = inspect.signature(provider)
        if len(signature.parameters) == 0:
            return lambda _c, fn=provider: fn()
        return lambda c, fn=provider: fn(c)
    if isinstance(provider, type):
        return lambda _c, cls=provider: cls()
    return lambda _c, value=provider: value


def build_container(overrides: Dict[ServiceType, Any] | None = None) -> Container:
    """Create a new container with optional dependency overrides."""
    container = Container()
    _register_defaults(container)

    if overrides:
        for service, provider in overrides.items():
            factory = _wrap_override(provider)
            if isinstance(provider, type) or inspect.isfunction(provider) or inspect.ismethod(provider):
                container.register(service, factory=factory, singleton=True)
            else:
                container.register(service, instance=factory(container))

    return container


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Return a cached container instance for application use."""
    return build_container()


__all__ = ["Container", "build_container", "get_container"]
