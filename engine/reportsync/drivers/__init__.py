"""Driver registry. Platform packages register a factory under the platform name."""

from __future__ import annotations

from typing import Callable

from reportsync.drivers.base import Driver, RunnerLogPatterns
from reportsync.errors import DriverNotSetError, UnknownDriverError

DriverFactory = Callable[..., Driver]

_REGISTRY: dict[str, DriverFactory] = {}


def register_driver(name: str, factory: DriverFactory) -> None:
    _REGISTRY[name] = factory


def registered_drivers() -> list[str]:
    return list(_REGISTRY)


def resolve_driver(name: str | None, repo: str, token: str | None = None) -> Driver:
    """Instantiate the driver registered under `name`. Fails before any network call."""
    if not name:
        raise DriverNotSetError()
    factory = _REGISTRY.get(name)
    if factory is None:
        raise UnknownDriverError(name, registered_drivers())
    return factory(repo=repo, token=token)


__all__ = [
    "Driver",
    "DriverFactory",
    "RunnerLogPatterns",
    "register_driver",
    "registered_drivers",
    "resolve_driver",
]
