"""Adapter registry for platform dispatch.

Adapters register themselves on import using the ``@register`` decorator.
The registry is a module-level mapping from :class:`Platform` to
``PlatformAdapter`` subclasses.  It is consulted once, at the API boundary
and at startup, so the rest of the code never matches on platform strings.

Example, registering an adapter::

    from chatgate.platforms.registry import register
    from chatgate.platforms.base import Platform, PlatformAdapter

    @register
    class TwitchAdapter(PlatformAdapter):
        platform = Platform.TWITCH
        ...

Example, building the adapter table::

    from chatgate.platforms.registry import build_adapters

    adapters = build_adapters(settings)
    stream = await adapters[Platform.TWITCH].open("alice")
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chatgate.core.exceptions import UnknownPlatformError

if TYPE_CHECKING:
    from chatgate.config.settings import Settings
    from chatgate.platforms.base import Platform, PlatformAdapter

logger = logging.getLogger(__name__)

# Registry singleton: Platform -> PlatformAdapter subclass
_REGISTRY: dict[Platform, type[PlatformAdapter]] = {}


def register(cls: type[PlatformAdapter]) -> type[PlatformAdapter]:
    """Decorator that registers a ``PlatformAdapter`` subclass.

    If an adapter for the same platform is already registered, the new
    registration overwrites the old one and a warning is emitted.

    Args:
        cls: ``PlatformAdapter`` subclass defining a ``platform`` attribute.

    Returns:
        The same class (decorator pass-through).

    Raises:
        AttributeError: If ``cls`` does not define ``platform``.
    """
    platform = cls.platform
    if platform in _REGISTRY:
        logger.warning(
            "Platform '%s' is already registered (was %s). Overwriting with %s.",
            platform.value,
            _REGISTRY[platform].__qualname__,
            cls.__qualname__,
        )
    _REGISTRY[platform] = cls
    logger.debug("Registered platform adapter: platform=%s class=%s", platform.value, cls.__qualname__)
    return cls


def get_adapter_class(platform: Platform) -> type[PlatformAdapter]:
    """Retrieve the adapter class registered for *platform*.

    Raises:
        UnknownPlatformError: If no adapter serves *platform* (``system``
            never has one).
    """
    try:
        return _REGISTRY[platform]
    except KeyError:
        raise UnknownPlatformError(platform.value) from None


def list_platforms() -> list[Platform]:
    """Return the platforms that have a registered adapter, sorted by tag."""
    return sorted(_REGISTRY, key=lambda p: p.value)


def build_adapters(settings: Settings) -> dict[Platform, PlatformAdapter]:
    """Instantiate one adapter per registered platform."""
    return {platform: cls(settings) for platform, cls in _REGISTRY.items()}
