"""Platform adapters producing normalized chat events.

Importing this package registers every built-in adapter with
:mod:`chatgate.platforms.registry`.
"""

from chatgate.platforms.base import ChatEvent, ChatStream, EventKind, Platform, PlatformAdapter
from chatgate.platforms.registry import build_adapters, get_adapter_class, list_platforms, register

# Register built-in adapters.
from chatgate.platforms.twitch import adapter as _twitch  # noqa: F401,E402
from chatgate.platforms.youtube import adapter as _youtube  # noqa: F401,E402

__all__ = [
    "ChatEvent",
    "ChatStream",
    "EventKind",
    "Platform",
    "PlatformAdapter",
    "build_adapters",
    "get_adapter_class",
    "list_platforms",
    "register",
]
