"""SQLAlchemy ORM models for chatgate.

All models are imported here so that ``Base.metadata.create_all()`` sees
every table without the caller knowing which sub-module defines it.
"""

from __future__ import annotations

from chatgate.core.models.base import Base
from chatgate.core.models.channel import ChannelRecord
from chatgate.core.models.message import ChatMessageRecord

__all__ = [
    "Base",
    "ChannelRecord",
    "ChatMessageRecord",
]
