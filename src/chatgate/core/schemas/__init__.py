"""Pydantic schemas shared by the store, the feeds and the API."""

from chatgate.core.schemas.channel import Channel
from chatgate.core.schemas.message import AnnouncementCreate, ChatMessage

__all__ = ["AnnouncementCreate", "Channel", "ChatMessage"]
