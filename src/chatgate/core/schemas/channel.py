"""Pydantic schema for registered channels."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict


class Channel(BaseModel):
    """A registered channel as returned by the API.

    Attributes:
        id: Stable identifier, independent of (platform, name).
        name: Channel name on its platform.
        platform: Platform tag.
        listen: Whether the channel is started automatically at boot.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    name: str
    platform: str
    listen: bool = False
