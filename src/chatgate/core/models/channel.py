"""Channel ORM model.

A channel is a (platform, name) pair a moderator has registered.  The
``listen`` flag marks channels that are started automatically at boot; it is
set when the channel is added and not changed afterwards.
"""

from __future__ import annotations

import uuid

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from chatgate.core.models.base import Base


class ChannelRecord(Base):
    """A registered chat channel on one platform."""

    __tablename__ = "channels"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    platform: Mapped[str] = mapped_column(sa.String(32), nullable=False)
    listen: Mapped[bool] = mapped_column(
        sa.Boolean,
        nullable=False,
        default=False,
        server_default=sa.false(),
    )

    __table_args__ = (
        sa.UniqueConstraint("platform", "name", name="uq_channels_platform_name"),
    )

    def __repr__(self) -> str:
        return f"<ChannelRecord {self.platform}/{self.name} listen={self.listen}>"
