"""Per-channel ingestion tasks and the registry that supervises them."""

from chatgate.ingestion.registry import (
    ChannelRegistry,
    ListenerFactory,
    ListenerHandle,
    ListenerKey,
    ListenerOutcome,
)
from chatgate.ingestion.task import CancellationToken, run_ingestion

__all__ = [
    "CancellationToken",
    "ChannelRegistry",
    "ListenerFactory",
    "ListenerHandle",
    "ListenerKey",
    "ListenerOutcome",
    "run_ingestion",
]
