"""Twitch chat adapter.

Reads public chat anonymously over Twitch's IRC-over-WebSocket endpoint.
No credentials are needed: Twitch accepts ``justinfan<digits>`` nicks as
read-only guests.  Tagged ``PRIVMSG`` lines become message events carrying
the author's badges, colour and subscription age as metadata.
"""

from chatgate.platforms.twitch.adapter import TwitchAdapter

__all__ = ["TwitchAdapter"]
