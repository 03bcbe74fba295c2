"""YouTube live chat adapter.

Polls the YouTube Data API v3 ``liveChat/messages`` endpoint of a channel's
current live broadcast.  Requires ``YOUTUBE_API_KEY``.

Quota unit costs (from the YouTube Data API v3 documentation):
- ``search.list``:            100 units per call (channel lookup, live lookup)
- ``channels.list``:            1 unit  per call
- ``videos.list``:              1 unit  per call
- ``liveChatMessages.list``:    5 units per call (every poll)
"""

from chatgate.platforms.youtube.adapter import YouTubeAdapter

__all__ = ["YouTubeAdapter"]
