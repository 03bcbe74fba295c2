"""chatgate: moderated aggregation of live stream chat.

Chat from several streaming platforms is ingested into one store.  Moderators
see every message live on the admin feed; the public client feed only carries
messages a moderator has approved.
"""

__version__ = "0.1.0"
