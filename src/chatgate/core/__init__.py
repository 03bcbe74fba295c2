"""Core package for chatgate.

Holds the message store, the broadcast feeds, the publish coordinator and the
shared plumbing (settings-independent database helpers, logging, exceptions).
Nothing in here knows about HTTP.
"""
