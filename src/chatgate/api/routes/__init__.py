"""Route modules mounted by :func:`chatgate.api.main.create_app`."""
