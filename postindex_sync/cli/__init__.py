"""Command line interface (``postindex-sync``); the entrypoint lives in :mod:`.main`."""
