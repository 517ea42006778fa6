"""Connection metadata, name resolution and TCP connecting for asyncio HTTP clients."""

__version__ = "0.1.0"