"""Remote catalog access: raw HTTP helpers, session handling and the client."""

from .catalog import RemoteCatalogClient
from .session import CatalogSession, authenticate

__all__ = ["CatalogSession", "RemoteCatalogClient", "authenticate"]
