"""aiohttp HTTP API of the canvas service."""
from server.api import SERVICES_KEY, create_app

__all__ = [
    'SERVICES_KEY',
    'create_app',
]
