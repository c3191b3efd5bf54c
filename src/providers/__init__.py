"""Content providers: Omeka S, synthetic mock and remote gallery API."""
from providers.base import ContentProvider, ProviderError
from providers.factory import create_provider
from providers.mock import MockProvider
from providers.omeka import OmekaProvider
from providers.remote import GalleryApiProvider

__all__ = [
    'ContentProvider',
    'GalleryApiProvider',
    'MockProvider',
    'OmekaProvider',
    'ProviderError',
    'create_provider',
]
