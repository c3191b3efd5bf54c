from __future__ import annotations

import logging
from functools import partial
from typing import TYPE_CHECKING

from infrastructure.http.client import make_http_session, resolve_cache_dir
from providers.mock import MockProvider
from providers.omeka import OmekaProvider
from providers.remote import GalleryApiProvider
from shared.constants import ProviderKind

if TYPE_CHECKING:
    from domain.settings import CanvasSettings
    from providers.base import ContentProvider

logger = logging.getLogger(__name__)


def create_provider(settings: CanvasSettings) -> ContentProvider:
    """Build the provider selected by ``settings.provider``."""
    kind = settings.provider
    if kind is ProviderKind.MOCK:
        provider: ContentProvider = MockProvider()
    elif kind is ProviderKind.REMOTE:
        provider = GalleryApiProvider(
            settings.remote_api_url or '',
            timeout=settings.http_timeout_s,
            retries=settings.http_retries,
            backoff=settings.http_backoff,
        )
    else:
        session_factory = partial(
            make_http_session,
            resolve_cache_dir(settings.http_cache_dir),
            use_cache=settings.http_cache_enabled,
            expire_hours=settings.http_cache_expire_hours,
            stale_if_error_hours=settings.http_cache_stale_if_error_hours,
        )
        provider = OmekaProvider(
            settings.omeka_base_url,
            settings.omeka_items_endpoint,
            session_factory=session_factory,
            timeout=settings.http_timeout_s,
            retries=settings.http_retries,
            backoff=settings.http_backoff,
            max_thumbnail_fetches=settings.max_thumbnail_fetches,
        )
    logger.info('Content provider: %s', provider.name)
    return provider
