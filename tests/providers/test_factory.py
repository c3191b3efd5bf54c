"""Tests for create_provider()."""

import pytest

from domain.settings import CanvasSettings
from providers import GalleryApiProvider, MockProvider, OmekaProvider, create_provider


class TestCreateProvider:
    def test_mock(self):
        assert isinstance(create_provider(CanvasSettings(provider='mock')), MockProvider)

    def test_remote(self):
        settings = CanvasSettings(provider='remote', remote_api_url='http://localhost:3000/', http_retries=2)
        provider = create_provider(settings)
        assert isinstance(provider, GalleryApiProvider)
        assert provider.base_url == 'http://localhost:3000'
        assert provider.retries == 2

    @pytest.mark.asyncio
    async def test_omeka_defers_session(self):
        settings = CanvasSettings(omeka_base_url='https://archive.test', max_thumbnail_fetches=3)
        provider = create_provider(settings)
        assert isinstance(provider, OmekaProvider)
        assert provider.items_url == 'https://archive.test/api/items'
        assert provider.max_thumbnail_fetches == 3
        # No session until the first request
        assert provider._session is None
        await provider.close()
