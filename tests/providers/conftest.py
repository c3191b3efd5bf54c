"""Fixtures for provider tests: Omeka S style JSON-LD records."""

from unittest.mock import AsyncMock, patch

import pytest


def _literal(value):
    return [{'type': 'literal', '@value': value}]


def build_omeka_record(
    item_id,
    *,
    title=None,
    date='1923',
    language='Malayalam',
    item_type='Book',
    item_set='Periodicals',
    thumbnail='default',
    media=None,
    creators=('Kumaran Asan',),
):
    record = {
        '@id': f'https://archive.test/api/items/{item_id}',
        'o:id': item_id,
        'o:title': title or f'Record {item_id}',
        'dcterms:title': _literal(title or f'Record {item_id}'),
        'dcterms:creator': [{'type': 'literal', '@value': c} for c in creators],
        'o:media': media or [],
    }
    if date is not None:
        record['dcterms:date'] = _literal(date)
    if language is not None:
        record['dcterms:language'] = _literal(language)
    if item_type is not None:
        record['dcterms:type'] = _literal(item_type)
    if item_set is not None:
        record['o:item_set'] = [{'o:id': 1, 'o:title': item_set}]
    if thumbnail == 'default':
        record['thumbnail_display_urls'] = {
            'large': f'https://archive.test/files/large/{item_id}.jpg',
            'medium': f'https://archive.test/files/medium/{item_id}.jpg',
            'square': f'https://archive.test/files/square/{item_id}.jpg',
        }
    elif thumbnail is not None:
        record['thumbnail_display_urls'] = {'large': thumbnail}
    return record


@pytest.fixture
def omeka_record():
    """Factory for Omeka S item records."""
    return build_omeka_record


class FakeResponse:
    """Minimal stand-in for aiohttp.ClientResponse."""

    def __init__(self, status=200, data=None, headers=None):
        self.status = status
        self.data = data
        self.headers = headers or {}
        self.released = False

    async def json(self, content_type=None):
        if isinstance(self.data, Exception):
            raise self.data
        return self.data

    def close(self):
        pass

    def release(self):
        self.released = True


class FakeSession:
    """Routes GET requests by URL to queued responses.

    The last queued response for a URL is repeated; unknown URLs get 404.
    Exceptions in the queue are raised instead of returned.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []
        self.closed = False

    def add(self, url, *responses):
        self.routes.setdefault(url, []).extend(responses)

    def add_json(self, url, data, headers=None):
        self.add(url, FakeResponse(200, data, headers))

    def calls_to(self, url):
        return [params for u, params in self.requests if u == url]

    async def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append((url, dict(params or {})))
        queue = self.routes.get(url)
        if not queue:
            return FakeResponse(404)
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def no_backoff():
    """Skip retry sleeps."""
    with patch('providers.http.asyncio.sleep', new=AsyncMock()) as sleep:
        yield sleep


@pytest.fixture
def make_response():
    return FakeResponse
