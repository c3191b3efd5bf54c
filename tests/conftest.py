"""Pytest configuration and fixtures for gpura canvas tests."""

import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from domain.models import ArchiveItem  # noqa: E402


def build_item(index, **overrides):
    data = {
        'id': str(index),
        'title': f'Item {index}',
        'year': 1950,
        'language': 'ml',
        'type': 'book',
        'collection': 'Periodicals',
        'thumbnail_url': f'https://example.org/thumb/{index}.jpg',
        'source_url': f'https://example.org/s/item/{index}',
    }
    data.update(overrides)
    return ArchiveItem(**data)


@pytest.fixture
def make_item():
    """Factory for ArchiveItem with sensible defaults."""
    return build_item


class FakeClock:
    """Manually advanced time source for cache tests."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
