"""Deterministic synthetic archive for development and tests."""

from __future__ import annotations

import asyncio
import math
import re
from collections import Counter
from typing import TYPE_CHECKING

from canvas.seed import tile_page
from domain.filters import apply_filters, compute_facets
from domain.models import ArchiveItem, ItemDetail, SearchFilters, SearchResponse
from providers.base import ContentProvider
from shared.constants import (
    ITEMS_PER_TILE,
    LCG_INCREMENT,
    LCG_MASK,
    LCG_MULTIPLIER,
    SEARCH_DEFAULT_PAGE_SIZE,
)

if TYPE_CHECKING:
    from collections.abc import Callable

MOCK_TITLES = (
    'കേരള പാണിനീയം (Kerala Paniniyam)',
    'മലയാള മനോരമ (Malayala Manorama)',
    'ഐതിഹ്യമാല (Aithihyamala)',
    'മാതൃഭൂമി ആഴ്ചപ്പതിപ്പ് (Mathrubhumi Weekly)',
    'കുമാരനാശാൻ കവിതകൾ (Kumaran Asan Poems)',
    'ഇന്ദുലേഖ (Indulekha)',
    'ചന്ദ്രോത്സവം (Chandrotsavam)',
    'കേരള ചരിത്രം (Kerala History)',
    'തിരുവിതാംകൂർ രാജ്യചരിത്രം (Travancore State History)',
    'മലയാള സാഹിത്യ ചരിത്രം (Malayalam Literary History)',
    'കേരളോൽപ്പത്തി (Keralolpathi)',
    'നാലുകെട്ട് (Nalukettu)',
    'രണ്ടാമൂഴം (Randamoozham)',
    'ബാല്യകാലസഖി (Balyakalasakhi)',
    'ചെമ്മീൻ (Chemmeen)',
    'ഖസാക്കിന്റെ ഇതിഹാസം (Legends of Khasak)',
    'ശബ്ദതാരാവലി (Shabdatharavali)',
    'മലയാള വ്യാകരണം (Malayalam Grammar)',
    'തിരുവനന്തപുരം ഗസറ്റ് (Thiruvananthapuram Gazette)',
    'കൊച്ചി രാജ്യ ചരിത്രം (Cochin State History)',
    'മലബാർ മാന്വൽ (Malabar Manual)',
    'നാരായണീയം (Narayaneeyam)',
    'അധ്യാത്മ രാമായണം (Adhyatma Ramayanam)',
    'മഹാഭാരതം കിളിപ്പാട്ട് (Mahabharatam Kilippattu)',
)

MOCK_AUTHORS = (
    'എ.ആർ. രാജരാജവർമ്മ',
    'കുമാരനാശാൻ',
    'ചന്തുമേനോൻ',
    'സി.വി. രാമൻ പിള്ള',
    'തകഴി ശിവശങ്കര പിള്ള',
    'വൈക്കം മുഹമ്മദ് ബഷീർ',
    'എം.ടി. വാസുദേവൻ നായർ',
    'ഒ.വി. വിജയൻ',
    'ബാലാമണിയമ്മ',
    'സുഗതകുമാരി',
)

MOCK_TYPES = ('book', 'periodical', 'image', 'manuscript', 'newspaper')
MOCK_LANGUAGES = ('ml', 'en', 'ta', 'sa', 'hi')
MOCK_COLLECTIONS = (
    'Main collection',
    'Original collection',
    'Rare books',
    'Periodicals archive',
    'Manuscripts',
)

MOCK_CORPUS_SIZE = 200
MOCK_YEAR_MIN = 1850
MOCK_YEAR_SPAN = 170
# Tile coordinates are spread this far apart in item-index space
MOCK_TILE_STRIDE = 10_000

_MOCK_ID_RE = re.compile(r'^mock-(\d+)$')


def lcg_random(seed: int) -> Callable[[], float]:
    """Stream of floats in [0, 1] from the shared LCG constants."""
    state = seed

    def _next() -> float:
        nonlocal state
        state = (state * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK
        return state / LCG_MASK

    return _next


def _pick(options: tuple[str, ...], r: float) -> str:
    return options[min(len(options) - 1, math.floor(r * len(options)))]


def mock_item(index: int) -> ArchiveItem:
    random = lcg_random(index)
    title = _pick(MOCK_TITLES, random())
    author = _pick(MOCK_AUTHORS, random())
    item_type = _pick(MOCK_TYPES, random())
    language = _pick(MOCK_LANGUAGES, random())
    collection = _pick(MOCK_COLLECTIONS, random())
    year = math.floor(random() * MOCK_YEAR_SPAN) + MOCK_YEAR_MIN
    image_id = (index * 17 + 100) % 1000
    return ArchiveItem(
        id=f'mock-{index}',
        title=title,
        year=year,
        language=language,
        type=item_type,
        collection=collection,
        authors=[author],
        thumbnail_url=f'https://picsum.photos/seed/{image_id}/160/220',
        source_url=f'https://gpura.org/item/{index}',
    )


def _matches_text(item: ArchiveItem, needle: str) -> bool:
    return (
        needle in item.title.lower()
        or any(needle in a.lower() for a in item.authors or ())
        or (item.collection is not None and needle in item.collection.lower())
    )


class MockProvider(ContentProvider):
    """
    In-process provider with a synthetic archive.

    Items are a pure function of their index, so tiles and searches are
    reproducible across runs. ``latency`` simulates network delay;
    ``calls`` counts invocations per method for tests.
    """

    name = 'mock'

    def __init__(
        self,
        *,
        corpus_size: int = MOCK_CORPUS_SIZE,
        latency: float = 0.0,
    ) -> None:
        super().__init__()
        self.corpus_size = corpus_size
        self.latency = latency
        self.calls: Counter[str] = Counter()
        self._corpus: list[ArchiveItem] | None = None

    @property
    def corpus(self) -> list[ArchiveItem]:
        if self._corpus is None:
            self._corpus = [mock_item(i) for i in range(self.corpus_size)]
        return self._corpus

    async def _simulate_latency(self) -> None:
        if self.latency > 0:
            await asyncio.sleep(self.latency)

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        page: int = 1,
        page_size: int = SEARCH_DEFAULT_PAGE_SIZE,
    ) -> SearchResponse:
        self.calls['search'] += 1
        await self._simulate_latency()
        needle = query.strip().lower()
        hits = [i for i in self.corpus if not needle or _matches_text(i, needle)]
        matched = apply_filters(hits, filters)
        start = max(0, page - 1) * page_size
        return SearchResponse(
            items=matched[start : start + page_size],
            total=len(matched),
            facets=compute_facets(hits),
        )

    async def fetch_tile(
        self,
        tile_x: int,
        tile_y: int,
        query: str = '',
        filters: SearchFilters | None = None,
        limit: int = ITEMS_PER_TILE,
        seed: int = 0,
    ) -> list[ArchiveItem]:
        self.calls['fetch_tile'] += 1
        await self._simulate_latency()
        base = tile_x * MOCK_TILE_STRIDE + tile_y + 1
        random = lcg_random(base + seed)
        offset = tile_page(tile_x, tile_y, seed) * 100
        candidates = [
            mock_item(abs(math.floor(random() * MOCK_TILE_STRIDE) + offset + i))
            for i in range(limit * 2)
        ]
        needle = query.strip().lower()
        if needle:
            candidates = [i for i in candidates if _matches_text(i, needle)]
        return apply_filters(candidates, filters)[:limit]

    async def get_item_detail(self, item_id: str) -> ItemDetail | None:
        self.calls['get_item_detail'] += 1
        await self._simulate_latency()
        m = _MOCK_ID_RE.match(item_id)
        if not m:
            return None
        item = mock_item(int(m.group(1)))
        return ItemDetail(
            **item.model_dump(),
            description=f'Synthetic record for {item.title}.',
            subjects=[item.collection] if item.collection else None,
            full_image_url=item.thumbnail_url,
        )
