"""Filter fingerprinting and client-side filter evaluation."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from domain.models import ArchiveItem, Facets, SearchFilters, YearRange
from shared.constants import TIME_RANGES, UNKNOWN_TOTAL

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_RANGE_RE = re.compile(r'^(\d{3,4})\s*[–-]\s*(\d{3,4})$')
_YEAR_RE = re.compile(r'^(\d{3,4})$')

YearBounds = tuple[int | None, int | None]


def coerce_filters(
    filters: SearchFilters | Mapping[str, Any] | None,
) -> SearchFilters:
    if filters is None:
        return SearchFilters()
    if isinstance(filters, SearchFilters):
        return filters
    return SearchFilters.model_validate(dict(filters))


def fingerprint(filters: SearchFilters | Mapping[str, Any] | None) -> str:
    """Canonical cache-key fragment for a filter set.

    List values are de-duplicated and sorted, so ``{'languages': ['ml', 'en']}``
    and ``{'languages': ['en', 'ml']}`` share one fingerprint.
    """
    return coerce_filters(filters).fingerprint()


def parse_filters_param(raw: str | None) -> SearchFilters | None:
    """Decode the JSON ``filters`` query parameter; malformed input is ignored."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.debug('Ignoring malformed filters parameter: %r', raw)
        return None
    if not isinstance(data, dict):
        return None
    try:
        return SearchFilters.model_validate(data)
    except ValidationError:
        logger.debug('Ignoring invalid filters parameter: %r', raw)
        return None


def resolve_period(label: str) -> YearBounds | None:
    """Predefined period label, custom range ('1920–1950') or single year."""
    for name, lo, hi in TIME_RANGES:
        if name == label:
            return lo, hi
    label = label.strip()
    m = _RANGE_RE.match(label)
    if m:
        return int(m.group(1)), int(m.group(2))
    m = _YEAR_RE.match(label)
    if m:
        year = int(m.group(1))
        return year, year
    return None


def resolve_periods(labels: Iterable[str]) -> list[YearBounds]:
    ranges = []
    for label in labels:
        bounds = resolve_period(label)
        if bounds is None:
            logger.debug('Unknown period label: %r', label)
            continue
        ranges.append(bounds)
    return ranges


def _in_range(year: int, bounds: YearBounds) -> bool:
    lo, hi = bounds
    return (lo is None or year >= lo) and (hi is None or year <= hi)


def matches_filters(
    item: ArchiveItem,
    filters: SearchFilters,
    *,
    include_native: bool = True,
    periods: Sequence[YearBounds] | None = None,
) -> bool:
    """Check an item against a filter set.

    ``include_native=False`` skips languages/types, which the upstream search
    endpoint already applies itself.
    """
    if include_native:
        if filters.languages and item.language not in filters.languages:
            return False
        if filters.types and item.type not in filters.types:
            return False
    if filters.year_min is not None and (
        item.year is None or item.year < filters.year_min
    ):
        return False
    if filters.year_max is not None and (
        item.year is None or item.year > filters.year_max
    ):
        return False
    if filters.periods:
        ranges = periods if periods is not None else resolve_periods(filters.periods)
        # Unparseable labels only: no constraint
        if ranges:
            if item.year is None:
                return False
            if not any(_in_range(item.year, r) for r in ranges):
                return False
    if filters.collections and item.collection not in filters.collections:
        return False
    return True


def apply_filters(
    items: Iterable[ArchiveItem],
    filters: SearchFilters | None,
    *,
    include_native: bool = True,
) -> list[ArchiveItem]:
    if filters is None or not filters.is_active:
        return list(items)
    periods = resolve_periods(filters.periods) if filters.periods else None
    return [
        item
        for item in items
        if matches_filters(
            item, filters, include_native=include_native, periods=periods
        )
    ]


def estimate_total(upstream_total: int, sample_size: int, matched: int) -> int:
    """Scale the unfiltered upstream total by the match ratio of one page.

    Best-effort and biased on small or skewed samples. A zero ratio gives
    UNKNOWN_TOTAL rather than a misleading zero.
    """
    if sample_size <= 0:
        return upstream_total
    if matched == 0:
        return UNKNOWN_TOTAL
    return round(upstream_total * matched / sample_size)


def compute_facets(items: Iterable[ArchiveItem]) -> Facets:
    languages: dict[str, int] = {}
    types: dict[str, int] = {}
    collections: dict[str, int] = {}
    min_year: int | None = None
    max_year: int | None = None

    for item in items:
        if item.language:
            languages[item.language] = languages.get(item.language, 0) + 1
        if item.type:
            types[item.type] = types.get(item.type, 0) + 1
        if item.collection:
            collections[item.collection] = collections.get(item.collection, 0) + 1
        if item.year:
            if min_year is None or item.year < min_year:
                min_year = item.year
            if max_year is None or item.year > max_year:
                max_year = item.year

    return Facets(
        languages=languages,
        types=types,
        collections=collections,
        years=YearRange(min=min_year, max=max_year),
    )
