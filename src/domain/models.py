import json
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

# Wire format is camelCase (browser clients), Python code uses snake_case
_WIRE_CONFIG = {
    'extra': 'ignore',
    'populate_by_name': True,
    'alias_generator': to_camel,
}

FILTER_LIST_FIELDS = ('languages', 'types', 'collections', 'periods')


class ArchiveItem(BaseModel):
    """Archive artefact as returned by a content provider.

    The caching core only looks at ``id`` and the thumbnail; the remaining
    fields are carried through for rendering.
    """

    model_config = _WIRE_CONFIG

    id: str
    title: str
    year: int | None = None
    language: str | None = None
    type: str | None = None
    collection: str | None = None
    authors: list[str] | None = None
    thumbnail_url: str | None = None
    source_url: str

    @property
    def has_thumbnail(self) -> bool:
        return bool(self.thumbnail_url and self.thumbnail_url.strip())


class CanvasItem(ArchiveItem):
    """Archive item placed in world space."""

    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    tile_x: int
    tile_y: int


class MediaFile(BaseModel):
    model_config = _WIRE_CONFIG

    id: str
    type: Literal['pdf', 'image', 'audio', 'video', 'iiif', 'other']
    url: str
    thumbnail_url: str | None = None
    title: str | None = None
    mime_type: str | None = None


class DocumentSource(BaseModel):
    model_config = _WIRE_CONFIG

    type: Literal['iiif', 'pdf']
    url: str


class ItemDetail(ArchiveItem):
    """Full item record for the detail drawer / document viewer."""

    description: str | None = None
    subjects: list[str] | None = None
    publisher: str | None = None
    rights: str | None = None
    full_image_url: str | None = None
    media: list[MediaFile] | None = None
    document_source: DocumentSource | None = None


class SearchFilters(BaseModel):
    """Optional filter set; absent or empty fields mean "no constraint"."""

    model_config = _WIRE_CONFIG

    languages: list[str] | None = None
    types: list[str] | None = None
    collections: list[str] | None = None
    periods: list[str] | None = None
    year_min: int | None = None
    year_max: int | None = None

    @field_validator(*FILTER_LIST_FIELDS, mode='before')
    @classmethod
    def validate_list_fields(cls, v: Any) -> list[str] | None:
        if v is None:
            return None
        if isinstance(v, str):
            return [v]
        if not isinstance(v, (list, tuple, set, frozenset)):
            msg = f'expected a string or a list of strings, got {type(v).__name__}'
            raise ValueError(msg)
        return [str(item) for item in v]

    def canonical(self) -> dict[str, Any]:
        """Order-independent representation: sorted unique lists, no empty keys."""
        data: dict[str, Any] = {}
        for name in FILTER_LIST_FIELDS:
            values = getattr(self, name)
            if values:
                data[name] = sorted(set(values))
        if self.year_min is not None:
            data['yearMin'] = self.year_min
        if self.year_max is not None:
            data['yearMax'] = self.year_max
        return data

    def fingerprint(self) -> str:
        """Canonical string used in cache keys ('' when no constraint is set)."""
        canonical = self.canonical()
        if not canonical:
            return ''
        return json.dumps(
            canonical, sort_keys=True, separators=(',', ':'), ensure_ascii=False
        )

    @property
    def is_active(self) -> bool:
        return bool(self.canonical())

    @property
    def has_client_side_filters(self) -> bool:
        # Filters the upstream cannot apply natively in search requests
        return (
            self.year_min is not None
            or self.year_max is not None
            or bool(self.periods)
            or bool(self.collections)
        )


class YearRange(BaseModel):
    model_config = _WIRE_CONFIG

    min: int | None = None
    max: int | None = None


class Facets(BaseModel):
    model_config = _WIRE_CONFIG

    languages: dict[str, int] = Field(default_factory=dict)
    types: dict[str, int] = Field(default_factory=dict)
    collections: dict[str, int] = Field(default_factory=dict)
    years: YearRange = Field(default_factory=YearRange)


class SearchResponse(BaseModel):
    model_config = _WIRE_CONFIG

    items: list[ArchiveItem] = Field(default_factory=list)
    # UNKNOWN_TOTAL (-1) when the filtered count cannot be known
    total: int = 0
    facets: Facets | None = None
    # True when total was scaled from a page sample
    total_is_estimate: bool = False


class TileResponse(BaseModel):
    model_config = _WIRE_CONFIG

    tile_x: int
    tile_y: int
    items: list[ArchiveItem] = Field(default_factory=list)
    error: str | None = None


class SearchState(BaseModel):
    """Paginated search results of the current query."""

    model_config = _WIRE_CONFIG

    results: list[ArchiveItem] = Field(default_factory=list)
    total: int = 0
    loading: bool = False
    page: int = 1
    has_more: bool = False
    error: str | None = None
