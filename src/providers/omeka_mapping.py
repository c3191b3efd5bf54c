"""Mapping of Omeka S JSON-LD records to archive items.

Pure functions over the decoded JSON; network lookups live in
providers.omeka.
"""

from __future__ import annotations

import re
from typing import Any

from domain.models import ArchiveItem, DocumentSource, ItemDetail, MediaFile
from shared.constants import (
    IIIF_THUMBNAIL_SUFFIX,
    LANGUAGE_MAP,
    PLACEHOLDER_THUMBNAIL_MARKERS,
    PROPERTY_MAP,
    THUMBNAIL_SIZE_PREFERENCE,
    TYPE_MAP,
)

OmekaRecord = dict[str, Any]

_YEAR_RE = re.compile(r'\b(1[0-9]{3}|20[0-2][0-9])\b')
_IIIF_FULL_RE = re.compile(r'/full/.*$')
_IMAGE_EXT_RE = re.compile(r'\.(jpg|jpeg|png|gif|webp|tiff?)$')
_AUDIO_EXT_RE = re.compile(r'\.(mp3|wav|ogg|flac)$')
_VIDEO_EXT_RE = re.compile(r'\.(mp4|webm|mov|avi)$')


def _value_text(value: Any) -> str | None:
    if isinstance(value, dict):
        if '@value' in value:
            return value['@value']
        if 'o:label' in value:
            return value['o:label']
    return None


def property_value(record: OmekaRecord, prop: str) -> str | None:
    """First literal (``@value``) or label (``o:label``) of a property."""
    values = record.get(prop)
    if not isinstance(values, list) or not values:
        return None
    return _value_text(values[0])


def property_values(record: OmekaRecord, prop: str) -> list[str]:
    values = record.get(prop)
    if not isinstance(values, list):
        return []
    return [text for text in (_value_text(v) for v in values) if text is not None]


def extract_year(date_str: str | None) -> int | None:
    if not date_str:
        return None
    m = _YEAR_RE.search(date_str)
    return int(m.group(1)) if m else None


def normalize_language(value: str | None) -> str | None:
    """Language name or code -> ISO 639-1 code (first two letters if unknown)."""
    if not value:
        return None
    lower = value.lower().strip()
    return LANGUAGE_MAP.get(lower) or lower[:2]


def normalize_type(value: str | None) -> str | None:
    if not value:
        return None
    lower = value.lower().strip()
    return TYPE_MAP.get(lower) or lower


def is_placeholder_thumbnail(url: str) -> bool:
    """Omeka default icons (file-type assets, svg fallbacks) are not content."""
    lower = url.lower()
    return lower.endswith('.svg') or any(m in lower for m in PLACEHOLDER_THUMBNAIL_MARKERS)


def pick_thumbnail(urls: Any) -> str | None:
    """Best available size from an Omeka thumbnail-urls mapping."""
    if not isinstance(urls, dict):
        return None
    for size in THUMBNAIL_SIZE_PREFERENCE:
        if urls.get(size):
            return urls[size]
    return None


def thumbnail_url(record: OmekaRecord) -> str | None:
    """Thumbnail from the item record itself; placeholders yield None.

    Order: display URLs (both spellings), primary media, then the first
    media entry that has one.
    """
    url = pick_thumbnail(record.get('thumbnail_display_urls'))
    if not url:
        url = pick_thumbnail(record.get('o:thumbnail_display_urls'))

    primary = record.get('o:primary_media')
    if not url and isinstance(primary, dict):
        url = pick_thumbnail(primary.get('o:thumbnail_urls')) or primary.get(
            'o:thumbnail_url'
        )

    if not url:
        for media in record.get('o:media') or []:
            if not isinstance(media, dict):
                continue
            url = pick_thumbnail(media.get('o:thumbnail_urls')) or media.get(
                'o:thumbnail_url'
            )
            if url:
                break

    if url and is_placeholder_thumbnail(url):
        return None
    return url or None


def full_image_url(record: OmekaRecord) -> str | None:
    media_list = record.get('o:media') or []
    if media_list and isinstance(media_list[0], dict):
        media = media_list[0]
        if media.get('o:original_url'):
            return media['o:original_url']
        large = (media.get('o:thumbnail_urls') or {}).get('large')
        if large:
            return large

    primary = record.get('o:primary_media')
    if isinstance(primary, dict) and primary.get('o:original_url'):
        return primary['o:original_url']

    for key in ('thumbnail_display_urls', 'o:thumbnail_display_urls'):
        large = (record.get(key) or {}).get('large')
        if large:
            return large
    return None


def collection_name(record: OmekaRecord) -> str | None:
    item_sets = record.get('o:item_set') or []
    if item_sets and isinstance(item_sets[0], dict):
        return item_sets[0].get('o:title') or None
    return None


def media_type(mime_type: str | None, url: str | None) -> str:
    if mime_type:
        if mime_type == 'application/pdf':
            return 'pdf'
        for prefix in ('image', 'audio', 'video'):
            if mime_type.startswith(f'{prefix}/'):
                return prefix
    if url:
        lower = url.lower()
        if lower.endswith('.pdf'):
            return 'pdf'
        if _IMAGE_EXT_RE.search(lower):
            return 'image'
        if _AUDIO_EXT_RE.search(lower):
            return 'audio'
        if _VIDEO_EXT_RE.search(lower):
            return 'video'
    return 'other'


def parse_media(record: OmekaRecord) -> list[MediaFile]:
    """Media entries that have an original file."""
    out: list[MediaFile] = []
    for media in record.get('o:media') or []:
        if not isinstance(media, dict):
            continue
        original = media.get('o:original_url')
        if not original:
            continue
        mime = media.get('o:media_type')
        thumb = (
            pick_thumbnail(media['o:thumbnail_urls'])
            if media.get('o:thumbnail_urls')
            else media.get('o:thumbnail_url')
        )
        out.append(
            MediaFile(
                id=str(media.get('o:id') or len(out)),
                type=media_type(mime, original),
                url=original,
                thumbnail_url=thumb,
                title=media.get('o:title'),
                mime_type=mime,
            )
        )
    return out


def to_archive_item(record: OmekaRecord, base_url: str) -> ArchiveItem:
    item_id = record.get('o:id')
    date_str = property_value(record, PROPERTY_MAP['issued']) or property_value(
        record, PROPERTY_MAP['date']
    )
    authors = property_values(record, PROPERTY_MAP['creator'])
    return ArchiveItem(
        id=str(item_id),
        title=property_value(record, PROPERTY_MAP['title'])
        or record.get('o:title')
        or 'Untitled',
        year=extract_year(date_str),
        language=normalize_language(property_value(record, PROPERTY_MAP['language'])),
        type=normalize_type(property_value(record, PROPERTY_MAP['type'])),
        collection=collection_name(record),
        authors=authors or None,
        thumbnail_url=thumbnail_url(record),
        source_url=f'{base_url}/item/{item_id}',
    )


def to_item_detail(
    record: OmekaRecord,
    base_url: str,
    document_source: DocumentSource | None = None,
) -> ItemDetail:
    base = to_archive_item(record, base_url)
    subjects = property_values(record, PROPERTY_MAP['subject'])
    media = parse_media(record)
    return ItemDetail(
        **base.model_dump(),
        description=property_value(record, PROPERTY_MAP['description']),
        subjects=subjects or None,
        publisher=property_value(record, PROPERTY_MAP['publisher']),
        rights=property_value(record, PROPERTY_MAP['rights']),
        full_image_url=full_image_url(record) or base.thumbnail_url,
        media=media or None,
        document_source=document_source,
    )


def _iiif_thumbnail_from_image(image_id: Any) -> str | None:
    if not isinstance(image_id, str):
        return None
    return _IIIF_FULL_RE.sub(IIIF_THUMBNAIL_SUFFIX, image_id)


def iiif_manifest_thumbnail(manifest: Any) -> str | None:
    """Thumbnail of the first canvas of a IIIF Presentation 3 or 2 manifest."""
    if not isinstance(manifest, dict):
        return None

    items = manifest.get('items')
    if isinstance(items, list) and items and isinstance(items[0], dict):
        canvas = items[0]
        thumbs = canvas.get('thumbnail')
        if isinstance(thumbs, list) and thumbs and isinstance(thumbs[0], dict):
            if thumbs[0].get('id'):
                return thumbs[0]['id']
        try:
            body_id = canvas['items'][0]['items'][0]['body']['id']
        except (KeyError, IndexError, TypeError):
            body_id = None
        if body_id:
            return _iiif_thumbnail_from_image(body_id)

    try:
        canvas = manifest['sequences'][0]['canvases'][0]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(canvas, dict):
        return None
    thumb = canvas.get('thumbnail')
    if isinstance(thumb, dict) and thumb.get('@id'):
        return thumb['@id']
    try:
        resource_id = canvas['images'][0]['resource']['@id']
    except (KeyError, IndexError, TypeError):
        return None
    return _iiif_thumbnail_from_image(resource_id)


def document_source(media_detail: Any) -> DocumentSource | None:
    """Viewable document behind a media record: IIIF manifest or PDF."""
    if not isinstance(media_detail, dict):
        return None
    source = media_detail.get('o:source')
    if isinstance(source, str) and 'manifest' in source:
        return DocumentSource(type='iiif', url=source)
    if media_detail.get('o:ingester') == 'iiif' and isinstance(source, str) and source:
        return DocumentSource(type='iiif', url=source)
    if media_detail.get('o:media_type') == 'application/pdf':
        pdf_url = media_detail.get('o:original_url') or source
        if isinstance(pdf_url, str) and pdf_url:
            return DocumentSource(type='pdf', url=pdf_url)
    return None
