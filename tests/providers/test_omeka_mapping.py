"""Tests for Omeka S record mapping."""

from domain.models import DocumentSource
from providers.omeka_mapping import (
    collection_name,
    document_source,
    extract_year,
    full_image_url,
    iiif_manifest_thumbnail,
    is_placeholder_thumbnail,
    media_type,
    normalize_language,
    normalize_type,
    parse_media,
    pick_thumbnail,
    property_value,
    property_values,
    thumbnail_url,
    to_archive_item,
    to_item_detail,
)


class TestPropertyValues:
    def test_literal_and_label(self):
        record = {
            'dcterms:title': [{'@value': 'Indulekha'}],
            'dcterms:subject': [{'o:label': 'Novel'}, {'@value': 'Fiction'}, {'@id': 'x'}],
        }
        assert property_value(record, 'dcterms:title') == 'Indulekha'
        assert property_values(record, 'dcterms:subject') == ['Novel', 'Fiction']

    def test_missing_or_malformed(self):
        assert property_value({}, 'dcterms:title') is None
        assert property_value({'dcterms:title': []}, 'dcterms:title') is None
        assert property_values({'dcterms:title': 'flat'}, 'dcterms:title') == []


class TestNormalisation:
    def test_extract_year(self):
        assert extract_year('1923') == 1923
        assert extract_year('c. 1890-1895') == 1890
        assert extract_year('Published 2015-03-01') == 2015
        assert extract_year('undated') is None
        assert extract_year(None) is None

    def test_language(self):
        assert normalize_language('Malayalam') == 'ml'
        assert normalize_language(' English ') == 'en'
        assert normalize_language('Konkani') == 'ko'
        assert normalize_language(None) is None

    def test_type(self):
        assert normalize_type('Still Image') == 'image'
        assert normalize_type('Text') == 'book'
        assert normalize_type('Pamphlet') == 'pamphlet'
        assert normalize_type('') is None


class TestThumbnails:
    """Tests for thumbnail selection and placeholder detection."""

    def test_placeholders(self):
        assert is_placeholder_thumbnail('https://archive.test/application/pdf.png')
        assert is_placeholder_thumbnail('https://archive.test/asset/thumb.png')
        assert is_placeholder_thumbnail('https://archive.test/files/icon.svg')
        assert not is_placeholder_thumbnail('https://archive.test/files/large/1.jpg')

    def test_pick_prefers_large(self):
        assert pick_thumbnail({'square': 's', 'large': 'l'}) == 'l'
        assert pick_thumbnail({'square': 's'}) == 's'
        assert pick_thumbnail(None) is None
        assert pick_thumbnail({}) is None

    def test_display_urls(self, omeka_record):
        assert thumbnail_url(omeka_record(1)) == 'https://archive.test/files/large/1.jpg'

    def test_alternate_spelling(self, omeka_record):
        record = omeka_record(1, thumbnail=None)
        record['o:thumbnail_display_urls'] = {'medium': 'https://archive.test/m.jpg'}
        assert thumbnail_url(record) == 'https://archive.test/m.jpg'

    def test_primary_media_then_media(self, omeka_record):
        record = omeka_record(1, thumbnail=None)
        record['o:media'] = [{'o:thumbnail_urls': {'square': 'https://archive.test/sq.jpg'}}]
        assert thumbnail_url(record) == 'https://archive.test/sq.jpg'
        record['o:primary_media'] = {'o:thumbnail_url': 'https://archive.test/primary.jpg'}
        assert thumbnail_url(record) == 'https://archive.test/primary.jpg'

    def test_placeholder_is_dropped(self, omeka_record):
        record = omeka_record(1, thumbnail='https://archive.test/application/pdf.png')
        assert thumbnail_url(record) is None

    def test_no_thumbnail(self, omeka_record):
        assert thumbnail_url(omeka_record(1, thumbnail=None)) is None


class TestIiif:
    def test_presentation_3_thumbnail(self):
        manifest = {'items': [{'thumbnail': [{'id': 'https://iiif.test/t.jpg'}]}]}
        assert iiif_manifest_thumbnail(manifest) == 'https://iiif.test/t.jpg'

    def test_presentation_3_body(self):
        manifest = {
            'items': [
                {'items': [{'items': [{'body': {'id': 'https://iiif.test/img/1/full/max/0/default.jpg'}}]}]}
            ]
        }
        assert iiif_manifest_thumbnail(manifest) == 'https://iiif.test/img/1/full/400,/0/default.jpg'

    def test_presentation_2(self):
        manifest = {
            'sequences': [
                {'canvases': [{'images': [{'resource': {'@id': 'https://iiif.test/i/full/full/0/default.jpg'}}]}]}
            ]
        }
        assert iiif_manifest_thumbnail(manifest) == 'https://iiif.test/i/full/400,/0/default.jpg'
        manifest['sequences'][0]['canvases'][0]['thumbnail'] = {'@id': 'https://iiif.test/small.jpg'}
        assert iiif_manifest_thumbnail(manifest) == 'https://iiif.test/small.jpg'

    def test_malformed(self):
        assert iiif_manifest_thumbnail(None) is None
        assert iiif_manifest_thumbnail({'items': []}) is None
        assert iiif_manifest_thumbnail({'sequences': [{}]}) is None


class TestDocumentSource:
    def test_manifest_source(self):
        source = document_source({'o:source': 'https://iiif.test/manifest.json'})
        assert source == DocumentSource(type='iiif', url='https://iiif.test/manifest.json')

    def test_iiif_ingester(self):
        source = document_source({'o:ingester': 'iiif', 'o:source': 'https://iiif.test/x'})
        assert source.type == 'iiif'

    def test_pdf(self):
        source = document_source(
            {'o:media_type': 'application/pdf', 'o:original_url': 'https://archive.test/a.pdf'}
        )
        assert source == DocumentSource(type='pdf', url='https://archive.test/a.pdf')

    def test_none(self):
        assert document_source({'o:media_type': 'image/jpeg'}) is None
        assert document_source(None) is None


class TestMedia:
    def test_media_type(self):
        assert media_type('application/pdf', None) == 'pdf'
        assert media_type('image/tiff', None) == 'image'
        assert media_type(None, 'https://x.test/a.MP3') == 'audio'
        assert media_type(None, 'https://x.test/a.webm') == 'video'
        assert media_type(None, 'https://x.test/a.bin') == 'other'

    def test_parse_media_skips_entries_without_file(self):
        record = {
            'o:media': [
                {'o:id': 5, 'o:original_url': 'https://x.test/a.pdf', 'o:media_type': 'application/pdf'},
                {'o:id': 6},
                'junk',
            ]
        }
        media = parse_media(record)
        assert len(media) == 1
        assert media[0].id == '5'
        assert media[0].type == 'pdf'


class TestRecordConversion:
    """Tests for to_archive_item() and to_item_detail()."""

    def test_archive_item(self, omeka_record):
        item = to_archive_item(omeka_record(42, title='Chemmeen', date='1956'), 'https://archive.test')
        assert item.id == '42'
        assert item.title == 'Chemmeen'
        assert item.year == 1956
        assert item.language == 'ml'
        assert item.type == 'book'
        assert item.collection == 'Periodicals'
        assert item.authors == ['Kumaran Asan']
        assert item.source_url == 'https://archive.test/item/42'
        assert item.has_thumbnail

    def test_issued_preferred_over_date(self, omeka_record):
        record = omeka_record(1, date='1900')
        record['dcterms:issued'] = [{'@value': '1911'}]
        assert to_archive_item(record, 'https://archive.test').year == 1911

    def test_sparse_record(self):
        item = to_archive_item({'o:id': 7}, 'https://archive.test')
        assert item.title == 'Untitled'
        assert item.year is None
        assert item.collection is None
        assert item.authors is None
        assert not item.has_thumbnail

    def test_item_detail(self, omeka_record):
        record = omeka_record(9)
        record['dcterms:description'] = [{'@value': 'A weekly.'}]
        record['dcterms:subject'] = [{'@value': 'Poetry'}]
        record['o:media'] = [{'o:original_url': 'https://archive.test/orig/9.jpg'}]
        source = DocumentSource(type='pdf', url='https://archive.test/9.pdf')
        detail = to_item_detail(record, 'https://archive.test', source)
        assert detail.description == 'A weekly.'
        assert detail.subjects == ['Poetry']
        assert detail.full_image_url == 'https://archive.test/orig/9.jpg'
        assert detail.media[0].type == 'image'
        assert detail.document_source == source

    def test_full_image_fallbacks(self, omeka_record):
        assert full_image_url(omeka_record(1)) == 'https://archive.test/files/large/1.jpg'
        assert full_image_url(omeka_record(1, thumbnail=None)) is None
        assert collection_name({'o:item_set': []}) is None
