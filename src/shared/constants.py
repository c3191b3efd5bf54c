from enum import Enum

# Upstream Omeka S installation (overridable via settings / environment)
OMEKA_BASE_URL = 'https://gpura.org'
OMEKA_ITEMS_ENDPOINT = '/api/items'

# Card geometry (px)
CARD_WIDTH = 160
CARD_HEIGHT = 200
# Gap between cards
CARD_GAP = 24

# Tile grid arity: 5x5 cards per tile
COLS_PER_TILE = 5
ROWS_PER_TILE = 5
ITEMS_PER_TILE = COLS_PER_TILE * ROWS_PER_TILE

# Derived tile size in world pixels
TILE_WIDTH = COLS_PER_TILE * (CARD_WIDTH + CARD_GAP)
TILE_HEIGHT = ROWS_PER_TILE * (CARD_HEIGHT + CARD_GAP)

# Extra screen-space margin kept around the viewport when culling
CULL_MARGIN = 300

# Tiles padded around the visible range to avoid pop-in while panning
TILE_PADDING = 1

# Maximum card tilt in tile mode (degrees, symmetric)
ROTATION_MAX_DEG = 3.0
# Maximum card tilt in search mode (degrees, symmetric)
SEARCH_ROTATION_MAX_DEG = 2.0

# Large odd multipliers for per-item rotation seeding
ROTATION_SEED_K1 = 73856093
ROTATION_SEED_K2 = 19349663

# Dense grid layouts (search mode / repacked filters)
GRID_MIN_COLUMNS = 3
GRID_FALLBACK_VIEWPORT_WIDTH = 1200
SEARCH_GRID_TOP_PX = 80
SEARCH_ROWS_PER_PSEUDO_TILE = 5

# Session seed range [0, SESSION_SEED_MAX)
SESSION_SEED_MAX = 10_000

# Prime strides spreading adjacent tiles across upstream pages
TILE_PRIME_X = 7
TILE_PRIME_Y = 11
TILE_MAX_PAGES = 100
# Offset applied to negative tile coordinates before folding
TILE_NEGATIVE_OFFSET = 100
TILE_SHUFFLE_X_FACTOR = 1000

# Linear congruential generator used for deterministic shuffles
LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7FFFFFFF

# Upstream items requested per tile (extra to compensate thumbnail filtering)
TILE_UPSTREAM_PAGE_SIZE = 50
# Media detail lookups per tile when resolving missing thumbnails
MAX_THUMBNAIL_FETCHES = 15

# Request coordinator
MAX_CONCURRENT_REQUESTS = 6

# Tile cache: fresh 30 min, stale grace until 1 h, sweep above 500 entries
TILE_CACHE_FRESH_TTL_S = 30 * 60
TILE_CACHE_STALE_TTL_S = 60 * 60
TILE_CACHE_SWEEP_THRESHOLD = 500

# Search cache: fresh 5 min, stale grace until 10 min, sweep above 100 entries
SEARCH_CACHE_FRESH_TTL_S = 5 * 60
SEARCH_CACHE_STALE_TTL_S = 10 * 60
SEARCH_CACHE_SWEEP_THRESHOLD = 100

# Search paging
SEARCH_PAGE_SIZE = 100
SEARCH_DEFAULT_PAGE_SIZE = 50
SEARCH_LOAD_MORE_THRESHOLD_PX = 500

# Sentinel for totals that cannot be known from a single page sample
UNKNOWN_TOTAL = -1

# Debounce delays (ms)
TILE_LOAD_DEBOUNCE_MS = 150
SEARCH_DEBOUNCE_MS = 350

# HTTP client
HTTP_TIMEOUT_DEFAULT = 20.0
HTTP_RETRIES_DEFAULT = 4
HTTP_BACKOFF_FACTOR = 1.6
HTTP_5XX_MIN = 500
HTTP_5XX_MAX = 600

# Optional on-disk HTTP cache for upstream responses
HTTP_CACHE_ENABLED = False
HTTP_CACHE_DIR = '.cache/http'
HTTP_CACHE_EXPIRE_HOURS = 1
HTTP_CACHE_RESPECT_HEADERS = True
HTTP_CACHE_STALE_IF_ERROR_HOURS = 6

# Cache-Control headers of the HTTP API
TILE_CACHE_CONTROL = 'public, max-age=1800, stale-while-revalidate=3600'
SEARCH_CACHE_CONTROL = 'public, max-age=300'

# API server defaults
API_DEFAULT_HOST = '127.0.0.1'
API_DEFAULT_PORT = 8080

CONFIG_DIR = 'configs'
DEFAULT_CONFIG_FILE = 'default.toml'


class ProviderKind(str, Enum):
    OMEKA = 'omeka'
    MOCK = 'mock'
    REMOTE = 'remote'


class CacheStatus(str, Enum):
    """Freshness of a cache lookup, also exposed as the X-Cache header."""

    HIT = 'HIT'
    STALE = 'STALE'
    MISS = 'MISS'


class SortOrder(str, Enum):
    ASC = 'asc'
    DESC = 'desc'


# Predefined period filters: label -> (min year, max year), bounds inclusive
TIME_RANGES: tuple[tuple[str, int | None, int | None], ...] = (
    ('Before 1900', None, 1899),
    ('1900–1947', 1900, 1947),
    ('1947–1975', 1948, 1975),
    ('1975–2000', 1976, 2000),
    ('After 2000', 2001, None),
)

# Dublin Core properties used by the gpura installation
PROPERTY_MAP: dict[str, str] = {
    'title': 'dcterms:title',
    'creator': 'dcterms:creator',
    'date': 'dcterms:date',
    'issued': 'dcterms:issued',
    'language': 'dcterms:language',
    'type': 'dcterms:type',
    'description': 'dcterms:description',
    'subject': 'dcterms:subject',
    'publisher': 'dcterms:publisher',
    'rights': 'dcterms:rights',
}

# Upstream language values -> ISO codes
LANGUAGE_MAP: dict[str, str] = {
    'malayalam': 'ml',
    'english': 'en',
    'tamil': 'ta',
    'sanskrit': 'sa',
    'hindi': 'hi',
    'kannada': 'kn',
    'telugu': 'te',
    'arabic': 'ar',
    'portuguese': 'pt',
    'dutch': 'nl',
    'german': 'de',
    'french': 'fr',
    'latin': 'la',
    'punjabi': 'pa',
    'ml': 'ml',
    'en': 'en',
    'ta': 'ta',
    'sa': 'sa',
    'hi': 'hi',
}

# Upstream resource types -> canonical types
TYPE_MAP: dict[str, str] = {
    'book': 'book',
    'periodical': 'periodical',
    'image': 'image',
    'still image': 'image',
    'audio': 'audio',
    'sound': 'audio',
    'video': 'video',
    'moving image': 'video',
    'manuscript': 'manuscript',
    'text': 'book',
    'map': 'map',
    'newspaper': 'newspaper',
}

# Substrings marking Omeka placeholder thumbnails
PLACEHOLDER_THUMBNAIL_MARKERS = (
    '/application/',
    '/asset/',
    'default',
    'placeholder',
    'fallback',
)

# Preferred thumbnail sizes, best first
THUMBNAIL_SIZE_PREFERENCE = ('large', 'medium', 'square')

# IIIF image request used for thumbnails derived from manifests
IIIF_THUMBNAIL_SUFFIX = '/full/400,/0/default.jpg'
