"""HTTP API: /api/tiles, /api/search, /api/item/{id}, /api/health."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from aiohttp import web

from canvas.seed import SessionSeed
from domain.filters import parse_filters_param
from providers.base import ProviderError
from services.search_service import SearchService
from services.tile_service import TileService
from shared.constants import (
    ITEMS_PER_TILE,
    MAX_CONCURRENT_REQUESTS,
    SEARCH_CACHE_CONTROL,
    SEARCH_DEFAULT_PAGE_SIZE,
    SEARCH_PAGE_SIZE,
    TILE_CACHE_CONTROL,
    TILE_UPSTREAM_PAGE_SIZE,
)
from shared.diagnostics import get_memory_info

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from domain.settings import CanvasSettings
    from providers.base import ContentProvider

logger = logging.getLogger(__name__)

NO_STORE = 'no-store'


@dataclass
class GalleryServices:
    provider: ContentProvider
    tiles: TileService
    search: SearchService


SERVICES_KEY = web.AppKey('services', GalleryServices)


class BadParameter(ValueError):
    pass


def _json_error(status: int, message: str, **extra: Any) -> web.Response:
    return web.json_response({'error': message, **extra}, status=status)


def _int_param(
    request: web.Request,
    name: str,
    default: int | None = None,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    raw = request.query.get(name)
    if raw is None or raw == '':
        if default is None:
            msg = f'Missing parameter: {name}'
            raise BadParameter(msg)
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f'Invalid integer for {name}: {raw!r}'
        raise BadParameter(msg) from None
    if (minimum is not None and value < minimum) or (
        maximum is not None and value > maximum
    ):
        msg = f'{name} out of range: {value}'
        raise BadParameter(msg)
    return value


def _dump(model: Any) -> Any:
    return model.model_dump(mode='json', by_alias=True, exclude_none=True)


@web.middleware
async def error_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    try:
        return await handler(request)
    except BadParameter as e:
        return _json_error(400, str(e))
    except web.HTTPException:
        raise
    except Exception:
        logger.exception('Unhandled error for %s %s', request.method, request.path_qs)
        return _json_error(500, 'Internal server error')


async def handle_tiles(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    if 'tx' not in request.query or 'ty' not in request.query:
        return _json_error(400, 'Missing tile coordinates (tx, ty)')
    tile_x = _int_param(request, 'tx')
    tile_y = _int_param(request, 'ty')
    limit = _int_param(
        request, 'limit', ITEMS_PER_TILE, minimum=1, maximum=TILE_UPSTREAM_PAGE_SIZE
    )
    seed_raw = request.query.get('seed')
    seed = _int_param(request, 'seed', minimum=0) if seed_raw else None
    query = request.query.get('q', '').strip()
    filters = parse_filters_param(request.query.get('filters'))

    result = await services.tiles.get_tile(
        tile_x, tile_y, query=query, filters=filters, limit=limit, seed=seed
    )
    headers = {
        'Cache-Control': NO_STORE if result.error else TILE_CACHE_CONTROL,
        'X-Cache': result.status.value,
    }
    return web.json_response(_dump(result.data), headers=headers)


async def handle_search(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    query = request.query.get('q', '')
    page = _int_param(request, 'page', 1, minimum=1)
    page_size = _int_param(
        request, 'pageSize', SEARCH_DEFAULT_PAGE_SIZE, minimum=1, maximum=SEARCH_PAGE_SIZE
    )
    filters = parse_filters_param(request.query.get('filters'))

    result = await services.search.search(query, filters, page, page_size)
    if result.error:
        return _json_error(
            502, 'Failed to search items', items=[], total=0, detail=result.error
        )
    headers = {'Cache-Control': SEARCH_CACHE_CONTROL, 'X-Cache': result.status.value}
    return web.json_response(_dump(result.data), headers=headers)


async def handle_item(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    item_id = request.match_info.get('item_id', '').strip()
    if not item_id:
        return _json_error(400, 'Missing item ID')
    try:
        item = await services.provider.get_item_detail(item_id)
    except ProviderError as e:
        logger.warning('Item %s lookup failed: %s', item_id, e)
        return _json_error(502, 'Failed to fetch item')
    if item is None:
        return _json_error(404, 'Item not found')
    return web.json_response(_dump(item))


async def handle_health(request: web.Request) -> web.Response:
    services = request.app[SERVICES_KEY]
    return web.json_response(
        {
            'status': 'ok',
            'provider': services.provider.name,
            'sessionSeed': services.tiles.seed.value,
            'caches': [
                asdict(services.tiles.cache.stats()),
                asdict(services.search.cache.stats()),
            ],
            'coordinators': [
                asdict(services.tiles.coordinator.stats()),
                asdict(services.search.coordinator.stats()),
            ],
            'memory': get_memory_info(),
        },
        headers={'Cache-Control': NO_STORE},
    )


async def _close_services(app: web.Application) -> None:
    services = app[SERVICES_KEY]
    await services.tiles.close()
    await services.search.close()
    await services.provider.close()
    logger.info('Services closed')


def create_app(
    provider: ContentProvider,
    settings: CanvasSettings | None = None,
    *,
    seed: SessionSeed | None = None,
) -> web.Application:
    """Build the aiohttp application around one provider."""
    if seed is None:
        seed = SessionSeed(settings.session_seed if settings is not None else None)
    if settings is not None:
        tiles = TileService(
            provider,
            seed=seed,
            fresh_ttl=settings.tile_fresh_ttl_s,
            stale_ttl=settings.tile_stale_ttl_s,
            sweep_threshold=settings.tile_sweep_threshold,
            max_concurrent=settings.max_concurrent_requests,
        )
        search = SearchService(
            provider,
            fresh_ttl=settings.search_fresh_ttl_s,
            stale_ttl=settings.search_stale_ttl_s,
            sweep_threshold=settings.search_sweep_threshold,
            max_concurrent=settings.max_concurrent_requests,
        )
    else:
        tiles = TileService(provider, seed=seed, max_concurrent=MAX_CONCURRENT_REQUESTS)
        search = SearchService(provider)

    app = web.Application(middlewares=[error_middleware])
    app[SERVICES_KEY] = GalleryServices(provider=provider, tiles=tiles, search=search)
    app.add_routes(
        [
            web.get('/api/tiles', handle_tiles),
            web.get('/api/search', handle_search),
            web.get('/api/item/{item_id}', handle_item),
            web.get('/api/health', handle_health),
        ]
    )
    app.on_cleanup.append(_close_services)
    return app
