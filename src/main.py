"""Main entry point for the gpura canvas gallery service."""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from aiohttp import web

from canvas.seed import SessionSeed
from domain.settings import CanvasSettings, dump_settings, load_settings
from infrastructure.http.client import (
    cleanup_sqlite_cache,
    resolve_cache_dir,
    validate_upstream_api,
)
from providers.factory import create_provider
from server.api import create_app
from shared.constants import ProviderKind
from shared.diagnostics import log_memory_usage, log_task_status
from tiles.loader import TileLoader

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO') -> Path:
    """Configure logging to stdout and to a file in the user state dir.

    Returns:
        Path of the log file.
    """
    state_base = Path(os.getenv('XDG_STATE_HOME') or Path.home() / '.local' / 'state')
    log_dir = state_base / 'gpura-canvas' / 'log'
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / 'gpura_canvas.log'

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(str(log_file), encoding='utf-8'),
        ],
    )
    return log_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='gpura canvas - infinite-canvas gallery over an Omeka S archive'
    )
    parser.add_argument('--config', help='Path to a TOML settings file')
    parser.add_argument(
        '--mock', action='store_true', help='Use the synthetic mock provider'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    serve = sub.add_parser('serve', help='Run the HTTP API')
    serve.add_argument('--host', help='Bind address (overrides config)')
    serve.add_argument('--port', type=int, help='Port (overrides config)')

    tile = sub.add_parser('tile', help='Load one tile and print it as JSON')
    tile.add_argument('tx', type=int)
    tile.add_argument('ty', type=int)
    tile.add_argument('--q', default='', help='Search query')
    tile.add_argument('--filters', default=None, help='Filters as JSON')

    sub.add_parser('config', help='Print the effective settings as TOML')
    sub.add_parser('check', help='Check that the Omeka S items endpoint responds')
    return parser


def resolve_settings(args: argparse.Namespace) -> CanvasSettings:
    settings = load_settings(args.config)
    if args.mock:
        settings = settings.model_copy(update={'provider': ProviderKind.MOCK})
    return settings


def run_serve(settings: CanvasSettings, args: argparse.Namespace) -> int:
    host = args.host or settings.host
    port = args.port or settings.port
    provider = create_provider(settings)
    app = create_app(provider, settings)
    log_memory_usage('before serving')
    log_task_status('before serving')
    logger.info('Serving on http://%s:%d (provider %s)', host, port, provider.name)
    web.run_app(app, host=host, port=port, print=None)
    if settings.http_cache_enabled:
        cache_dir = resolve_cache_dir(settings.http_cache_dir)
        if cache_dir is not None:
            cleanup_sqlite_cache(cache_dir)
    return 0


async def _load_one_tile(settings: CanvasSettings, args: argparse.Namespace) -> dict:
    provider = create_provider(settings)
    loader = TileLoader.from_settings(provider, settings)
    try:
        loader.set_query(args.q)
        if args.filters:
            loader.set_filters(json.loads(args.filters))
        lookup = await loader.load_tile(args.tx, args.ty)
        entry = lookup.entry
        return {
            'tileX': args.tx,
            'tileY': args.ty,
            'seed': loader.seed.value,
            'cache': lookup.status.value,
            'error': entry.error,
            'items': [
                item.model_dump(mode='json', by_alias=True, exclude_none=True)
                for item in entry.payload
            ],
        }
    finally:
        await loader.close()
        await provider.close()


def run_tile(settings: CanvasSettings, args: argparse.Namespace) -> int:
    result = asyncio.run(_load_one_tile(settings, args))
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 1 if result['error'] else 0


def run_check(settings: CanvasSettings) -> int:
    try:
        asyncio.run(
            validate_upstream_api(settings.omeka_base_url, settings.omeka_items_endpoint)
        )
    except RuntimeError as e:
        logger.error('%s', e)
        return 1
    logger.info('Upstream OK: %s%s', settings.omeka_base_url, settings.omeka_items_endpoint)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    try:
        settings = resolve_settings(args)
    except (FileNotFoundError, ValueError) as e:
        print(f'Invalid configuration: {e}', file=sys.stderr)
        return 2

    if args.command == 'config':
        print(dump_settings(settings), end='')
        return 0

    log_file = setup_logging(settings.log_level)
    logger.info('Starting gpura canvas (%s), log file %s', args.command, log_file)
    if settings.session_seed is not None:
        logger.info('Fixed session seed %d', SessionSeed(settings.session_seed).value)

    try:
        if args.command == 'serve':
            return run_serve(settings, args)
        if args.command == 'tile':
            return run_tile(settings, args)
        return run_check(settings)
    except Exception as e:
        logger.error('Command %s failed: %s', args.command, e, exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
