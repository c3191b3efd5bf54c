"""
Diagnostic utilities.

Resource snapshots logged at startup and after cache sweeps, so that a
long panning session that touches thousands of tiles can be checked for
unbounded growth.
"""

import asyncio
import logging
import threading
from typing import Any

import psutil

logger = logging.getLogger(__name__)


def get_memory_info() -> dict[str, Any]:
    """Get process and system memory usage."""
    try:
        process = psutil.Process()
        memory_info = process.memory_info()
        system_memory = psutil.virtual_memory()

        return {
            'process_rss_mb': round(memory_info.rss / 1024 / 1024, 2),
            'process_vms_mb': round(memory_info.vms / 1024 / 1024, 2),
            'system_available_mb': round(system_memory.available / 1024 / 1024, 2),
            'system_used_percent': system_memory.percent,
        }
    except psutil.Error as e:
        return {'error': f'Failed to get memory info: {e}'}


def get_task_info() -> dict[str, Any]:
    """Get thread count and, inside a running loop, asyncio task count."""
    info: dict[str, Any] = {'active_threads': threading.active_count()}
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return info
    info['asyncio_tasks'] = len(asyncio.all_tasks(loop))
    return info


def log_memory_usage(context: str = '') -> None:
    """Quick memory usage logging."""
    memory_info = get_memory_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Memory usage%s: RSS=%sMB, Available=%sMB',
        context_label,
        memory_info.get('process_rss_mb', 'N/A'),
        memory_info.get('system_available_mb', 'N/A'),
    )


def log_task_status(context: str = '') -> None:
    """Quick thread/task status logging."""
    task_info = get_task_info()
    context_label = f' ({context})' if context else ''
    logger.info(
        'Task status%s: threads=%s, asyncio tasks=%s',
        context_label,
        task_info.get('active_threads', 'N/A'),
        task_info.get('asyncio_tasks', 'N/A'),
    )
