"""Shared utilities and helpers."""
from shared.debounce import Debouncer
from shared.diagnostics import log_memory_usage, log_task_status

__all__ = [
    'Debouncer',
    'log_memory_usage',
    'log_task_status',
]
