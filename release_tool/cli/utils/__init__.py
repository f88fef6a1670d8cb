"""CLI utility functions"""

from .output import (
    format_operation_result,
    format_status,
    format_history,
    print_error,
)

__all__ = [
    'format_operation_result',
    'format_status',
    'format_history',
    'print_error',
]
