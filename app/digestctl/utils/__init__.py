"""Utility modules for digestctl.

This module exports commonly used console helpers.
"""

from digestctl.utils.formatting import (
    console,
    create_stats_table,
    err_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)

__all__ = [
    "console",
    "create_stats_table",
    "err_console",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
]
