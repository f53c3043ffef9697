"""
Utility modules for the PocketLegal application.
"""

from .formatting import format_duration, format_file_size, format_price, format_timestamp
from .geo import calculate_distance, format_coordinates, is_within_us

__all__ = [
    'format_duration',
    'format_file_size',
    'format_price',
    'format_timestamp',
    'calculate_distance',
    'format_coordinates',
    'is_within_us',
]
