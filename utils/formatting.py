"""
Display Formatting

Durations, file sizes, prices and timestamps as shown to the user.
"""

import math
from datetime import datetime, timezone
import pytz


def format_duration(seconds):
    """
    Format elapsed recording time as MM:SS.

    Args:
        seconds (int): elapsed whole seconds

    Returns:
        str: e.g. "02:05"
    """
    seconds = int(seconds or 0)
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining:02d}"


def format_file_size(size_bytes):
    if size_bytes == 0:
        return '0 Bytes'
    units = ['Bytes', 'KB', 'MB', 'GB']
    i = min(int(math.floor(math.log(size_bytes, 1024))), len(units) - 1)
    value = round(size_bytes / (1024 ** i), 2)
    return f"{value:g} {units[i]}"


def format_price(amount_cents, currency='USD'):
    """Format a Stripe amount (in cents)."""
    symbol = '$' if currency.upper() == 'USD' else f"{currency.upper()} "
    return f"{symbol}{amount_cents / 100:,.2f}"


def format_timestamp(timestamp, timezone_name='America/Denver'):
    """
    Render a timestamp in the user's timezone.

    Args:
        timestamp (datetime | str): aware/naive datetime or ISO string; naive values are UTC
        timezone_name (str): Olson timezone name

    Returns:
        str: e.g. "03/16/2025 02:30 PM"
    """
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    try:
        tz = pytz.timezone(timezone_name)
    except pytz.UnknownTimeZoneError:
        tz = pytz.utc
    return timestamp.astimezone(tz).strftime('%m/%d/%Y %I:%M %p')
