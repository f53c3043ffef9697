"""
Geographic Helpers

Distance, coordinate formatting and a rough continental-US check.
"""

import math

EARTH_RADIUS_KM = 6371

# Continental US bounding box
US_LAT_RANGE = (24.396308, 49.384358)
US_LON_RANGE = (-125.0, -66.93457)


def calculate_distance(lat1, lon1, lat2, lon2):
    """
    Great-circle distance between two points.

    Returns:
        float: distance in kilometers
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def format_coordinates(latitude, longitude, precision=4):
    return f"{latitude:.{precision}f}, {longitude:.{precision}f}"


def is_within_us(latitude, longitude):
    return (US_LAT_RANGE[0] <= latitude <= US_LAT_RANGE[1] and
            US_LON_RANGE[0] <= longitude <= US_LON_RANGE[1])
