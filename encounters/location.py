"""
Location Snapshot

Best-effort geographic fix for a capture session. Acquisition runs on its
own thread so that a slow or failing geolocation provider never holds up
recording start or stop; any failure degrades to "Location unavailable".
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from encounters.errors import ProviderError
from encounters.models import LocationSnapshot
from utils.geo import format_coordinates

logger = logging.getLogger(__name__)


def take_snapshot(geolocation, geocoder=None, timeout_ms=10000):
    """
    Acquire a location snapshot, never raising.

    Args:
        geolocation (GeolocationProvider): position source, may be None
        geocoder (ReverseGeocoder): optional address lookup
        timeout_ms (int): bound passed to the position provider

    Returns:
        LocationSnapshot: available=False when no fix could be obtained
    """
    if geolocation is None:
        return LocationSnapshot.unavailable()

    try:
        position = geolocation.get_current_position(timeout_ms)
    except ProviderError as e:
        logger.info(f"Location unavailable: {e}")
        return LocationSnapshot.unavailable()
    except Exception as e:
        logger.warning(f"Geolocation provider failed unexpectedly: {e}")
        return LocationSnapshot.unavailable()

    address = format_coordinates(position.latitude, position.longitude)
    state_code = None
    if geocoder is not None:
        try:
            resolved = geocoder.reverse_geocode(position.latitude, position.longitude)
            if resolved and resolved.formatted_address:
                address = resolved.formatted_address
                state_code = resolved.state_code
        except Exception as e:
            # Coordinates are still useful without an address
            logger.info(f"Reverse geocoding failed: {e}")

    return LocationSnapshot(
        address=address,
        latitude=position.latitude,
        longitude=position.longitude,
        accuracy=position.accuracy,
        state_code=state_code,
    )


class LocationTask:
    """
    One-shot background location acquisition.

    Started alongside a recording; the result is read later with a short
    bounded wait and falls back to an unavailable snapshot.
    """

    _executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='location')

    def __init__(self, geolocation, geocoder=None, timeout_ms=10000):
        self.timeout_ms = timeout_ms
        self._future = self._executor.submit(take_snapshot, geolocation, geocoder, timeout_ms)

    @property
    def done(self):
        return self._future.done()

    def result(self, wait_seconds=0.0):
        try:
            return self._future.result(timeout=wait_seconds)
        except FutureTimeout:
            logger.info("Location still pending, saving without it")
            return LocationSnapshot.unavailable()
        except Exception as e:
            logger.warning(f"Location task failed: {e}")
            return LocationSnapshot.unavailable()
