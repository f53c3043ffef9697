"""
Geocoding Service

Reverse geocoding through BigDataCloud, forward geocoding through
Nominatim, and a position provider fed by coordinates the browser reports.
"""

import logging
import requests

from encounters.errors import PositionError, ProviderError
from encounters.interfaces import Address, GeolocationProvider, Position, ReverseGeocoder

logger = logging.getLogger(__name__)

BIGDATACLOUD_URL = "https://api.bigdatacloud.net/data/reverse-geocode-client"
NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
USER_AGENT = "PocketLegal/1.0"


def _subdivision_code(value):
    # BigDataCloud returns ISO 3166-2 codes such as "US-CA"
    if value and '-' in value:
        return value.split('-', 1)[1]
    return value


class BigDataCloudGeocoder(ReverseGeocoder):

    def __init__(self, timeout=10, locality_language='en'):
        self.timeout = timeout
        self.locality_language = locality_language

    def reverse_geocode(self, latitude, longitude):
        params = {
            'latitude': latitude,
            'longitude': longitude,
            'localityLanguage': self.locality_language,
        }
        try:
            resp = requests.get(BIGDATACLOUD_URL, params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            logger.warning(f"Reverse geocoding error: {e}")
            raise ProviderError('Failed to get address information') from e
        except ValueError as e:
            raise ProviderError('Reverse geocoder returned invalid JSON') from e

        subdivision = data.get('principalSubdivision')
        country = data.get('countryName')
        if data.get('locality'):
            formatted = f"{data['locality']}, {subdivision}, {country}"
        else:
            formatted = f"{subdivision}, {country}"
        return Address(
            formatted_address=formatted,
            city=data.get('locality') or data.get('city'),
            state=subdivision,
            state_code=_subdivision_code(data.get('principalSubdivisionCode')),
            country=country,
            country_code=data.get('countryCode'),
            postal_code=data.get('postcode'),
        )


class NominatimGeocoder:
    """Forward geocoding (address to coordinates) via OpenStreetMap."""

    def __init__(self, timeout=10):
        self.timeout = timeout

    def geocode_address(self, address):
        """
        Look up coordinates for a free-text address.

        Returns:
            dict: latitude, longitude, formatted_address, bounding_box; None if not found
        """
        params = {'format': 'json', 'q': address, 'limit': 1}
        try:
            resp = requests.get(NOMINATIM_URL, params=params, timeout=self.timeout,
                                headers={'User-Agent': USER_AGENT})
            resp.raise_for_status()
            results = resp.json()
        except requests.RequestException as e:
            logger.warning(f"Geocoding error: {e}")
            raise ProviderError('Failed to geocode address') from e

        if not results:
            logger.info(f"Address not found: {address}")
            return None
        result = results[0]
        return {
            'latitude': float(result['lat']),
            'longitude': float(result['lon']),
            'formatted_address': result.get('display_name'),
            'bounding_box': result.get('boundingbox'),
        }


class ReportedPositionProvider(GeolocationProvider):
    """
    Position reported by the client.

    The browser resolves navigator.geolocation and posts the result (or
    its error code) along with the recording start request.
    """

    ERROR_MESSAGES = {
        PositionError.PERMISSION_DENIED: 'Location access denied by user',
        PositionError.POSITION_UNAVAILABLE: 'Location information unavailable',
        PositionError.TIMEOUT: 'Location request timed out',
    }

    def __init__(self, latitude=None, longitude=None, accuracy=None, error_code=None):
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy = accuracy
        self.error_code = error_code

    @classmethod
    def from_payload(cls, payload):
        payload = payload or {}
        return cls(
            latitude=payload.get('latitude'),
            longitude=payload.get('longitude'),
            accuracy=payload.get('accuracy'),
            error_code=payload.get('error_code'),
        )

    def get_current_position(self, timeout_ms):
        if self.error_code is not None:
            raise PositionError(self.ERROR_MESSAGES.get(self.error_code, 'Unknown location error'),
                                code=self.error_code)
        if self.latitude is None or self.longitude is None:
            raise PositionError('Location information unavailable',
                                code=PositionError.POSITION_UNAVAILABLE)
        return Position(latitude=float(self.latitude), longitude=float(self.longitude),
                        accuracy=self.accuracy)
