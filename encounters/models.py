"""
Encounter Data Models

Plain data records shared by the encounter core: users and their
subscription state, encounters, recordings and location snapshots.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = 'Unknown location'
LOCATION_UNAVAILABLE = 'Location unavailable'


class SubscriptionStatus(str, Enum):
    FREE = 'free'
    PREMIUM = 'premium'
    ACTIVE = 'active'
    TRIALING = 'trialing'
    CANCELED = 'canceled'

    @classmethod
    def parse(cls, value):
        """
        Coerce a raw status string into a SubscriptionStatus.

        Billing statuses with no entitlement (past_due, unpaid, ...) map to FREE.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            logger.warning(f"Unknown subscription status {value!r}, treating as free")
            return cls.FREE


class EncounterType(str, Enum):
    TRAFFIC_STOP = 'traffic-stop'
    QUESTIONING = 'questioning'
    SEARCH_WARRANT = 'search-warrant'
    ARREST = 'arrest'
    SEARCH_CONSENT = 'search-consent'
    DETENTION = 'detention'
    HOME_VISIT = 'home-visit'


ENCOUNTER_TYPES = tuple(t.value for t in EncounterType)


def normalize_encounter_type(value):
    """
    Return the encounter type as a plain string.

    The set of types is open: unknown values are kept as given.
    """
    if isinstance(value, EncounterType):
        return value.value
    value = (value or EncounterType.TRAFFIC_STOP.value).strip()
    if value not in ENCOUNTER_TYPES:
        logger.info(f"Custom encounter type: {value}")
    return value


def utcnow():
    return datetime.now(timezone.utc)


@dataclass
class UserAccount:
    user_id: str
    email: str
    subscription_status: SubscriptionStatus = SubscriptionStatus.FREE
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    preferred_language: str = 'en'
    timezone: str = 'America/Denver'

    def to_dict(self):
        data = asdict(self)
        data['subscription_status'] = self.subscription_status.value
        return data


@dataclass
class RecordingBlob:
    """A finalized recording artifact."""
    data: bytes
    mime_type: str = 'video/webm'

    @property
    def size(self):
        return len(self.data)


@dataclass(frozen=True)
class RecordingReference:
    """
    Where a recording ended up.

    durable references point at content-addressed storage and survive
    restarts; local references are only valid for this process.
    """
    url: str
    durable: bool
    content_hash: Optional[str] = None

    @property
    def is_local(self):
        return not self.durable


@dataclass(frozen=True)
class LocationSnapshot:
    address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    state_code: Optional[str] = None
    available: bool = True

    @classmethod
    def unavailable(cls):
        return cls(address=LOCATION_UNAVAILABLE, available=False)

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


IMMUTABLE_ENCOUNTER_FIELDS = frozenset({'encounter_id', 'user_id', 'timestamp'})
MUTABLE_ENCOUNTER_FIELDS = frozenset({
    'type', 'location', 'latitude', 'longitude', 'accuracy',
    'notes', 'recording', 'duration',
})


@dataclass
class Encounter:
    user_id: str
    type: str = EncounterType.TRAFFIC_STOP.value
    location: str = UNKNOWN_LOCATION
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    notes: str = ''
    recording: Optional[RecordingReference] = None
    duration: Optional[int] = None
    encounter_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def coordinates(self):
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)

    @property
    def recording_url(self):
        return self.recording.url if self.recording else None

    def to_dict(self):
        return {
            'encounter_id': self.encounter_id,
            'user_id': self.user_id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'type': self.type,
            'location': self.location,
            'coordinates': list(self.coordinates) if self.coordinates else None,
            'accuracy': self.accuracy,
            'notes': self.notes,
            'recording_url': self.recording_url,
            'recording_durable': self.recording.durable if self.recording else None,
            'duration': self.duration,
        }
