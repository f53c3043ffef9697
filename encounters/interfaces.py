"""
Collaborator Interfaces

One abstract class per external service the encounter core talks to.
Concrete implementations live in webapp/services (HTTP/SaaS clients) and
config/database.py (document store); tests supply in-memory doubles.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Position:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None


@dataclass
class Address:
    formatted_address: str
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = None
    postal_code: Optional[str] = None


@dataclass
class StoredRecording:
    reference: str      # content hash (CID)
    durable_url: str
    size: Optional[int] = None


@dataclass
class CheckoutSession:
    session_id: str
    url: Optional[str] = None


@dataclass
class BillingSubscription:
    subscription_id: str
    status: str
    customer_id: Optional[str] = None


@dataclass
class ScriptSet:
    scripts: List[dict]
    guidance: str = ''
    jurisdiction_notes: str = ''
    language: str = 'en'
    generated: bool = False
    fallback_reason: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'scripts': self.scripts,
            'guidance': self.guidance,
            'jurisdiction_notes': self.jurisdiction_notes,
            'language': self.language,
            'generated': self.generated,
            'fallback_reason': self.fallback_reason,
        }


class CaptureStream(ABC):
    """A live capture handle returned by CaptureDeviceProvider.acquire()."""

    @abstractmethod
    def finalize(self):
        """Stop capturing and return the accumulated RecordingBlob."""
        ...

    @abstractmethod
    def release(self):
        """Release the device without producing a recording."""
        ...


class CaptureDeviceProvider(ABC):

    @abstractmethod
    def acquire(self, audio=True, video=True):
        """
        Open the capture device.

        Raises DevicePermissionError or DeviceError on failure.
        """
        ...


class GeolocationProvider(ABC):

    @abstractmethod
    def get_current_position(self, timeout_ms):
        """Return a Position or raise PositionError."""
        ...


class ReverseGeocoder(ABC):

    @abstractmethod
    def reverse_geocode(self, latitude, longitude):
        """Return an Address or raise ProviderError."""
        ...


class ScriptGenerator(ABC):

    @abstractmethod
    def generate_scripts(self, scenario, jurisdiction, language='en', context=None):
        """Return a ScriptSet or raise ProviderError."""
        ...

    def generate_summary(self, location, scenario, language='en'):
        """Optional free-text legal summary. Returns None when unsupported."""
        return None


class RecordingStorage(ABC):

    @abstractmethod
    def upload(self, blob, metadata):
        """Pin a recording. Returns StoredRecording or raises ProviderError."""
        ...

    @abstractmethod
    def unpin(self, reference):
        """Remove a pinned recording. Raises ProviderError on failure."""
        ...


class DocumentStore(ABC):
    """CRUD over user and encounter records. Local state stays authoritative."""

    @abstractmethod
    def upsert_user(self, account):
        ...

    @abstractmethod
    def get_user(self, user_id):
        ...

    @abstractmethod
    def update_subscription(self, user_id, status, customer_id=None, subscription_id=None):
        ...

    @abstractmethod
    def create_encounter(self, encounter):
        ...

    @abstractmethod
    def update_encounter(self, encounter_id, fields):
        ...

    @abstractmethod
    def delete_encounter(self, encounter_id):
        ...

    @abstractmethod
    def get_user_encounters(self, user_id, limit=50):
        ...


class PaymentProvider(ABC):

    @abstractmethod
    def create_checkout(self, user_id, email):
        """Start a checkout. Returns CheckoutSession or raises ProviderError."""
        ...

    @abstractmethod
    def verify_checkout(self, session_id):
        """Confirm a completed checkout. Returns BillingSubscription."""
        ...

    @abstractmethod
    def cancel(self, subscription_id):
        """Cancel a subscription. Raises ProviderError on failure."""
        ...

    def create_portal_session(self, customer_id):
        """Optional billing portal link. Returns a URL or None."""
        return None
