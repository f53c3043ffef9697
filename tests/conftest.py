"""
tests/conftest.py
In-memory doubles for every external collaborator, plus session fixtures.
No network, camera or real database needed.
"""

import threading
import time

import pytest

from config.settings import Settings
from encounters.capture import ElapsedCounter
from encounters.errors import PositionError, ProviderError
from encounters.interfaces import (
    Address,
    BillingSubscription,
    CaptureDeviceProvider,
    CaptureStream,
    CheckoutSession,
    DocumentStore,
    GeolocationProvider,
    PaymentProvider,
    Position,
    RecordingStorage,
    ReverseGeocoder,
    ScriptGenerator,
    ScriptSet,
    StoredRecording,
)
from encounters.models import RecordingBlob, UserAccount
from encounters.session import UserSession


# ── CAPTURE ──────────────────────────────────────────────────

class FakeStream(CaptureStream):

    def __init__(self, data, finalize_error=None):
        self.data = data
        self.finalize_error = finalize_error
        self.finalized = False
        self.released = False

    def finalize(self):
        if self.finalize_error is not None:
            raise self.finalize_error
        self.finalized = True
        return RecordingBlob(data=self.data)

    def release(self):
        self.released = True


class FakeCaptureProvider(CaptureDeviceProvider):

    def __init__(self, error=None, data=b'fake-webm-recording', finalize_error=None):
        self.error = error
        self.data = data
        self.finalize_error = finalize_error
        self.requests = []
        self.stream = None

    def acquire(self, audio=True, video=True):
        self.requests.append((audio, video))
        if self.error is not None:
            raise self.error
        self.stream = FakeStream(self.data, self.finalize_error)
        return self.stream


# ── LOCATION ─────────────────────────────────────────────────

DENVER = Position(latitude=39.7392, longitude=-104.9903, accuracy=12.0)


class FakeGeolocation(GeolocationProvider):

    def __init__(self, position=DENVER, error=None, delay=0.0):
        self.position = position
        self.error = error
        self.delay = delay

    def get_current_position(self, timeout_ms):
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.position


class FakeGeocoder(ReverseGeocoder):

    def __init__(self, address=None, error=None):
        self.address = address or Address(
            formatted_address='Denver, Colorado, United States of America',
            city='Denver', state='Colorado', state_code='CO', country='United States of America',
        )
        self.error = error

    def reverse_geocode(self, latitude, longitude):
        if self.error is not None:
            raise self.error
        return self.address


# ── STORAGE ──────────────────────────────────────────────────

class FakeStorage(RecordingStorage):

    def __init__(self, fail=False, delay=0.0, fail_unpin=False):
        self.fail = fail
        self.delay = delay
        self.fail_unpin = fail_unpin
        self.uploads = []
        self.unpinned = []

    def upload(self, blob, metadata):
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise ProviderError('Pinata upload failed')
        reference = f"bafyfake{len(self.uploads):04d}"
        self.uploads.append((blob, metadata))
        return StoredRecording(reference=reference,
                               durable_url=f"https://gateway.example/ipfs/{reference}",
                               size=blob.size)

    def unpin(self, reference):
        if self.fail_unpin:
            raise ProviderError('Pinata unpin failed')
        self.unpinned.append(reference)
        return True


class FakeDocumentStore(DocumentStore):
    """
    Dict-backed store. `fail` is True (every call fails) or a set of
    operation names that fail.
    """

    def __init__(self, fail=None):
        self.fail = fail or set()
        self.users = {}
        self.encounters = {}
        self.subscription_updates = []
        self.calls = []
        self._lock = threading.Lock()

    def _check(self, operation):
        with self._lock:
            self.calls.append(operation)
        if self.fail is True or operation in self.fail:
            raise ProviderError(f"{operation} failed")

    def upsert_user(self, account):
        self._check('upsert_user')
        self.users[account.user_id] = UserAccount(**vars(account))
        return True

    def get_user(self, user_id):
        self._check('get_user')
        return self.users.get(user_id)

    def update_subscription(self, user_id, status, customer_id=None, subscription_id=None):
        self._check('update_subscription')
        self.subscription_updates.append((user_id, status, customer_id, subscription_id))
        return True

    def create_encounter(self, encounter):
        self._check('create_encounter')
        self.encounters[encounter.encounter_id] = encounter
        return True

    def update_encounter(self, encounter_id, fields):
        self._check('update_encounter')
        if encounter_id not in self.encounters:
            raise LookupError(encounter_id)
        for key, value in fields.items():
            setattr(self.encounters[encounter_id], key, value)
        return True

    def delete_encounter(self, encounter_id):
        self._check('delete_encounter')
        return self.encounters.pop(encounter_id, None) is not None

    def get_user_encounters(self, user_id, limit=50):
        self._check('get_user_encounters')
        owned = [e for e in self.encounters.values() if e.user_id == user_id]
        return sorted(owned, key=lambda e: e.timestamp, reverse=True)[:limit]


# ── PAYMENTS / SCRIPTS ───────────────────────────────────────

class FakePaymentProvider(PaymentProvider):

    def __init__(self, status='active', fail_checkout=False, fail_verify=False, fail_cancel=False):
        self.status = status
        self.fail_checkout = fail_checkout
        self.fail_verify = fail_verify
        self.fail_cancel = fail_cancel
        self.checkouts = []
        self.canceled = []

    def create_checkout(self, user_id, email):
        if self.fail_checkout:
            raise ProviderError('card declined')
        self.checkouts.append((user_id, email))
        return CheckoutSession(session_id='cs_test_1', url='https://checkout.example/cs_test_1')

    def verify_checkout(self, session_id):
        if self.fail_verify:
            raise ProviderError('verification failed')
        return BillingSubscription(subscription_id='sub_test_1', status=self.status, customer_id='cus_test_1')

    def cancel(self, subscription_id):
        if self.fail_cancel:
            raise ProviderError('cancel failed')
        self.canceled.append(subscription_id)
        return {'status': 'canceled'}

    def create_portal_session(self, customer_id):
        return f"https://billing.example/{customer_id}"


class FakeScriptGenerator(ScriptGenerator):

    def __init__(self, scripts=None, error=None, summary='Know your rights summary.'):
        self.scripts = scripts if scripts is not None else [
            {'text': 'I do not consent to searches.', 'usage': 'Searches', 'priority': 'high'},
        ]
        self.error = error
        self.summary = summary
        self.calls = []

    def generate_scripts(self, scenario, jurisdiction, language='en', context=None):
        self.calls.append((scenario, jurisdiction, language))
        if self.error is not None:
            raise self.error
        return ScriptSet(scripts=list(self.scripts), guidance='Generated guidance',
                         jurisdiction_notes=f"{jurisdiction} notes", language=language, generated=True)

    def generate_summary(self, location, scenario, language='en'):
        if self.error is not None:
            raise self.error
        return self.summary


# ── FIXTURES ─────────────────────────────────────────────────

@pytest.fixture
def settings():
    return Settings(
        database_url='sqlite:///:memory:',
        pinata_api_key='test-key',
        pinata_secret_api_key='test-secret',
        upload_timeout=0.5,
        location_timeout_ms=200,
        remote_sync_timeout=2.0,
    )


@pytest.fixture
def account():
    return UserAccount(user_id='user-1', email='user@example.com')


@pytest.fixture
def store():
    return FakeDocumentStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def payments():
    return FakePaymentProvider()


@pytest.fixture
def counters():
    """Counter factory that never ticks on its own; tests call tick()."""
    created = []

    def factory():
        counter = ElapsedCounter(autostart=False)
        created.append(counter)
        return counter

    factory.created = created
    return factory


@pytest.fixture
def session(account, settings, payments, store, storage):
    user_session = UserSession(account, settings, payments, store=store, recording_storage=storage)
    yield user_session
    user_session.shutdown()


@pytest.fixture
def record(session, counters):
    """Run start -> tick -> stop on the session's recorder."""

    def _record(seconds=3, provider=None, geolocation=None, geocoder=None):
        provider = provider or FakeCaptureProvider()
        session.recorder.start(provider, geolocation=geolocation, geocoder=geocoder,
                               counter_factory=counters)
        for _ in range(seconds):
            counters.created[-1].tick()
        session.recorder.stop()
        return provider

    return _record


POSITION_DENIED = PositionError('Location access denied by user', code=PositionError.PERMISSION_DENIED)
