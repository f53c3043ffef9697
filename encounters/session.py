"""
User Session

Wires the encounter core together for the one signed-in user of a
running instance: account, repository, subscription manager, storage
router, notices, and the incident recorder flow that moves a recording
from capture through the entitlement check into storage.
"""

import logging
from datetime import datetime, timezone

from encounters.capture import CaptureSession, CaptureState
from encounters.entitlement import (
    can_create_encounter,
    describe_entitlement,
    has_premium_access,
)
from encounters.errors import CaptureInProgress, EntitlementDenied, InvalidCaptureState, RemoteSyncFailed
from encounters.events import EventChannel, Reconciler
from encounters.models import Encounter, UNKNOWN_LOCATION, normalize_encounter_type
from encounters.repository import EncounterRepository
from encounters.storage_router import StorageRouter, build_recording_metadata
from encounters.subscription import SubscriptionManager

logger = logging.getLogger(__name__)


class UserSession:
    """
    Args:
        account (UserAccount): the signed-in user
        settings (Settings): runtime configuration
        payments (PaymentProvider): checkout/cancel collaborator
        store (DocumentStore): remote persistence, or None
        recording_storage (RecordingStorage): durable storage client, or None
        events (EventChannel): notice channel; a new one is created if omitted
    """

    def __init__(self, account, settings, payments, store=None, recording_storage=None, events=None):
        self.account = account
        self.settings = settings
        self.store = store
        self.events = events or EventChannel()
        self.reconciler = Reconciler(self.events, timeout=settings.remote_sync_timeout)
        self.storage_router = StorageRouter(
            recording_storage, self.events, upload_timeout=settings.upload_timeout)
        self.repository = EncounterRepository(
            account.user_id, store=store, reconciler=self.reconciler,
            storage_router=self.storage_router)
        self.subscriptions = SubscriptionManager(
            account, payments, store=store, reconciler=self.reconciler)
        self.recorder = IncidentRecorder(self)

    @property
    def user_id(self):
        return self.account.user_id

    @property
    def remote_storage_available(self):
        return self.settings.remote_storage_available and self.storage_router.remote is not None

    def encounter_count(self):
        return self.repository.count(self.user_id)

    def can_create_encounter(self):
        return can_create_encounter(self.account.subscription_status, self.encounter_count())

    def has_premium_access(self):
        return has_premium_access(self.account.subscription_status)

    def entitlement(self):
        return describe_entitlement(self.account.subscription_status, self.encounter_count())

    def encounters(self):
        return self.repository.list_by_user(self.user_id)

    def restore(self):
        """
        Pull the account row and encounters from the document store.

        The account is created remotely when missing. Store failures are
        reported as notices and the session continues with local state.
        """
        if self.store is None:
            return
        try:
            stored = self.store.get_user(self.user_id)
        except Exception as e:
            # Never upsert over a row that could not be read
            logger.error(f"Could not load account {self.user_id}: {e}")
            self.events.report(RemoteSyncFailed('load_account', detail=str(e)))
        else:
            if stored is None:
                self.reconciler.submit('upsert_user', self.store.upsert_user, self.account)
            else:
                self._apply_stored_account(stored)
        self.repository.load()

    def _apply_stored_account(self, stored):
        self.account.subscription_status = stored.subscription_status
        self.account.customer_id = stored.customer_id
        self.account.subscription_id = stored.subscription_id
        self.account.preferred_language = stored.preferred_language
        self.account.timezone = stored.timezone

    def set_language(self, language):
        if language not in self.settings.supported_languages:
            raise ValueError(f"Unsupported language: {language}")
        self.account.preferred_language = language
        if self.store is not None:
            self.reconciler.submit('upsert_user', self.store.upsert_user, self.account)
        return self.account

    def delete_all_encounters(self):
        removed = 0
        for encounter in self.encounters():
            if self.repository.remove(encounter.encounter_id):
                removed += 1
        logger.info(f"Deleted {removed} encounters for {self.user_id}")
        return removed

    def shutdown(self):
        finished = self.reconciler.flush()
        self.reconciler.shutdown(wait_for_pending=finished)
        self.storage_router.shutdown()


class IncidentRecorder:
    """
    The recorder flow. Holds at most one capture session at a time.
    """

    def __init__(self, session):
        self.session = session
        self.active = None

    def start(self, device_provider, geolocation=None, geocoder=None, audio=True, video=True,
              counter_factory=None):
        """
        Begin a new recording.

        Raises:
            CaptureInProgress: a recording is running, or one is stopped but
                not yet saved or discarded
            DeviceAcquisitionFailed: the capture device could not be opened
        """
        if self.active is not None and self.active.state in (CaptureState.RECORDING, CaptureState.STOPPED):
            raise CaptureInProgress(detail={'state': self.active.state.value})

        kwargs = {}
        if counter_factory is not None:
            kwargs['counter_factory'] = counter_factory
        capture = CaptureSession(
            device_provider,
            geolocation=geolocation,
            geocoder=geocoder,
            location_timeout_ms=self.session.settings.location_timeout_ms,
            audio=audio,
            video=video,
            **kwargs,
        )
        capture.start()
        self.active = capture
        return capture

    def _require_active(self):
        if self.active is None or self.active.closed:
            raise InvalidCaptureState('There is no recording in progress.')
        return self.active

    def stop(self):
        return self._require_active().stop()

    def discard(self):
        capture = self._require_active()
        capture.discard()
        self.active = None

    def save(self, encounter_type=None, notes=''):
        """
        Save the stopped recording as a new encounter.

        The entitlement check runs here against the live encounter count,
        not the count when recording started.

        Returns:
            Encounter

        Raises:
            InvalidCaptureState: no stopped recording
            EntitlementDenied: free allowance used up
        """
        session = self.session
        capture = self._require_active()
        captured = capture.commit(session.can_create_encounter)
        self.active = None

        location = captured.location
        encounter = Encounter(
            user_id=session.user_id,
            encounter_id=session.repository.new_encounter_id(),
            timestamp=datetime.now(timezone.utc),
            type=normalize_encounter_type(encounter_type),
            location=location.address if location else UNKNOWN_LOCATION,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            accuracy=location.accuracy if location else None,
            notes=notes or '',
            duration=captured.duration,
        )
        encounter.recording = session.storage_router.store(
            captured.blob,
            build_recording_metadata(encounter),
            session.has_premium_access(),
            session.remote_storage_available,
        )
        return session.repository.add(encounter)

    def save_without_recording(self, encounter_type=None, notes='', location=None):
        """
        Save a notes-only encounter.

        Args:
            location (LocationSnapshot): optional location context
        """
        session = self.session
        if not session.can_create_encounter():
            raise EntitlementDenied()
        encounter = Encounter(
            user_id=session.user_id,
            type=normalize_encounter_type(encounter_type),
            location=location.address if location else UNKNOWN_LOCATION,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            accuracy=location.accuracy if location else None,
            notes=notes or '',
        )
        return session.repository.add(encounter)

    def status(self):
        if self.active is None:
            return {'state': CaptureState.IDLE.value, 'elapsed_seconds': 0, 'has_recording': False, 'error': None}
        return self.active.to_dict()
