"""
tests/test_repository.py
Local-first encounter repository: identity, ordering, best-effort sync.
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeDocumentStore, FakeStorage
from encounters.events import EventChannel, Reconciler
from encounters.models import Encounter, RecordingBlob
from encounters.repository import EncounterRepository
from encounters.storage_router import StorageRouter

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def events():
    return EventChannel()


@pytest.fixture
def reconciler(events):
    rec = Reconciler(events, timeout=2.0)
    yield rec
    rec.shutdown()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def router(events, storage):
    return StorageRouter(storage, events, upload_timeout=1.0)


def make_repo(reconciler, store=None, router=None):
    return EncounterRepository('user-1', store=store, reconciler=reconciler, storage_router=router)


class TestAdd:

    def test_assigns_id_and_timestamp(self, reconciler):
        repo = make_repo(reconciler)
        stored = repo.add(Encounter(user_id='user-1', notes='pulled over'))
        assert stored.encounter_id
        assert stored.timestamp is not None
        assert repo.get(stored.encounter_id) is stored

    def test_new_encounter_at_head(self, reconciler):
        repo = make_repo(reconciler)
        repo.add(Encounter(user_id='user-1', timestamp=T0))
        newest = repo.add(Encounter(user_id='user-1', timestamp=T0 + timedelta(minutes=5)))
        assert repo.list_by_user('user-1')[0].encounter_id == newest.encounter_id

    def test_visible_even_when_remote_create_fails(self, reconciler, events):
        store = FakeDocumentStore(fail={'create_encounter'})
        repo = make_repo(reconciler, store)
        stored = repo.add(Encounter(user_id='user-1'))
        assert repo.list_by_user('user-1')[0].encounter_id == stored.encounter_id

        reconciler.flush()
        assert repo.count() == 1
        notices = events.drain()
        assert [n.operation for n in notices] == ['create_encounter']
        assert notices[0].kind == 'remote_sync_failed'

    def test_synced_to_store(self, reconciler):
        store = FakeDocumentStore()
        repo = make_repo(reconciler, store)
        stored = repo.add(Encounter(user_id='user-1'))
        reconciler.flush()
        assert stored.encounter_id in store.encounters

    def test_duplicate_id_rejected(self, reconciler):
        repo = make_repo(reconciler)
        repo.add(Encounter(user_id='user-1', encounter_id='42'))
        with pytest.raises(ValueError):
            repo.add(Encounter(user_id='user-1', encounter_id='42'))
        assert repo.count() == 1

    def test_other_user_rejected(self, reconciler):
        with pytest.raises(ValueError):
            make_repo(reconciler).add(Encounter(user_id='someone-else'))

    def test_unknown_type_kept(self, reconciler):
        stored = make_repo(reconciler).add(Encounter(user_id='user-1', type='checkpoint'))
        assert stored.type == 'checkpoint'

    def test_ids_unique_and_increasing(self, reconciler):
        repo = make_repo(reconciler)
        ids = [int(repo.new_encounter_id()) for _ in range(20)]
        assert ids == sorted(set(ids))


class TestUpdate:

    def test_merges_fields_and_marks_updated(self, reconciler):
        store = FakeDocumentStore()
        repo = make_repo(reconciler, store)
        stored = repo.add(Encounter(user_id='user-1', notes='first'))
        assert repo.update(stored.encounter_id, notes='second', type='questioning')

        updated = repo.get(stored.encounter_id)
        assert updated.notes == 'second'
        assert updated.type == 'questioning'
        assert updated.updated_at is not None
        assert updated.timestamp == stored.timestamp

        reconciler.flush()
        assert 'update_encounter' in store.calls

    def test_unknown_id_returns_false(self, reconciler):
        assert make_repo(reconciler).update('missing', notes='x') is False

    @pytest.mark.parametrize('field', ['encounter_id', 'user_id', 'timestamp'])
    def test_immutable_fields_rejected(self, reconciler, field):
        repo = make_repo(reconciler)
        stored = repo.add(Encounter(user_id='user-1'))
        with pytest.raises(ValueError):
            repo.update(stored.encounter_id, **{field: 'changed'})

    def test_unknown_field_rejected(self, reconciler):
        repo = make_repo(reconciler)
        stored = repo.add(Encounter(user_id='user-1'))
        with pytest.raises(ValueError):
            repo.update(stored.encounter_id, mood='bad')


class TestRemove:

    def test_removed_even_when_remote_delete_fails(self, reconciler, events):
        store = FakeDocumentStore(fail={'delete_encounter'})
        repo = make_repo(reconciler, store)
        stored = repo.add(Encounter(user_id='user-1'))
        assert repo.remove(stored.encounter_id)
        assert stored.encounter_id not in [e.encounter_id for e in repo.list_by_user('user-1')]

        reconciler.flush()
        assert repo.get(stored.encounter_id) is None
        assert [n.operation for n in events.drain()] == ['delete_encounter']

    def test_unknown_id_returns_false(self, reconciler):
        assert make_repo(reconciler).remove('missing') is False

    def test_durable_recording_unpinned(self, reconciler, router, storage):
        repo = make_repo(reconciler, FakeDocumentStore(), router)
        reference = router.store(RecordingBlob(data=b'x'), {}, True, True)
        stored = repo.add(Encounter(user_id='user-1', recording=reference))
        repo.remove(stored.encounter_id)
        reconciler.flush()
        assert storage.unpinned == [reference.content_hash]

    def test_unpin_failure_reported(self, reconciler, router, storage, events):
        storage.fail_unpin = True
        repo = make_repo(reconciler, None, router)
        reference = router.store(RecordingBlob(data=b'x'), {}, True, True)
        stored = repo.add(Encounter(user_id='user-1', recording=reference))
        assert repo.remove(stored.encounter_id)
        reconciler.flush()
        assert [n.operation for n in events.drain()] == ['unpin_recording']

    def test_local_recording_revoked(self, reconciler, router):
        repo = make_repo(reconciler, None, router)
        reference = router.store(RecordingBlob(data=b'x'), {}, False, True)
        stored = repo.add(Encounter(user_id='user-1', recording=reference))
        repo.remove(stored.encounter_id)
        assert router.local.get(reference.url) is None


class TestListAndLoad:

    def test_list_most_recent_first(self, reconciler):
        repo = make_repo(reconciler)
        for minutes in (10, 0, 5):
            repo.add(Encounter(user_id='user-1', timestamp=T0 + timedelta(minutes=minutes)))
        stamps = [e.timestamp for e in repo.list_by_user('user-1')]
        assert stamps == sorted(stamps, reverse=True)

    def test_load_merges_store_behind_local(self, reconciler):
        store = FakeDocumentStore()
        store.encounters['100'] = Encounter(user_id='user-1', encounter_id='100', timestamp=T0, notes='remote')
        store.encounters['200'] = Encounter(user_id='user-1', encounter_id='200',
                                            timestamp=T0 + timedelta(hours=1), notes='remote')
        repo = make_repo(reconciler, store)
        repo.add(Encounter(user_id='user-1', encounter_id='200', timestamp=T0 + timedelta(hours=1),
                           notes='local'))

        assert repo.load() == 1
        assert repo.count() == 2
        assert repo.get('200').notes == 'local'
        assert int(repo.new_encounter_id()) > 200

    def test_load_failure_reported(self, reconciler, events):
        repo = make_repo(reconciler, FakeDocumentStore(fail=True))
        assert repo.load() == 0
        assert [n.operation for n in events.drain()] == ['load_encounters']
