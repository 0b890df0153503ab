import json
from datetime import datetime

import pytest

from bigasan_pos.app_container import AppContainer
from bigasan_pos.config import AppConfig
from bigasan_pos.main import create_app
from bigasan_pos.repositories import OwnerRepository, StateStore
from bigasan_pos.services import AuthService, CloudSyncService, DataService


# ==============================================================================
# FIRESTORE EN MEMORIA
# ==============================================================================
# Imita la parte del cliente que usa CloudSyncService:
#   client.collection(c).document(d).get() / .set() / .on_snapshot(cb)
# Los listeners se notifican en el mismo hilo (con el snapshot inicial al
# suscribirse, igual que Firestore).
# ==============================================================================

class FakeSnapshot:
    def __init__(self, data):
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


class FakeWatch:
    def __init__(self, document, callback):
        self.document = document
        self.callback = callback
        self.active = True

    def unsubscribe(self):
        self.active = False
        if self in self.document.watches:
            self.document.watches.remove(self)


class FakeDocument:
    def __init__(self, db, doc_id):
        self.db = db
        self.id = doc_id
        self.data = None
        self.watches = []

    def get(self, **kwargs):
        if self.db.unreachable:
            raise RuntimeError('servicio no disponible')
        return FakeSnapshot(self.data)

    def set(self, data):
        if self.db.fail_writes:
            raise RuntimeError('escritura rechazada')
        self.data = dict(data)
        self.db.writes.append((self.id, self.data))
        self._notify()

    def on_snapshot(self, callback):
        watch = FakeWatch(self, callback)
        self.watches.append(watch)
        callback([FakeSnapshot(self.data)], [], None)
        return watch

    def _notify(self):
        for watch in list(self.watches):
            watch.callback([FakeSnapshot(self.data)], [], None)


class FakeCollection:
    def __init__(self, db, name):
        self.db = db
        self.name = name
        self.documents = {}

    def document(self, doc_id):
        if doc_id not in self.documents:
            self.documents[doc_id] = FakeDocument(self.db, doc_id)
        return self.documents[doc_id]


class FakeFirestore:
    def __init__(self):
        self.collections = {}
        self.writes = []
        self.unreachable = False
        self.fail_writes = False

    def collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    # Helpers para tests ------------------------------------------------

    def remote_value(self, doc_id, collection='pos'):
        data = self.collection(collection).document(doc_id).data
        return json.loads(data['data']) if data else None

    def put_remote(self, doc_id, value, collection='pos'):
        """Escritura hecha por otro dispositivo."""
        document = self.collection(collection).document(doc_id)
        document.data = {'data': json.dumps(value), 'updatedAt': None}
        document._notify()

    def listener_count(self, collection='pos'):
        return sum(len(d.watches) for d in self.collection(collection).documents.values())


# ==============================================================================
# FIXTURES
# ==============================================================================

@pytest.fixture
def now():
    # Naive = hora local
    return datetime(2025, 3, 5, 10, 30)


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def store():
    return StateStore()


@pytest.fixture
def sync(store, fake_db):
    service = CloudSyncService(store, background=False)
    service.connect(client=fake_db)
    yield service
    service.disconnect()


@pytest.fixture
def data(store, sync, tmp_path):
    auth = AuthService(OwnerRepository(str(tmp_path)), store)
    return DataService(store, sync=sync, auth_service=auth)


@pytest.fixture
def offline_data(store, tmp_path):
    auth = AuthService(OwnerRepository(str(tmp_path)), store)
    return DataService(store, sync=CloudSyncService(store, background=False), auth_service=auth)


@pytest.fixture
def container(tmp_path, fake_db):
    AppContainer.reset_instance()
    config = AppConfig(data_dir=str(tmp_path), secret_key='test-secret')
    c = AppContainer(config, firestore_client=fake_db, sync_background=False)
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def app(container):
    flask_app = create_app(container)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def logged_client(client):
    r = client.post('/api/login', json={'username': 'owner', 'password': '1234'})
    assert r.status_code == 200
    return client
