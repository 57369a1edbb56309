import pytest
import requests
from firebase_admin import firestore as firebase_firestore
from google.api_core import exceptions as google_exceptions

from idverify import create_app, db
from idverify.models import AdminSession
from idverify.storage import get_store
from idverify.storage.firestore import FirestoreRecordStore
from idverify.utils import utcnow

BASE_URL = 'https://ids.example.org/'


@pytest.fixture
def app():
    # No app context is held here: every request pushes its own, so the
    # session cookie and user loader run as they do in production.
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'RECORD_STORE': 'local',
        'ADVISOR': 'local',
        'BASE_URL': BASE_URL,
        'DEFAULT_VALID_TILL': '2025-12-31',
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


class ContextStore:
    """Record store wrapper giving each call its own short-lived app context."""

    def __init__(self, app, store):
        self._app = app
        self._store = store

    def __getattr__(self, name):
        attr = getattr(self._store, name)
        if not callable(attr):
            return attr

        def call(*args, **kwargs):
            with self._app.app_context():
                return attr(*args, **kwargs)
        return call


@pytest.fixture
def store(app):
    with app.app_context():
        return ContextStore(app, get_store())


@pytest.fixture
def admin(store):
    return AdminSession.for_settings(store.get_admin_settings())


@pytest.fixture
def client(app):
    return app.test_client()


def login(client, username='admin', password='admin123'):
    return client.post('/auth/login', data={'username': username, 'password': password})


@pytest.fixture
def logged_in(client):
    response = login(client)
    assert response.status_code == 302
    return client


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = '' if payload is None else str(payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error', response=self)


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return None if self._data is None else dict(self._data)


class FakeDocument:
    def __init__(self, client, collection, doc_id):
        self.client = client
        self.path = f'{collection}/{doc_id}'
        self.id = doc_id

    def _stamp(self, data):
        return {
            key: utcnow() if value is firebase_firestore.SERVER_TIMESTAMP else value
            for key, value in data.items()
        }

    def get(self, timeout=None):
        self.client.record('get', self.path, timeout)
        return FakeSnapshot(self.id, self.client.docs.get(self.path))

    def create(self, data, timeout=None):
        self.client.record('create', self.path, timeout)
        if self.path in self.client.docs:
            raise google_exceptions.AlreadyExists(f'{self.path} already exists')
        self.client.docs[self.path] = self._stamp(data)

    def set(self, data, timeout=None):
        self.client.record('set', self.path, timeout)
        self.client.docs[self.path] = self._stamp(data)

    def update(self, data, timeout=None):
        self.client.record('update', self.path, timeout, data)
        if self.path not in self.client.docs:
            raise google_exceptions.NotFound(f'No document to update: {self.path}')
        self.client.docs[self.path].update(self._stamp(data))

    def delete(self, timeout=None):
        self.client.record('delete', self.path, timeout)
        self.client.docs.pop(self.path, None)


class FakeQuery:
    def __init__(self, client, collection, field, direction):
        self.client = client
        self.collection = collection
        self.field = field
        self.direction = direction

    def stream(self, timeout=None):
        self.client.record('stream', self.collection, timeout)
        prefix = f'{self.collection}/'
        rows = [
            FakeSnapshot(path[len(prefix):], data)
            for path, data in self.client.docs.items() if path.startswith(prefix)
        ]
        descending = self.direction == firebase_firestore.Query.DESCENDING
        rows.sort(key=lambda s: str(s.to_dict().get(self.field, '')), reverse=descending)
        return iter(rows)


class FakeCollection:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    def document(self, doc_id):
        return FakeDocument(self.client, self.name, doc_id)

    def order_by(self, field, direction=None):
        return FakeQuery(self.client, self.name, field, direction)


class FakeFirestoreClient:
    """Just enough of the Firestore client surface for the record store."""

    def __init__(self):
        self.docs = {}
        self.calls = []
        self.fail_with = None

    def record(self, method, path, timeout, data=None):
        self.calls.append({'method': method, 'path': path, 'timeout': timeout, 'data': data})
        if self.fail_with is not None:
            raise self.fail_with

    def collection(self, name):
        return FakeCollection(self, name)


@pytest.fixture
def firestore():
    fake = FakeFirestoreClient()
    return FirestoreRecordStore(fake, timeout=3), fake
