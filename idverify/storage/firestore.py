"""
Remote record store backed by a Firestore database through the Firebase
Admin SDK. One document per record in ``employees`` plus a singleton
``settings/admin`` document.
"""

import logging

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions as google_exceptions

from idverify.errors import DuplicateRecordError, StoreError
from idverify.models import DOCUMENT_KEYS, AdminSettings, Employee
from idverify.storage.base import RecordStore

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = 'idverify'
EMPLOYEES_COLLECTION = 'employees'
SETTINGS_COLLECTION = 'settings'
ADMIN_DOCUMENT = 'admin'


def firestore_client(project_id, credentials_file=None, database='(default)'):
    """Firestore client for a named Firebase app, initialised once per process.

    Uses the service account file when given, otherwise application default
    credentials.
    """
    try:
        app = firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        cred = credentials.Certificate(credentials_file) if credentials_file else credentials.ApplicationDefault()
        app = firebase_admin.initialize_app(cred, {'projectId': project_id}, name=FIREBASE_APP_NAME)
    if database and database != '(default)':
        return firestore.client(app, database_id=database)
    return firestore.client(app)


class FirestoreRecordStore(RecordStore):
    name = 'firestore'

    def __init__(self, client, timeout=10):
        self.db = client
        self.timeout = timeout

    def _employees(self):
        return self.db.collection(EMPLOYEES_COLLECTION)

    def _admin_ref(self):
        return self.db.collection(SETTINGS_COLLECTION).document(ADMIN_DOCUMENT)

    @staticmethod
    def _to_employee(snapshot):
        return Employee.from_document(snapshot.to_dict() or {}, record_id=snapshot.id)

    # -- records -------------------------------------------------------

    def list(self):
        query = self._employees().order_by('createdAt', direction=firestore.Query.DESCENDING)
        try:
            snapshots = list(query.stream(timeout=self.timeout))
        except google_exceptions.GoogleAPIError as e:
            logger.warning(f"Failed to load employees from Firestore: {e}")
            return []

        employees = []
        for snapshot in snapshots:
            try:
                employees.append(self._to_employee(snapshot))
            except (TypeError, ValueError, OverflowError, OSError) as e:
                logger.warning(f"Skipping unreadable employee document {snapshot.id}: {e}")
        return self.newest_first(employees)

    def get_by_id(self, record_id):
        try:
            snapshot = self._employees().document(str(record_id)).get(timeout=self.timeout)
            if not snapshot.exists:
                return None
            return self._to_employee(snapshot)
        except (google_exceptions.GoogleAPIError, TypeError, ValueError, OverflowError, OSError) as e:
            logger.warning(f"Failed to get employee {record_id}: {e}")
            return None

    def create(self, employee):
        self.prepare_new(employee)
        document = employee.to_document()
        document.pop('id')
        document['updatedAt'] = employee.updated_at or employee.created_at
        try:
            self._employees().document(employee.id).create(document, timeout=self.timeout)
        except google_exceptions.AlreadyExists as e:
            raise DuplicateRecordError(f'Record {employee.id} already exists') from e
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to add employee: {e}")
            raise StoreError('Could not add employee') from e
        return employee.id

    def update(self, record_id, fields):
        document = {}
        for name, value in fields.items():
            if name not in DOCUMENT_KEYS or name in ('id', 'created_at'):
                raise KeyError(f'{name} is not an updatable field')
            if name == 'custom_fields':
                value = [f.to_document() for f in value]
            document[DOCUMENT_KEYS[name]] = value
        document['updatedAt'] = firestore.SERVER_TIMESTAMP
        try:
            # update() only touches the given fields and fails if the document is gone
            self._employees().document(str(record_id)).update(document, timeout=self.timeout)
        except google_exceptions.NotFound:
            return False
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to update employee {record_id}: {e}")
            raise StoreError('Could not update employee') from e
        return True

    def delete(self, record_id):
        try:
            self._employees().document(str(record_id)).delete(timeout=self.timeout)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to delete employee {record_id}: {e}")
            raise StoreError('Could not delete employee') from e

    # -- admin settings ------------------------------------------------

    def get_admin_settings(self):
        try:
            snapshot = self._admin_ref().get(timeout=self.timeout)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to load admin settings: {e}")
            raise StoreError('Could not load admin settings') from e

        if not snapshot.exists:
            settings = AdminSettings.default()
            self.save_admin_settings(settings)
            logger.info("Created default admin settings")
            return settings

        data = snapshot.to_dict() or {}
        if not data.get('passwordHash'):
            logger.error("Admin settings document has no password hash")
            raise StoreError('Admin settings are unreadable')
        return AdminSettings.from_document(data)

    def save_admin_settings(self, settings):
        try:
            self._admin_ref().set(settings.to_document(), timeout=self.timeout)
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"Failed to save admin settings: {e}")
            raise StoreError('Could not save admin settings') from e
