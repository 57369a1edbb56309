import logging

from flask import current_app

from idverify.errors import DuplicateRecordError
from idverify.storage.base import RecordStore
from idverify.storage.firestore import FirestoreRecordStore, firestore_client
from idverify.storage.local import LocalRecordStore

logger = logging.getLogger(__name__)


def build_store(config):
    """Pick the record store backend named by ``RECORD_STORE``."""
    backend = config.get('RECORD_STORE', 'local')
    if backend == 'local':
        return LocalRecordStore()
    if backend == 'firestore':
        if not config.get('FIRESTORE_PROJECT_ID'):
            raise ValueError('FIRESTORE_PROJECT_ID is required for the firestore record store')
        client = firestore_client(
            config['FIRESTORE_PROJECT_ID'],
            credentials_file=config.get('FIRESTORE_CREDENTIALS'),
            database=config.get('FIRESTORE_DATABASE', '(default)'),
        )
        return FirestoreRecordStore(client, timeout=config.get('FIRESTORE_TIMEOUT', 10))
    raise ValueError(f'Unknown RECORD_STORE backend: {backend}')


def get_store():
    return current_app.extensions['record_store']


def copy_store(source, target):
    """Copy every record and the admin credentials from one store to another.

    Records go oldest-first so the target keeps the same ordering; records
    already present in the target are skipped. Returns ``(copied, skipped)``.
    """
    copied = skipped = 0
    for employee in reversed(source.list()):
        try:
            target.create(employee)
            copied += 1
        except DuplicateRecordError:
            logger.info(f"Record {employee.id} already in {target.name}, skipped")
            skipped += 1

    target.save_admin_settings(source.get_admin_settings())
    return copied, skipped


__all__ = ['RecordStore', 'LocalRecordStore', 'FirestoreRecordStore', 'build_store', 'get_store', 'copy_store']
