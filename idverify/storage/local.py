"""
Local record store: the whole collection lives in one named slot of the
application database, serialized as a single JSON document.
"""

import json
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from idverify import db
from idverify.errors import DuplicateRecordError, StoreError
from idverify.models import AdminSettings, Employee, StoreSlot
from idverify.storage.base import RecordStore

logger = logging.getLogger(__name__)

EMPLOYEES_KEY = 'idverify_employees'
ADMIN_KEY = 'idverify_admin'


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f'Object of type {type(value).__name__} is not JSON serializable')


class LocalRecordStore(RecordStore):
    name = 'local'

    def __init__(self, employees_key=EMPLOYEES_KEY, admin_key=ADMIN_KEY):
        self.employees_key = employees_key
        self.admin_key = admin_key

    # -- slot access ---------------------------------------------------

    def _read_slot(self, key):
        """Decoded slot content, ``None`` if empty. Raises on bad storage."""
        slot = db.session.get(StoreSlot, key)
        if slot is None:
            return None
        return json.loads(slot.value)

    def _write_slot(self, key, document):
        try:
            payload = json.dumps(document, default=_json_default)
            slot = db.session.get(StoreSlot, key)
            if slot is None:
                db.session.add(StoreSlot(key=key, value=payload))
            else:
                slot.value = payload
            db.session.commit()
        except (SQLAlchemyError, TypeError) as e:
            db.session.rollback()
            logger.error(f"Failed to write slot {key}: {e}")
            raise StoreError(f'Could not save {key}') from e

    def _load(self):
        try:
            data = self._read_slot(self.employees_key)
        except (SQLAlchemyError, ValueError) as e:
            db.session.rollback()
            logger.warning(f"Failed to load employees, treating store as empty: {e}")
            return []
        if not isinstance(data, list):
            if data is not None:
                logger.warning("Employee slot does not hold a list, treating store as empty")
            return []
        employees = []
        for item in data:
            if not (isinstance(item, dict) and item.get('id')):
                continue
            try:
                employees.append(Employee.from_document(item))
            except (TypeError, ValueError, OverflowError, OSError) as e:
                logger.warning(f"Skipping unreadable employee {item.get('id')!r}: {e}")
        return employees

    def _save(self, employees):
        self._write_slot(self.employees_key, [e.to_document() for e in employees])

    # -- records -------------------------------------------------------

    def list(self):
        return self.newest_first(self._load())

    def get_by_id(self, record_id):
        for employee in self._load():
            if employee.id == record_id:
                return employee
        return None

    def create(self, employee):
        employees = self._load()
        self.prepare_new(employee)
        if any(e.id == employee.id for e in employees):
            raise DuplicateRecordError(f'Record {employee.id} already exists')
        employees.insert(0, employee)
        self._save(employees)
        return employee.id

    def update(self, record_id, fields):
        employees = self._load()
        for employee in employees:
            if employee.id == record_id:
                employee.apply(fields)
                self._save(employees)
                return True
        return False

    def delete(self, record_id):
        employees = self._load()
        remaining = [e for e in employees if e.id != record_id]
        if len(remaining) != len(employees):
            self._save(remaining)

    # -- admin settings ------------------------------------------------

    def get_admin_settings(self):
        try:
            data = self._read_slot(self.admin_key)
        except (SQLAlchemyError, ValueError) as e:
            db.session.rollback()
            logger.error(f"Failed to load admin settings: {e}")
            raise StoreError('Could not load admin settings') from e

        if data is None:
            settings = AdminSettings.default()
            self.save_admin_settings(settings)
            logger.info("Created default admin settings")
            return settings

        if not (isinstance(data, dict) and data.get('passwordHash')):
            logger.error("Admin settings slot does not hold credentials")
            raise StoreError('Admin settings are unreadable')
        return AdminSettings.from_document(data)

    def save_admin_settings(self, settings):
        self._write_slot(self.admin_key, settings.to_document())
