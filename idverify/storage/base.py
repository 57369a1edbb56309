"""
Record store interface shared by the local and remote backends
"""

import uuid
from abc import ABC, abstractmethod

from idverify.utils import utcnow


class RecordStore(ABC):
    """Persistence for identity records and the admin credentials.

    Record reads fail open (empty list / ``None``), writes raise ``StoreError``.
    Concurrent writers are not isolated; the last write wins.
    """

    name = 'abstract'

    @abstractmethod
    def list(self):
        """All records, newest first."""

    @abstractmethod
    def get_by_id(self, record_id):
        """The record with ``record_id`` or ``None``."""

    @abstractmethod
    def create(self, employee):
        """Persist a new record and return its identifier."""

    @abstractmethod
    def update(self, record_id, fields):
        """Replace the supplied fields; ``False`` when the record is absent."""

    @abstractmethod
    def delete(self, record_id):
        """Remove a record. Deleting an absent record is a no-op."""

    @abstractmethod
    def get_admin_settings(self):
        """Admin credentials.

        Defaults are created only when none are stored yet; a failed or
        unreadable read raises ``StoreError`` rather than falling back.
        """

    @abstractmethod
    def save_admin_settings(self, settings):
        """Overwrite the admin credentials."""

    @staticmethod
    def prepare_new(employee):
        """Assign identifier and creation timestamp where the caller did not."""
        if not employee.id:
            employee.id = str(uuid.uuid4())
        if not employee.created_at:
            employee.created_at = utcnow()
        return employee

    @staticmethod
    def newest_first(employees):
        return sorted(
            employees,
            key=lambda e: e.created_at.timestamp() if e.created_at else 0,
            reverse=True,
        )
