from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import uuid

from idverify import db
from idverify.utils import parse_date, parse_timestamp, placeholder_avatar, utcnow

STATUSES = ('active', 'suspended', 'inactive')

# attribute name -> stored document key
DOCUMENT_KEYS = {
    'id': 'id',
    'name': 'name',
    'emp_number': 'empNumber',
    'designation': 'designation',
    'department': 'department',
    'valid_till': 'validTill',
    'photo': 'photo',
    'custom_fields': 'customFields',
    'status': 'status',
    'created_at': 'createdAt',
    'updated_at': 'updatedAt',
}

# Everything except the identifier and creation timestamp
UPDATABLE_FIELDS = (
    'name', 'emp_number', 'designation', 'department', 'valid_till',
    'photo', 'custom_fields', 'status',
)


class StoreSlot(db.Model):
    """Named key-value slot holding one serialized document."""
    __tablename__ = 'store_slot'

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<StoreSlot {self.key}>'


@dataclass
class CustomField:
    label: str
    value: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_document(self):
        return {'id': self.id, 'label': self.label, 'value': self.value}

    @classmethod
    def from_document(cls, data):
        return cls(
            label=str(data.get('label') or ''),
            value=str(data.get('value') or ''),
            id=str(data.get('id') or uuid.uuid4()),
        )


@dataclass
class Employee:
    """An identity record: one printed ID card."""

    name: str
    emp_number: str = ''
    designation: str = ''
    department: str = ''
    valid_till: str = ''
    photo: str = ''
    custom_fields: List[CustomField] = field(default_factory=list)
    status: str = 'active'
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def expiry_date(self):
        return parse_date(self.valid_till)

    def is_expired(self, today):
        """Expired only once the expiry day has passed."""
        expiry = self.expiry_date
        return expiry is None or expiry < today

    @property
    def is_active(self):
        return self.status == 'active'

    @property
    def photo_url(self):
        return self.photo or placeholder_avatar(self.name)

    def apply(self, fields):
        for name, value in fields.items():
            if name not in UPDATABLE_FIELDS:
                raise KeyError(f'{name} is not an updatable field')
            setattr(self, name, value)
        self.updated_at = utcnow()

    def to_document(self):
        doc = {}
        for attr, key in DOCUMENT_KEYS.items():
            value = getattr(self, attr)
            if attr == 'custom_fields':
                value = [f.to_document() for f in value]
            doc[key] = value
        return doc

    @classmethod
    def from_document(cls, data, record_id=None):
        raw_fields = data.get('customFields')
        if not isinstance(raw_fields, list):
            raw_fields = []
        return cls(
            id=record_id or data.get('id'),
            name=str(data.get('name') or ''),
            emp_number=str(data.get('empNumber') or ''),
            designation=str(data.get('designation') or ''),
            department=str(data.get('department') or ''),
            valid_till=str(data.get('validTill') or ''),
            photo=str(data.get('photo') or ''),
            custom_fields=[CustomField.from_document(f) for f in raw_fields if isinstance(f, dict)],
            status=str(data.get('status') or 'active'),
            created_at=parse_timestamp(data.get('createdAt')),
            updated_at=parse_timestamp(data.get('updatedAt')),
        )

    def __repr__(self):
        return f'<Employee {self.id} {self.name}>'


class AdminSettings:
    """Singleton admin credentials."""

    DEFAULT_USERNAME = 'admin'
    DEFAULT_PASSWORD = 'admin123'

    def __init__(self, username, password_hash):
        self.username = username
        self.password_hash = password_hash

    @classmethod
    def default(cls):
        settings = cls(cls.DEFAULT_USERNAME, None)
        settings.set_password(cls.DEFAULT_PASSWORD)
        return settings

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def credential_tag(self):
        """Short fingerprint of the current password hash."""
        return (self.password_hash or '')[-16:]

    def to_document(self):
        return {'username': self.username, 'passwordHash': self.password_hash}

    @classmethod
    def from_document(cls, data):
        return cls(data.get('username') or cls.DEFAULT_USERNAME, data.get('passwordHash'))

    def __repr__(self):
        return f'<AdminSettings {self.username}>'


class AdminSession(UserMixin):
    """Authenticated admin context handed to every protected operation.

    Bound to the credential it was issued for: once the stored username or
    password changes, the session no longer matches.
    """

    def __init__(self, username, credential=None, authenticated_at=None):
        self.username = username
        self.credential = credential
        self.authenticated_at = authenticated_at or utcnow()

    @classmethod
    def for_settings(cls, settings):
        return cls(settings.username, settings.credential_tag)

    @classmethod
    def from_session_id(cls, session_id):
        username, sep, credential = (session_id or '').rpartition(':')
        if not sep:
            # Ids issued before sessions carried a credential
            return cls(credential)
        return cls(username, credential or None)

    def matches(self, settings):
        return (
            self.credential is not None
            and self.username == settings.username
            and self.credential == settings.credential_tag
        )

    def get_id(self):
        return f'{self.username}:{self.credential}'

    def __repr__(self):
        return f'<AdminSession {self.username}>'
