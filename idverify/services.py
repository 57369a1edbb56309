"""
Admin operations on identity records.

Every mutating operation takes the caller's ``AdminSession`` and checks it
before touching the store.
"""

import logging
import uuid

from idverify.errors import AuthenticationError, AuthorizationError, StoreError, ValidationError
from idverify.models import STATUSES, AdminSession, CustomField, Employee
from idverify.utils import parse_date, utcnow

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    'name': 'Full name',
    'emp_number': 'Employee ID',
    'designation': 'Designation',
    'department': 'Department',
    'valid_till': 'Valid till',
}


def require_admin(session, store):
    if session is None or not getattr(session, 'is_authenticated', False):
        raise AuthorizationError('Admin login required.')
    try:
        settings = store.get_admin_settings()
    except StoreError as e:
        raise AuthorizationError('Admin session could not be verified. Please try again.') from e
    if not session.matches(settings):
        raise AuthorizationError('Admin session is no longer valid.')


def _clean_custom_fields(raw):
    cleaned = []
    for item in raw or []:
        if isinstance(item, CustomField):
            label, value, field_id = item.label, item.value, item.id
        elif isinstance(item, dict):
            label, value, field_id = item.get('label'), item.get('value'), item.get('id')
        else:
            label, value = item
            field_id = None
        label = str(label or '').strip()
        value = str(value or '').strip()
        if not label and not value:
            continue
        cleaned.append(CustomField(label=label, value=value, id=field_id or str(uuid.uuid4())))
    return cleaned


def validate_employee(data, partial=False):
    """Normalise submitted record fields.

    With ``partial`` only the supplied fields are checked, as for updates.
    Raises ``ValidationError`` listing every problem found.
    """
    errors = []
    fields = {}

    for name, label in REQUIRED_FIELDS.items():
        if partial and name not in data:
            continue
        value = data.get(name)
        value = '' if value is None else str(value).strip()
        if not value:
            errors.append(f'{label} is required.')
            continue
        if name == 'valid_till':
            parsed = parse_date(value)
            if parsed is None:
                errors.append('Valid till must be a date (YYYY-MM-DD or DD-MM-YYYY).')
                continue
            value = parsed.isoformat()
        fields[name] = value

    if not partial or 'status' in data:
        status = str(data.get('status') or 'active').strip().lower()
        if status not in STATUSES:
            errors.append(f"Status must be one of: {', '.join(STATUSES)}.")
        else:
            fields['status'] = status

    if 'photo' in data:
        photo = data.get('photo') or ''
        if photo and not (photo.startswith('data:image/') or photo.startswith('http')):
            errors.append('Photo must be an image.')
        else:
            fields['photo'] = photo
    elif not partial:
        fields['photo'] = ''

    if not partial or 'custom_fields' in data:
        fields['custom_fields'] = _clean_custom_fields(data.get('custom_fields'))

    if errors:
        raise ValidationError(errors)
    return fields


class ImportResult:
    def __init__(self):
        self.accepted = []
        self.skipped = []

    @property
    def count(self):
        return len(self.accepted)

    def __repr__(self):
        return f'<ImportResult accepted={len(self.accepted)} skipped={len(self.skipped)}>'


class EmployeeService:
    def __init__(self, store):
        self.store = store

    # -- reads (public) --------------------------------------------------

    def list_employees(self, search=None):
        employees = self.store.list()
        term = (search or '').strip().lower()
        if not term:
            return employees
        return [
            e for e in employees
            if term in e.name.lower()
            or term in e.emp_number.lower()
            or term in e.department.lower()
        ]

    def get_employee(self, record_id):
        return self.store.get_by_id(record_id)

    # -- admin session -----------------------------------------------------

    def authenticate(self, username, password):
        """Check credentials; ``StoreError`` propagates so an outage never admits anyone."""
        settings = self.store.get_admin_settings()
        if username != settings.username or not settings.check_password(password):
            logger.warning(f"Failed admin login for {username!r}")
            raise AuthenticationError('Invalid username or password')
        logger.info(f"Admin {username} logged in")
        return AdminSession.for_settings(settings)

    def change_credentials(self, session, username, password):
        require_admin(session, self.store)
        username = (username or '').strip()
        errors = []
        if not username:
            errors.append('Admin username is required.')
        if not password:
            errors.append('New password is required.')
        if errors:
            raise ValidationError(errors)
        settings = self.store.get_admin_settings()
        settings.username = username
        settings.set_password(password)
        self.store.save_admin_settings(settings)
        logger.info(f"Admin credentials updated by {session.username}")
        return settings

    # -- writes ------------------------------------------------------------

    def create_employee(self, session, data):
        require_admin(session, self.store)
        fields = validate_employee(data)
        employee = Employee(id=str(uuid.uuid4()), created_at=utcnow(), **fields)
        record_id = self.store.create(employee)
        logger.info(f"Employee {record_id} created by {session.username}")
        return record_id

    def update_employee(self, session, record_id, data):
        require_admin(session, self.store)
        fields = validate_employee(data, partial=True)
        updated = self.store.update(record_id, fields)
        if updated:
            logger.info(f"Employee {record_id} updated by {session.username}")
        return updated

    def delete_employee(self, session, record_id):
        require_admin(session, self.store)
        self.store.delete(record_id)
        logger.info(f"Employee {record_id} deleted by {session.username}")

    def delete_employees(self, session, record_ids):
        require_admin(session, self.store)
        count = 0
        for record_id in dict.fromkeys(record_ids):
            if not record_id:
                continue
            self.store.delete(record_id)
            count += 1
        logger.info(f"{count} employees deleted by {session.username}")
        return count

    def import_employees(self, session, rows):
        """Create a record per imported row; rows failing validation are skipped."""
        require_admin(session, self.store)
        result = ImportResult()
        for index, row in enumerate(rows, start=1):
            try:
                fields = validate_employee(row)
            except ValidationError as e:
                result.skipped.append((index, e.errors))
                continue
            employee = Employee(id=str(uuid.uuid4()), created_at=utcnow(), **fields)
            result.accepted.append(self.store.create(employee))
        logger.info(
            f"Import by {session.username}: {len(result.accepted)} accepted, {len(result.skipped)} skipped"
        )
        return result
