"""
Resolves a scanned identifier into a verification verdict.

States: loading -> resolved-valid | resolved-invalid | not-found. The
resolved and not-found states are terminal.
"""

from enum import Enum

from idverify.utils import today_utc


class VerificationState(Enum):
    LOADING = 'loading'
    VALID = 'resolved-valid'
    INVALID = 'resolved-invalid'
    NOT_FOUND = 'not-found'

    @property
    def is_terminal(self):
        return self is not VerificationState.LOADING


def date_state(employee, today):
    """Date-only verdict; a card is still valid on its expiry day."""
    if employee.is_expired(today):
        return VerificationState.INVALID
    return VerificationState.VALID


class VerificationResult:
    def __init__(self, record_id):
        self.record_id = record_id
        self.state = VerificationState.LOADING
        self.employee = None
        self.expired = False
        self.verdict = None
        self.checked_on = None

    def transition(self, state):
        if self.state.is_terminal:
            raise RuntimeError(f'Verification already finished as {self.state.value}')
        self.state = state

    @property
    def label(self):
        if self.state is VerificationState.NOT_FOUND:
            return 'INVALID ID'
        if self.state is VerificationState.VALID:
            return 'VERIFIED'
        if self.state is VerificationState.INVALID:
            return 'EXPIRED' if self.expired else 'ACCESS DENIED'
        return 'CHECKING...'

    @property
    def reason(self):
        if self.verdict is not None:
            return self.verdict.reason
        if self.state is VerificationState.NOT_FOUND:
            return 'This QR code does not match any record in the system.'
        if self.employee is None:
            return ''
        if self.expired:
            return f'Card expired on {self.employee.valid_till}'
        return f'Card valid until {self.employee.valid_till}'

    def to_dict(self):
        data = {
            'id': self.record_id,
            'state': self.state.value,
            'label': self.label,
            'reason': self.reason,
            'checked_on': self.checked_on.isoformat() if self.checked_on else None,
        }
        if self.employee is not None:
            data['employee'] = {
                'name': self.employee.name,
                'emp_number': self.employee.emp_number,
                'designation': self.employee.designation,
                'department': self.employee.department,
                'valid_till': self.employee.valid_till,
                'status': self.employee.status,
                'photo_url': self.employee.photo_url,
                'custom_fields': [
                    {'label': f.label, 'value': f.value} for f in self.employee.custom_fields
                ],
            }
            data['expired'] = self.expired
        if self.verdict is not None:
            data['verdict'] = self.verdict.to_dict()
        return data


class VerificationResolver:
    """Looks a record up and judges it, optionally consulting an advisor."""

    def __init__(self, store, advisor=None, today=None):
        self.store = store
        self.advisor = advisor
        self._today = today or today_utc

    def resolve(self, record_id):
        result = VerificationResult(record_id)
        result.checked_on = self._today()

        employee = self.store.get_by_id(record_id) if record_id else None
        if employee is None:
            result.transition(VerificationState.NOT_FOUND)
            return result

        result.employee = employee
        result.expired = employee.is_expired(result.checked_on)
        state = date_state(employee, result.checked_on)

        if self.advisor is not None:
            # The advisor never raises; remote failures come back as local verdicts
            result.verdict = self.advisor.judge(employee)
            state = VerificationState.VALID if result.verdict.allowed else VerificationState.INVALID

        result.transition(state)
        return result
