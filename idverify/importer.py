"""
Bulk import of ID records from uploaded files.

Parsing is best-effort: keys are matched loosely and missing or unreadable
values are replaced by fixed defaults, so a malformed row still produces a
record. The rows returned here still go through full validation in
``EmployeeService.import_employees`` before anything is stored.
"""

import csv
import io
import json
import logging
import random
import re

import pdfplumber

from idverify.errors import ImportFormatError
from idverify.models import STATUSES
from idverify.utils import parse_date

logger = logging.getLogger(__name__)

DEFAULT_NAME = 'Unknown'
DEFAULT_DESIGNATION = 'Staff'
DEFAULT_DEPARTMENT = 'General'
DEFAULT_VALID_TILL = '2025-12-31'

ALIASES = {
    'name': ('name', 'fullname', 'employeename', 'studentname'),
    'emp_number': ('empnumber', 'employeeid', 'employeenumber', 'empid', 'studentid', 'id'),
    'designation': ('designation', 'role', 'title', 'position'),
    'department': ('department', 'dept', 'unit', 'division'),
    'valid_till': ('validtill', 'validuntil', 'expiry', 'expirydate', 'expires', 'validity'),
    'status': ('status',),
}

# Column order assumed for header-less tables
POSITIONAL_COLUMNS = ('name', 'designation', 'department', 'valid_till', 'emp_number')

DATE_PATTERN = re.compile(r'\d{4}-\d{2}-\d{2}|\d{2}[-/]\d{2}[-/]\d{4}')


def _normalize_key(key):
    return re.sub(r'[\s_\-]+', '', str(key)).lower()


_KEY_LOOKUP = {alias: field for field, aliases in ALIASES.items() for alias in aliases}


def field_for_key(key):
    return _KEY_LOOKUP.get(_normalize_key(key))


def generate_emp_number():
    return f'EMP{random.randint(0, 9999):04d}'


def apply_defaults(raw, default_valid_till=DEFAULT_VALID_TILL):
    """Fill every core field, falling back to the documented defaults."""
    def text(name):
        value = raw.get(name)
        return '' if value is None else str(value).strip()

    valid_till = parse_date(text('valid_till'))
    status = text('status').lower()
    return {
        'name': text('name') or DEFAULT_NAME,
        'emp_number': text('emp_number') or generate_emp_number(),
        'designation': text('designation') or DEFAULT_DESIGNATION,
        'department': text('department') or DEFAULT_DEPARTMENT,
        'valid_till': valid_till.isoformat() if valid_till else default_valid_till,
        'status': status if status in STATUSES else 'active',
        'photo': '',
        'custom_fields': [],
    }


def map_record(item, default_valid_till=DEFAULT_VALID_TILL):
    """Map a loosely keyed dict onto the record fields."""
    raw = {}
    for key, value in item.items():
        field = field_for_key(key)
        # First matching key wins, e.g. "name" before a later "Name"
        if field and field not in raw and value not in (None, ''):
            raw[field] = value
    return apply_defaults(raw, default_valid_till)


def parse_json(text, default_valid_till=DEFAULT_VALID_TILL):
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ImportFormatError('File is not valid JSON.') from e

    if isinstance(data, dict) and isinstance(data.get('employees'), list):
        items = data['employees']
    elif isinstance(data, list):
        items = data
    else:
        raise ImportFormatError(
            'Invalid JSON format. Provide an array of employees or an object with an "employees" array.'
        )
    return [map_record(item, default_valid_till) for item in items if isinstance(item, dict)]


def _sniff_dialect(sample):
    try:
        return csv.Sniffer().sniff(sample, delimiters=',;\t')
    except csv.Error:
        return csv.excel


def parse_delimited(text, default_valid_till=DEFAULT_VALID_TILL):
    rows = [row for row in csv.reader(io.StringIO(text), _sniff_dialect(text[:4096])) if any(c.strip() for c in row)]
    if not rows:
        return []

    header = [field_for_key(cell) for cell in rows[0]]
    if any(header):
        columns, body = header, rows[1:]
    else:
        columns, body = list(POSITIONAL_COLUMNS), rows

    records = []
    for row in body:
        raw = {}
        for column, cell in zip(columns, row):
            if column and column not in raw:
                raw[column] = cell
        records.append(apply_defaults(raw, default_valid_till))
    return records


def parse_text_table(text, default_valid_till=DEFAULT_VALID_TILL):
    """Rows of a plain-text table such as the text layer of a PDF export.

    Data starts after a header line naming Name, Designation and Department;
    columns are separated by runs of two or more spaces.
    """
    records = []
    started = False
    for line in text.splitlines():
        line = line.strip()
        if 'Name' in line and 'Designation' in line and 'Department' in line:
            started = True
            continue
        if not started or not line or line == '---' or 'Total' in line:
            continue

        parts = re.split(r'\s{2,}', line)
        if len(parts) < 3:
            continue

        raw = {'name': parts[0], 'designation': parts[1], 'department': parts[2]}
        if len(parts) == 4:
            raw['valid_till'] = parts[3]
        elif len(parts) > 4:
            date_index = next((i for i, p in enumerate(parts) if DATE_PATTERN.search(p)), -1)
            if date_index > 0:
                raw['valid_till'] = parts[date_index]
                raw['department'] = parts[date_index - 1]

        # Serial numbers in front of the name
        raw['name'] = re.sub(r'^\d+\s*', '', raw['name']).strip()
        records.append(apply_defaults(raw, default_valid_till))
    return records


def extract_pdf_text(payload):
    try:
        with pdfplumber.open(io.BytesIO(payload)) as pdf:
            pages = [page.extract_text() or '' for page in pdf.pages]
    except Exception as e:
        raise ImportFormatError('Could not read the PDF file.') from e
    return '\n'.join(pages)


def read_import(filename, payload, default_valid_till=DEFAULT_VALID_TILL):
    """Parse an uploaded file into record field dicts, chosen by extension."""
    extension = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''

    if extension == 'pdf':
        rows = parse_text_table(extract_pdf_text(payload), default_valid_till)
    else:
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8-sig', errors='replace')
        if extension == 'json':
            rows = parse_json(payload, default_valid_till)
        elif extension in ('csv', 'tsv', 'txt'):
            rows = parse_delimited(payload, default_valid_till)
        else:
            raise ImportFormatError('Please upload a JSON, CSV or PDF file.')

    logger.info(f"Parsed {len(rows)} rows from {filename}")
    return rows
