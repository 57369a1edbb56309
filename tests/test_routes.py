import json
from io import BytesIO

from PIL import Image

from idverify.errors import StoreError
from idverify.models import Employee

from conftest import login


def employee_form(**overrides):
    data = {
        'name': 'Sarah Connor',
        'emp_number': 'ID-1984',
        'designation': 'Operator',
        'department': 'Resistance',
        'valid_till': '2099-12-31',
        'status': 'active',
        'custom_label': ['Blood Group', ''],
        'custom_value': ['O+', ''],
    }
    data.update(overrides)
    return data


def png_upload():
    buffer = BytesIO()
    Image.new('RGB', (64, 64), (10, 120, 200)).save(buffer, 'PNG')
    buffer.seek(0)
    return buffer, 'me.png'


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['store'] == 'local'


def test_landing_page_forwards_fragment(client):
    response = client.get('/')
    assert response.status_code == 200
    assert b'/verify/' in response.data


def test_admin_pages_require_login(client):
    response = client.get('/admin/')
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']

    response = client.post('/admin/employees/new', data=employee_form())
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_bad_login_is_rejected(client):
    response = client.post('/auth/login', data={'username': 'admin', 'password': 'nope'})
    assert response.status_code == 401
    assert b'Invalid username or password' in response.data


def test_login_ignores_offsite_next(client):
    response = client.post('/auth/login?next=//evil.example.com/',
                           data={'username': 'admin', 'password': 'admin123'})
    assert response.status_code == 302
    assert response.headers['Location'].endswith('/admin/')


def test_add_employee_then_verify(logged_in, store):
    data = employee_form(photo=png_upload())
    response = logged_in.post('/admin/employees/new', data=data, content_type='multipart/form-data')
    assert response.status_code == 302
    assert '/qr' in response.headers['Location']

    [employee] = store.list()
    assert employee.name == 'Sarah Connor'
    assert employee.photo.startswith('data:image/jpeg;base64,')
    assert [(f.label, f.value) for f in employee.custom_fields] == [('Blood Group', 'O+')]

    page = logged_in.get(f'/admin/employees/{employee.id}/qr')
    assert page.status_code == 200
    assert f'https://ids.example.org/#/verify/{employee.id}'.encode() in page.data

    verdict = logged_in.get(f'/api/verify/{employee.id}')
    assert verdict.status_code == 200
    assert verdict.get_json()['state'] == 'resolved-valid'
    assert verdict.get_json()['employee']['custom_fields'] == [{'label': 'Blood Group', 'value': 'O+'}]

    html = logged_in.get(f'/verify/{employee.id}')
    assert b'VERIFIED' in html.data
    assert b'Sarah Connor' in html.data


def test_invalid_form_is_rejected(logged_in, store):
    response = logged_in.post('/admin/employees/new', data=employee_form(name='', valid_till='soon'))
    assert response.status_code == 400
    assert b'Full name is required.' in response.data
    assert store.list() == []


def test_verify_unknown_id(client):
    response = client.get('/api/verify/nonexistent')
    assert response.status_code == 404
    assert response.get_json()['state'] == 'not-found'

    page = client.get('/verify/nonexistent')
    assert page.status_code == 200
    assert b'INVALID ID' in page.data


def test_suspended_employee_is_denied(client, store):
    record_id = store.create(Employee(name='Bob', valid_till='2099-01-01', status='suspended'))
    data = client.get(f'/api/verify/{record_id}').get_json()
    assert data['state'] == 'resolved-invalid'
    assert data['label'] == 'ACCESS DENIED'
    assert data['verdict']['source'] == 'local'


def test_edit_employee(logged_in, store):
    record_id = store.create(Employee(name='Alice', emp_number='A-1', designation='Engineer',
                                      department='Security', valid_till='2099-01-01',
                                      photo='data:image/jpeg;base64,AAAA'))

    response = logged_in.post(f'/admin/employees/{record_id}/edit',
                              data=employee_form(name='Alice', department='Finance', remove_photo='1'))
    assert response.status_code == 302

    employee = store.get_by_id(record_id)
    assert employee.department == 'Finance'
    assert employee.photo == ''
    assert logged_in.get('/admin/employees/missing/edit').status_code == 404


def test_dashboard_search(logged_in, store):
    store.create(Employee(name='Alice', department='Security', valid_till='2099-01-01'))
    store.create(Employee(name='Bob', department='Finance', valid_till='2099-01-01'))

    response = logged_in.get('/admin/?q=finance')
    assert response.status_code == 200
    assert b'Bob' in response.data
    assert b'Alice' not in response.data


def test_delete_and_bulk_delete(logged_in, store):
    ids = [store.create(Employee(name=name, valid_till='2099-01-01')) for name in ('A', 'B', 'C')]

    assert logged_in.post(f'/admin/employees/{ids[0]}/delete').status_code == 302
    assert logged_in.post('/admin/employees/delete', data={'ids': ids[1:]}).status_code == 302
    assert store.list() == []


def test_import_json(logged_in, store):
    payload = json.dumps([{'Name': 'Bob'}]).encode()
    response = logged_in.post('/admin/import', data={'file': (BytesIO(payload), 'people.json')},
                              content_type='multipart/form-data')
    assert response.status_code == 302

    [employee] = store.list()
    assert employee.name == 'Bob'
    assert employee.department == 'General'
    assert employee.valid_till == '2025-12-31'


def test_import_rejects_unknown_format(logged_in, store):
    response = logged_in.post('/admin/import', data={'file': (BytesIO(b'x'), 'people.xlsx')},
                              content_type='multipart/form-data', follow_redirects=True)
    assert b'Please upload a JSON, CSV or PDF file.' in response.data
    assert store.list() == []


def test_qr_downloads(logged_in, store):
    record_id = store.create(Employee(name='Sarah Connor', valid_till='2099-01-01'))

    png = logged_in.get(f'/admin/employees/{record_id}/qr.png')
    assert png.mimetype == 'image/png'

    jpg = logged_in.get(f'/admin/employees/{record_id}/qr.jpg')
    assert jpg.status_code == 200
    assert jpg.mimetype == 'image/jpeg'
    assert 'Sarah_Connor_QR.jpg' in jpg.headers['Content-Disposition']
    assert Image.open(BytesIO(jpg.data)).size == (1024, 1024)


def test_change_settings_logs_out(logged_in):
    response = logged_in.post('/admin/settings', data={'username': 'root', 'password': 'n3w-pass'})
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']

    assert logged_in.get('/admin/').status_code == 302
    response = logged_in.post('/auth/login', data={'username': 'root', 'password': 'n3w-pass'})
    assert response.status_code == 302


def test_new_client_does_not_share_a_login(app, logged_in):
    assert logged_in.get('/admin/').status_code == 200
    assert app.test_client().get('/admin/').status_code == 302


def test_password_change_logs_out_other_clients(app, logged_in):
    other = app.test_client()
    assert login(other).status_code == 302
    assert other.get('/admin/').status_code == 200

    response = logged_in.post('/admin/settings', data={'username': 'admin', 'password': 'n3w-pass'})
    assert response.status_code == 302

    response = other.get('/admin/')
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_login_fails_closed_when_credentials_unreadable(app, client, store, monkeypatch):
    def unavailable():
        raise StoreError('down')

    store.get_admin_settings()
    monkeypatch.setattr(app.extensions['record_store'], 'get_admin_settings', unavailable)

    response = login(client)
    assert response.status_code == 503
    assert b'Login is temporarily unavailable' in response.data
    assert client.get('/admin/').status_code == 302


def test_existing_session_is_dropped_when_credentials_unreadable(app, logged_in, monkeypatch):
    def unavailable():
        raise StoreError('down')

    monkeypatch.setattr(app.extensions['record_store'], 'get_admin_settings', unavailable)
    response = logged_in.get('/admin/')
    assert response.status_code == 302
    assert '/auth/login' in response.headers['Location']


def test_employee_names_cannot_break_out_of_confirm(logged_in, store):
    store.create(Employee(name="x');alert(1);//", valid_till='2099-01-01'))

    page = logged_in.get('/admin/').data
    assert b"confirm('Delete x" not in page
    assert b'onsubmit="return confirm(this.dataset.confirm);"' in page
    assert b'data-confirm="Delete x&#39;);alert(1);//?"' in page
