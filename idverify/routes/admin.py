from flask import Blueprint, render_template, request, flash, redirect, url_for, current_app, abort, Response, send_file
from flask_login import login_required, current_user, logout_user
from functools import wraps
from io import BytesIO
from idverify.errors import (
    AuthorizationError, ImportFormatError, StoreError, ValidationError
)
from idverify.images import photo_data_uri
from idverify.importer import read_import
from idverify.models import STATUSES
from idverify.qr import verification_url, render_qr, render_png, rasterize, download_filename
from idverify.services import EmployeeService
from idverify.storage import get_store

admin_bp = Blueprint('admin', __name__)

FORM_FIELDS = ('name', 'emp_number', 'designation', 'department', 'valid_till', 'status')


def admin_required(f):
    """Decorator to require a valid admin session"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except AuthorizationError as e:
            logout_user()
            flash(str(e), 'error')
            return redirect(url_for('auth.login'))
    return decorated_function


def get_service():
    return EmployeeService(get_store())


def admin_session():
    return current_user._get_current_object()


def base_url():
    return current_app.config.get('BASE_URL') or request.url_root


def employee_form_data(require_photo_field):
    """Bind the posted employee form to record fields."""
    data = {name: request.form.get(name, '') for name in FORM_FIELDS}
    labels = request.form.getlist('custom_label')
    values = request.form.getlist('custom_value')
    data['custom_fields'] = list(zip(labels, values))

    upload = request.files.get('photo')
    if upload and upload.filename:
        data['photo'] = photo_data_uri(
            upload.stream,
            max_width=current_app.config['PHOTO_MAX_WIDTH'],
            max_bytes=current_app.config['PHOTO_MAX_BYTES'],
        )
    elif request.form.get('remove_photo') or require_photo_field:
        data['photo'] = ''
    return data


@admin_bp.route('/')
@login_required
@admin_required
def dashboard():
    search = request.args.get('q', '')
    employees = get_service().list_employees(search)
    return render_template('admin/dashboard.html',
                           employees=employees,
                           search_query=search,
                           base_url=base_url())


@admin_bp.route('/employees/new', methods=['GET', 'POST'])
@login_required
@admin_required
def add_employee():
    if request.method == 'POST':
        try:
            data = employee_form_data(require_photo_field=True)
            record_id = get_service().create_employee(admin_session(), data)
        except ValidationError as e:
            for message in e.errors:
                flash(message, 'error')
            return render_template('admin/employee_form.html', employee=None,
                                   form=request.form, statuses=STATUSES), 400
        except StoreError as e:
            current_app.logger.error(f"Failed to save employee: {e}")
            flash('Could not save the employee. Please try again.', 'error')
            return render_template('admin/employee_form.html', employee=None,
                                   form=request.form, statuses=STATUSES), 503

        flash('Employee added successfully.', 'success')
        return redirect(url_for('admin.show_qr', record_id=record_id))

    return render_template('admin/employee_form.html', employee=None, form=None, statuses=STATUSES)


@admin_bp.route('/employees/<record_id>/edit', methods=['GET', 'POST'])
@login_required
@admin_required
def edit_employee(record_id):
    service = get_service()
    employee = service.get_employee(record_id)
    if employee is None:
        abort(404)

    if request.method == 'POST':
        try:
            data = employee_form_data(require_photo_field=False)
            updated = service.update_employee(admin_session(), record_id, data)
        except ValidationError as e:
            for message in e.errors:
                flash(message, 'error')
            return render_template('admin/employee_form.html', employee=employee,
                                   form=request.form, statuses=STATUSES), 400
        except StoreError as e:
            current_app.logger.error(f"Failed to update employee {record_id}: {e}")
            flash('Could not save the employee. Please try again.', 'error')
            return render_template('admin/employee_form.html', employee=employee,
                                   form=request.form, statuses=STATUSES), 503

        if not updated:
            flash('This employee no longer exists.', 'warning')
        else:
            flash('Employee updated successfully.', 'success')
        return redirect(url_for('admin.dashboard'))

    return render_template('admin/employee_form.html', employee=employee, form=None, statuses=STATUSES)


@admin_bp.route('/employees/<record_id>/delete', methods=['POST'])
@login_required
@admin_required
def delete_employee(record_id):
    try:
        get_service().delete_employee(admin_session(), record_id)
        flash('Employee deleted successfully.', 'success')
    except StoreError as e:
        current_app.logger.error(f"Failed to delete employee {record_id}: {e}")
        flash('Could not delete the employee. Please try again.', 'error')
    return redirect(url_for('admin.dashboard'))


@admin_bp.route('/employees/delete', methods=['POST'])
@login_required
@admin_required
def delete_selected():
    record_ids = request.form.getlist('ids')
    if not record_ids:
        flash('No employees selected.', 'warning')
        return redirect(url_for('admin.dashboard'))
    try:
        count = get_service().delete_employees(admin_session(), record_ids)
        flash(f'{count} employees deleted.', 'success')
    except StoreError as e:
        current_app.logger.error(f"Bulk delete failed: {e}")
        flash('Could not delete the selected employees. Please try again.', 'error')
    return redirect(url_for('admin.dashboard'))


@admin_bp.route('/import', methods=['POST'])
@login_required
@admin_required
def import_employees():
    upload = request.files.get('file')
    if not upload or not upload.filename:
        flash('Please select a file to import.', 'error')
        return redirect(url_for('admin.dashboard'))

    try:
        rows = read_import(upload.filename, upload.read(),
                           default_valid_till=current_app.config['DEFAULT_VALID_TILL'])
        if not rows:
            flash('No employee data found in the file.', 'warning')
            return redirect(url_for('admin.dashboard'))
        result = get_service().import_employees(admin_session(), rows)
    except ImportFormatError as e:
        flash(str(e), 'error')
        return redirect(url_for('admin.dashboard'))
    except StoreError as e:
        current_app.logger.error(f"Import failed: {e}")
        flash('Import stopped because the store could not be written. Please try again.', 'error')
        return redirect(url_for('admin.dashboard'))

    message = f'Successfully imported {result.count} employees.'
    if result.skipped:
        message += f' {len(result.skipped)} rows were skipped.'
    flash(message, 'success')
    return redirect(url_for('admin.dashboard'))


@admin_bp.route('/employees/<record_id>/qr')
@login_required
@admin_required
def show_qr(record_id):
    employee = get_service().get_employee(record_id)
    if employee is None:
        abort(404)
    return render_template('admin/qr.html', employee=employee,
                           verify_url=verification_url(record_id, base_url()))


@admin_bp.route('/employees/<record_id>/qr.png')
@login_required
@admin_required
def qr_png(record_id):
    png = render_png(verification_url(record_id, base_url()))
    return Response(png, mimetype='image/png')


@admin_bp.route('/employees/<record_id>/qr.jpg')
@login_required
@admin_required
def download_qr(record_id):
    # The code only carries the identifier; a vanished record resolves to not-found when scanned
    employee = get_service().get_employee(record_id)
    name = employee.name if employee else record_id
    image = render_qr(verification_url(record_id, base_url()))
    jpeg = rasterize(image, size=current_app.config['QR_DOWNLOAD_SIZE'])
    return send_file(BytesIO(jpeg), mimetype='image/jpeg', as_attachment=True,
                     download_name=download_filename(name))


@admin_bp.route('/settings', methods=['GET', 'POST'])
@login_required
@admin_required
def settings():
    service = get_service()
    if request.method == 'POST':
        username = request.form.get('username', '')
        password = request.form.get('password', '')
        try:
            service.change_credentials(admin_session(), username, password)
        except ValidationError as e:
            for message in e.errors:
                flash(message, 'error')
            return render_template('admin/settings.html', username=username), 400
        except StoreError as e:
            current_app.logger.error(f"Failed to save admin settings: {e}")
            flash('Error updating settings. Please try again.', 'error')
            return render_template('admin/settings.html', username=username), 503

        # The session is bound to the old credentials
        logout_user()
        flash('Settings updated successfully! Please log in again.', 'success')
        return redirect(url_for('auth.login'))

    return render_template('admin/settings.html', username=admin_session().username)
