from flask import Blueprint, render_template, request, flash, redirect, url_for, current_app
from flask_login import login_user, logout_user, login_required, current_user
from idverify.errors import AuthenticationError, StoreError
from idverify.services import EmployeeService
from idverify.storage import get_store

auth_bp = Blueprint('auth', __name__)


def _safe_next(target):
    # Only same-site relative paths
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('admin.dashboard'))

    if request.method == 'POST':
        username = (request.form.get('username') or '').strip()
        password = request.form.get('password') or ''

        try:
            session = EmployeeService(get_store()).authenticate(username, password)
        except AuthenticationError as e:
            flash(str(e), 'error')
            return render_template('auth/login.html', username=username), 401
        except StoreError as e:
            current_app.logger.error(f"Login unavailable, could not read admin settings: {e}")
            flash('Login is temporarily unavailable. Please try again.', 'error')
            return render_template('auth/login.html', username=username), 503

        login_user(session)
        current_app.logger.info(f"Admin {username} signed in from {request.remote_addr}")
        next_page = _safe_next(request.args.get('next'))
        return redirect(next_page) if next_page else redirect(url_for('admin.dashboard'))

    return render_template('auth/login.html')


@auth_bp.route('/logout')
@login_required
def logout():
    logout_user()
    flash('You have been logged out.', 'info')
    return redirect(url_for('auth.login'))
