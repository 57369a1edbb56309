from flask import Blueprint, render_template, jsonify, current_app
from idverify.storage import get_store

main_bp = Blueprint('main', __name__)


@main_bp.route('/')
def index():
    """
    Landing page. Printed QR codes point at ``/#/verify/<id>``; the
    fragment never reaches the server, so the page forwards it client-side.
    """
    return render_template('index.html')


@main_bp.route('/health')
def health():
    store = get_store()
    try:
        count = len(store.list())
        return jsonify({'service': 'idverify', 'status': 'healthy', 'store': store.name, 'records': count}), 200
    except Exception as e:
        current_app.logger.error(f"Health check failed: {e}")
        return jsonify({'service': 'idverify', 'status': 'unhealthy', 'error': str(e)}), 503
