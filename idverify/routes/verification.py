"""
Verification routes for ID cards
Public routes resolving a scanned QR code to a verdict
"""

from flask import Blueprint, render_template, jsonify, current_app
from idverify.storage import get_store
from idverify.verification import VerificationResolver, VerificationState

verification_bp = Blueprint('verification', __name__)


def resolve(record_id):
    resolver = VerificationResolver(get_store(), advisor=current_app.extensions.get('security_advisor'))
    result = resolver.resolve(record_id)
    current_app.logger.info(f"Verification of {record_id}: {result.state.value}")
    return result


@verification_bp.route('/verify/<record_id>')
def verify(record_id):
    """
    Public verification page for ID cards
    Anyone can scan the QR code and check the card
    """
    result = resolve(record_id)
    return render_template('verification.html', result=result, employee=result.employee)


@verification_bp.route('/api/verify/<record_id>')
def verify_api(record_id):
    result = resolve(record_id)
    status = 404 if result.state is VerificationState.NOT_FOUND else 200
    return jsonify(result.to_dict()), status
