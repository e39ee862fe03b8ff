from flask import Blueprint, g, request

from snapstudy.extensions import get_runtime
from snapstudy.services import profile_api_service
from snapstudy.services.auth_service import login_required

profile_bp = Blueprint('profile_api', __name__)


@profile_bp.route('/api/profile', methods=['GET'])
@login_required
def get_profile():
    return profile_api_service.get_profile(get_runtime(), g.account)


@profile_bp.route('/api/profile', methods=['PUT'])
@login_required
def update_profile():
    return profile_api_service.update_profile(get_runtime(), request, g.account)


@profile_bp.route('/api/profile/request-email-change', methods=['POST'])
@login_required
def request_email_change():
    return profile_api_service.request_email_change(get_runtime(), request, g.account)


@profile_bp.route('/api/profile/confirm-email-change', methods=['POST'])
@login_required
def confirm_email_change():
    return profile_api_service.confirm_email_change(get_runtime(), request, g.account)
