from flask import Blueprint, g, request

from snapstudy.extensions import get_runtime
from snapstudy.services import flashcards_api_service
from snapstudy.services.auth_service import login_required

flashcards_bp = Blueprint('flashcards_api', __name__)


@flashcards_bp.route('/api/flashcards/generate-text', methods=['POST'])
@login_required
def generate_from_text():
    return flashcards_api_service.generate_from_text(get_runtime(), request, g.account)


@flashcards_bp.route('/api/flashcards/generate-file', methods=['POST'])
@login_required
def generate_from_file():
    return flashcards_api_service.generate_from_file(get_runtime(), request, g.account)


@flashcards_bp.route('/api/flashcards', methods=['GET'])
@login_required
def list_sets():
    return flashcards_api_service.list_sets(get_runtime(), g.account)


@flashcards_bp.route('/api/flashcards/<set_id>', methods=['GET'])
@login_required
def get_set(set_id):
    return flashcards_api_service.get_set(get_runtime(), g.account, set_id)


@flashcards_bp.route('/api/flashcards/<set_id>', methods=['DELETE'])
@login_required
def delete_set(set_id):
    return flashcards_api_service.delete_set(get_runtime(), g.account, set_id)
