from flask import Blueprint

from snapstudy.extensions import get_runtime
from snapstudy.responses import success_response
from snapstudy.services.prompt_registry import PROMPT_REGISTRY_VERSION

health_bp = Blueprint('health_api', __name__)


@health_bp.route('/api/health', methods=['GET'])
def health():
    runtime = get_runtime()
    return success_response({
        'status': 'ok',
        'environment': runtime.config.environment,
        'store': type(runtime.store).__name__,
        'promptVersion': PROMPT_REGISTRY_VERSION,
    }, 'SnapStudy API is running')
