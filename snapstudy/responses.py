"""The ``{success, message?, data?}`` envelope used by every API route."""

from flask import jsonify


def success_response(data=None, message=None, status=200):
    payload = {'success': True}
    if message:
        payload['message'] = message
    if data is not None:
        payload['data'] = data
    return jsonify(payload), status


def json_body(request):
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}
