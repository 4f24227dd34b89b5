from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from srm_approvals.errors import ValidationError
from srm_approvals.utils import get_engine, serialize_request

requests_bp = Blueprint('requests', __name__)


def _payload():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _optional_text(field):
    value = _payload().get(field)
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field.capitalize()} must be text", errors={field: ['Not a valid string.']})
    return value


def _required_text(field):
    value = (_optional_text(field) or '').strip()
    if not value:
        raise ValidationError(f"{field.capitalize()} is required", errors={field: ['This field is required.']})
    return value


@requests_bp.route('/', methods=['POST'])
@login_required
def submit_request():
    engine = get_engine()
    state = engine.submit(current_user.id, _payload())
    return jsonify(serialize_request(state, engine)), 201


@requests_bp.route('/<request_id>', methods=['GET'])
@login_required
def get_request(request_id):
    engine = get_engine()
    return jsonify(serialize_request(engine.get_request(request_id), engine))


@requests_bp.route('/<request_id>/history', methods=['GET'])
@login_required
def get_history(request_id):
    entries = get_engine().history(request_id)
    return jsonify({'request_id': request_id, 'history': [e.to_dict() for e in entries]})


@requests_bp.route('/<request_id>/approvers', methods=['GET'])
@login_required
def get_pending_approvers(request_id):
    return jsonify({'request_id': request_id,
                    'approvers': sorted(get_engine().pending_approvers(request_id))})


@requests_bp.route('/<request_id>/approve', methods=['POST'])
@login_required
def approve(request_id):
    engine = get_engine()
    state = engine.approve(request_id, current_user.id, _optional_text('notes'))
    return jsonify(serialize_request(state, engine))


@requests_bp.route('/<request_id>/reject', methods=['POST'])
@login_required
def reject(request_id):
    engine = get_engine()
    state = engine.reject(request_id, current_user.id, _optional_text('reason'))
    return jsonify(serialize_request(state, engine))


@requests_bp.route('/<request_id>/clarify', methods=['POST'])
@login_required
def request_clarification(request_id):
    engine = get_engine()
    state = engine.request_clarification(request_id, current_user.id, _required_text('message'))
    return jsonify(serialize_request(state, engine))


@requests_bp.route('/<request_id>/respond', methods=['POST'])
@login_required
def respond_clarification(request_id):
    engine = get_engine()
    state = engine.respond_clarification(request_id, current_user.id, _required_text('response'))
    return jsonify(serialize_request(state, engine))
