from datetime import datetime, timezone

from flask import current_app, jsonify


def utcnow():
    """Current UTC time as a naive datetime, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_engine():
    """The workflow engine built by create_app."""
    return current_app.extensions['workflow_engine']


def serialize_request(state, engine=None):
    """Request snapshot plus the roles that still owe an action."""
    engine = engine or get_engine()
    data = state.to_dict()
    data['pending_roles'] = sorted(r.value for r in engine.pending_roles(state))
    return data


def error_response(err):
    """JSON response for a WorkflowError."""
    return jsonify(err.to_dict()), err.status_code
