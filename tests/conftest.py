"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from srm_approvals.constants import Role, Stage  # noqa: E402
from srm_approvals.services.actor_directory import InMemoryActorDirectory  # noqa: E402
from srm_approvals.services.event_emitter import CollectingEventEmitter  # noqa: E402
from srm_approvals.services.request_store import InMemoryRequestStore  # noqa: E402
from srm_approvals.services.workflow_engine import WorkflowEngine  # noqa: E402


# One actor per role, id "u-<role>"
ACTORS = {f"u-{role.value}": role for role in Role}
REQUESTER = 'u-requester'
OTHER_REQUESTER = 'u-requester-2'


def actor(role):
    return f"u-{Role(role).value}"


VALID_ATTRIBUTES = {
    'title': 'Lab oscilloscopes',
    'purpose': 'Replace the broken oscilloscopes in the electronics lab',
    'college': 'SRMIST - E&T',
    'department': 'ECE',
    'expense_category': 'Equipment',
    'cost_estimate': 125000,
}


@pytest.fixture
def directory():
    d = InMemoryActorDirectory(ACTORS)
    d.add(OTHER_REQUESTER, Role.REQUESTER)
    return d


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def emitter():
    return CollectingEventEmitter()


@pytest.fixture
def engine(store, directory, emitter):
    return WorkflowEngine(store=store, directory=directory, emitter=emitter)


@pytest.fixture
def attributes():
    return dict(VALID_ATTRIBUTES)


@pytest.fixture
def submitted(engine, attributes):
    return engine.submit(REQUESTER, attributes)


def advance_to(engine, request_id, stage):
    """Approves with whichever roles are needed until the request sits at ``stage``."""
    stage = Stage(stage)
    state = engine.get_request(request_id)
    while state.stage != stage:
        if state.is_terminal:
            raise AssertionError(f"{stage.value} is not on the approval path")
        for role in sorted(engine.pending_roles(state), key=lambda r: r.value):
            state = engine.approve(request_id, actor(role))
    return state


# --- Flask application fixtures ---

@pytest.fixture
def app():
    from config import TestConfig
    from srm_approvals import create_app

    app = create_app(TestConfig)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    """One active user per role, keyed by Role. Password is 'pass123'."""
    from srm_approvals.services.user_service import UserService

    created = {}
    for role in Role:
        created[role] = UserService.create_or_update_user({
            'name': role.value.replace('_', ' ').title(),
            'email': f"{role.value}@srm.test",
            'role': role.value,
            'college': 'SRMIST - E&T',
        })
    return created


def login(client, user):
    response = client.post('/auth/login', json={'email': user.email, 'password': 'pass123'})
    assert response.status_code == 200, response.get_json()
    return response
