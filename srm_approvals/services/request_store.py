"""Request persistence with version-checked writes.

Both stores implement the same contract:

    get(request_id) -> RequestState                      (NotFoundError if unknown)
    request_id_exists(candidate) -> bool
    reserve_request_id(candidate) -> bool                (False if already taken)
    insert(state) -> RequestState
    conditional_update(request_id, expected_version, new_state) -> bool

``conditional_update`` writes ``new_state`` and its last history entry only if
the stored version still equals ``expected_version``; it returns False on a
conflict instead of raising so the engine decides whether to retry.
"""
import json
import logging
import threading
from dataclasses import replace

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from srm_approvals.constants import Stage, Role, Action
from srm_approvals.errors import NotFoundError
from srm_approvals.extensions import db
from srm_approvals.models import ApprovalRequest, HistoryEntry, RequestIdReservation
from srm_approvals.services.request_state import RequestState, HistoryRecord
from srm_approvals.utils import utcnow

logger = logging.getLogger(__name__)


class InMemoryRequestStore:
    """Thread-safe store used by tests and single-process tooling."""

    def __init__(self):
        self._lock = threading.Lock()
        self._requests = {}
        self._reserved = set()
        self._next_id = 1

    def get(self, request_id):
        with self._lock:
            state = self._requests.get(request_id)
        if state is None:
            raise NotFoundError(f"Request {request_id} not found")
        return state

    def request_id_exists(self, candidate):
        with self._lock:
            return candidate in self._reserved or candidate in self._requests

    def reserve_request_id(self, candidate):
        with self._lock:
            if candidate in self._reserved or candidate in self._requests:
                return False
            self._reserved.add(candidate)
            return True

    def insert(self, state):
        with self._lock:
            if state.request_id in self._requests:
                raise ValueError(f"Request {state.request_id} already exists")
            state = replace(state, id=self._next_id)
            self._next_id += 1
            self._requests[state.request_id] = state
            return state

    def conditional_update(self, request_id, expected_version, new_state):
        with self._lock:
            current = self._requests.get(request_id)
            if current is None:
                raise NotFoundError(f"Request {request_id} not found")
            if current.version != expected_version:
                return False
            self._requests[request_id] = replace(new_state, version=expected_version + 1)
            return True

    def all(self):
        with self._lock:
            return list(self._requests.values())


class SqlRequestStore:
    """Flask-SQLAlchemy backed store. Must be used inside an application context."""

    def get(self, request_id):
        row = ApprovalRequest.query.populate_existing().filter_by(request_id=request_id).first()
        if not row:
            raise NotFoundError(f"Request {request_id} not found")
        entries = HistoryEntry.query.filter_by(approval_request_id=row.id) \
            .order_by(HistoryEntry.sequence).all()
        return _to_state(row, entries)

    def request_id_exists(self, candidate):
        if RequestIdReservation.query.filter_by(request_id=candidate).first():
            return True
        return ApprovalRequest.query.filter_by(request_id=candidate).first() is not None

    def reserve_request_id(self, candidate):
        db.session.add(RequestIdReservation(request_id=candidate))
        try:
            db.session.commit()
        except IntegrityError:
            # Another allocator took the same id between lookup and insert
            db.session.rollback()
            logger.info("Request id %s already reserved", candidate)
            return False
        return True

    def insert(self, state):
        attrs = state.attributes
        row = ApprovalRequest(
            request_id=state.request_id,
            requester_id=state.requester_id,
            stage=state.stage.value,
            version=state.version,
            parallel_approvals=_dump_roles(state.parallel_approvals),
            pending_query=state.pending_query,
            query_level=state.query_level.value if state.query_level else None,
            **{name: attrs.get(name) for name in ApprovalRequest.ATTRIBUTE_FIELDS}
        )
        try:
            db.session.add(row)
            db.session.flush()
            for sequence, entry in enumerate(state.history, 1):
                db.session.add(_to_row(row.id, sequence, entry))
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise
        return replace(state, id=row.id)

    def conditional_update(self, request_id, expected_version, new_state):
        entry = new_state.history[-1]
        stmt = (
            update(ApprovalRequest)
            .where(ApprovalRequest.request_id == request_id,
                   ApprovalRequest.version == expected_version)
            .values(
                stage=new_state.stage.value,
                version=expected_version + 1,
                parallel_approvals=_dump_roles(new_state.parallel_approvals),
                pending_query=new_state.pending_query,
                query_level=new_state.query_level.value if new_state.query_level else None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
            if result.rowcount != 1:
                db.session.rollback()
                return False
            db.session.add(_to_row(new_state.id, len(new_state.history), entry))
            db.session.commit()
        except IntegrityError:
            # History sequence already taken by a concurrent writer
            db.session.rollback()
            return False
        return True


def _dump_roles(roles):
    return json.dumps(sorted(r.value for r in roles))


def _to_row(request_pk, sequence, entry):
    return HistoryEntry(
        approval_request_id=request_pk,
        sequence=sequence,
        actor_id=entry.actor_id,
        actor_role=entry.actor_role.value,
        action=entry.action.value,
        notes=entry.notes,
        previous_stage=entry.previous_stage.value,
        new_stage=entry.new_stage.value,
        timestamp=entry.timestamp,
    )


def _to_state(row, entries):
    return RequestState(
        id=row.id,
        request_id=row.request_id,
        requester_id=row.requester_id,
        stage=Stage(row.stage),
        version=row.version,
        attributes=row.get_attributes(),
        parallel_approvals=frozenset(Role(r) for r in row.get_parallel_approvals()),
        pending_query=row.pending_query,
        query_level=Role(row.query_level) if row.query_level else None,
        history=tuple(
            HistoryRecord(
                actor_id=e.actor_id,
                actor_role=Role(e.actor_role),
                action=Action(e.action),
                notes=e.notes,
                previous_stage=Stage(e.previous_stage),
                new_stage=Stage(e.new_stage),
                timestamp=e.timestamp,
            )
            for e in entries
        ),
    )
