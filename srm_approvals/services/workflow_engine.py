"""State machine that moves approval requests between stages.

The five mutators (``submit``, ``approve``, ``reject``,
``request_clarification``, ``respond_clarification``) are the only way a
request changes. Each one reads the current snapshot, computes the next one
with a pure transition method and writes it back with a version-checked
update. A lost race surfaces as ``ConcurrentModificationError`` from a single
attempt; ``_apply`` re-reads and re-applies the same action a bounded number
of times before giving up. Every other error is a business-rule failure and
is raised to the caller on the first attempt.
"""
import logging
from dataclasses import dataclass, replace

from srm_approvals.constants import Stage, Role, Action
from srm_approvals.errors import (
    ConcurrentModificationError, InvalidTransitionError, UnauthorizedActionError, ValidationError,
)
from srm_approvals.forms import validate_submission
from srm_approvals.services.id_allocator import RequestIdAllocator
from srm_approvals.services.request_state import RequestState, HistoryRecord, StatusChangeEvent
from srm_approvals.services.workflow_definition import WorkflowDefinition
from srm_approvals.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClarificationPolicy:
    """How an outstanding clarification restricts other actions.

    querier_may_reject: the role that raised the query may still reject while it is open.
    allow_requery: a new query may replace an outstanding one.
    """
    querier_may_reject: bool = False
    allow_requery: bool = False


STRICT_POLICY = ClarificationPolicy()


class WorkflowEngine:

    def __init__(self, store, directory, definition=None, emitter=None, allocator=None,
                 validator=validate_submission, policy=STRICT_POLICY, max_retries=5,
                 clock=utcnow):
        self.store = store
        self.directory = directory
        self.definition = definition or WorkflowDefinition()
        self.emitter = emitter
        self.allocator = allocator or RequestIdAllocator(store)
        self.validator = validator
        self.policy = policy
        self.max_retries = max(1, max_retries)
        self.clock = clock

    # --- MUTATORS ---
    def submit(self, requester_id, attributes):
        role = self.directory.role_of(requester_id)
        if role != Role.REQUESTER:
            raise UnauthorizedActionError(f"Only requesters can submit ({role.value} cannot)")

        cleaned = self.validator(attributes) if self.validator else dict(attributes)
        request_id = self.allocator.allocate()
        stage = self.definition.initial_stage
        entry = HistoryRecord(
            actor_id=requester_id, actor_role=role, action=Action.SUBMIT,
            timestamp=self.clock(), previous_stage=Stage.DRAFT, new_stage=stage,
        )
        state = self.store.insert(RequestState(
            request_id=request_id,
            requester_id=requester_id,
            stage=stage,
            attributes=cleaned,
            history=(entry,),
        ))
        logger.info("Request %s submitted by %s", request_id, requester_id)
        self._emit(state)
        return state

    def approve(self, request_id, actor_id, notes=None):
        return self._apply(request_id, actor_id, self._approve, notes)

    def reject(self, request_id, actor_id, reason=None):
        return self._apply(request_id, actor_id, self._reject, reason)

    def request_clarification(self, request_id, actor_id, message):
        return self._apply(request_id, actor_id, self._query, message)

    def respond_clarification(self, request_id, actor_id, response):
        return self._apply(request_id, actor_id, self._respond, response)

    # --- READ ACCESSORS ---
    def get_request(self, request_id):
        return self.store.get(request_id)

    def current_stage(self, request_id):
        return self.store.get(request_id).stage

    def history(self, request_id):
        return self.store.get(request_id).history

    def query_status(self, request_id):
        state = self.store.get(request_id)
        return state.pending_query, state.query_level

    def pending_roles(self, state):
        """Roles that still owe an action on ``state``."""
        if state.is_terminal:
            return frozenset()
        if state.pending_query:
            return frozenset({Role.REQUESTER})
        return self.definition.roles_for(state.stage, state.attributes) - state.parallel_approvals

    def pending_approvers(self, request_id):
        """Ids of active actors who can act on the request right now."""
        state = self.store.get(request_id)
        if state.pending_query:
            return {state.requester_id}
        actors = set()
        for role in self.pending_roles(state):
            actors |= self.directory.active_actors_with_role(role)
        return actors

    # --- RETRY WRAPPER ---
    def _apply(self, request_id, actor_id, transition, text):
        if text is not None and not isinstance(text, str):
            raise ValidationError(f"Notes must be text, not {type(text).__name__}")
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._attempt(request_id, actor_id, transition, text)
            except ConcurrentModificationError:
                if attempt >= self.max_retries:
                    logger.warning("Giving up on request %s after %d conflicting writes",
                                   request_id, attempt)
                    raise
                logger.warning("Version conflict on request %s (attempt %d/%d), retrying",
                               request_id, attempt, self.max_retries)

    def _attempt(self, request_id, actor_id, transition, text):
        state = self.store.get(request_id)
        role = self.directory.role_of(actor_id)
        new_state = replace(transition(state, actor_id, role, text), version=state.version + 1)

        if not self.store.conditional_update(request_id, state.version, new_state):
            raise ConcurrentModificationError(
                f"Request {request_id} changed since version {state.version}")

        entry = new_state.last_entry
        logger.info("Request %s: %s by %s (%s) %s -> %s", request_id, entry.action.value,
                    actor_id, role.value, entry.previous_stage.value, entry.new_stage.value)
        self._emit(new_state)
        return new_state

    # --- TRANSITIONS ---
    def _approve(self, state, actor_id, role, notes):
        self._check_actionable(state, role, Action.APPROVE)
        stage = state.stage

        if self.definition.is_parallel(stage):
            approvals = state.parallel_approvals | {role}
            if approvals != self.definition.roles_for(stage, state.attributes):
                # Still waiting on the other role
                entry = self._entry(state, actor_id, role, Action.APPROVE, notes, stage)
                return state.advance(entry, parallel_approvals=approvals)

        next_stage = self.definition.next_on_approve(stage)
        entry = self._entry(state, actor_id, role, Action.APPROVE, notes, next_stage)
        return state.advance(entry, stage=next_stage, parallel_approvals=frozenset())

    def _reject(self, state, actor_id, role, reason):
        self._check_actionable(state, role, Action.REJECT)
        entry = self._entry(state, actor_id, role, Action.REJECT, reason, Stage.REJECTED)
        return state.advance(entry, stage=Stage.REJECTED, parallel_approvals=frozenset(),
                             pending_query=False, query_level=None)

    def _query(self, state, actor_id, role, message):
        self._check_open(state)
        if state.pending_query and not self.policy.allow_requery:
            raise InvalidTransitionError(
                f"Request {state.request_id} already has an outstanding clarification "
                f"from {state.query_level.value}")
        self._authorize(state, role)
        entry = self._entry(state, actor_id, role, Action.QUERY, message, state.stage)
        return state.advance(entry, pending_query=True, query_level=role)

    def _respond(self, state, actor_id, role, response):
        if not state.pending_query:
            raise UnauthorizedActionError(
                f"Request {state.request_id} has no clarification awaiting a response")
        if actor_id != state.requester_id:
            raise UnauthorizedActionError("Only the original requester can respond to a clarification")
        entry = self._entry(state, actor_id, role, Action.RESPOND, response, state.stage)
        return state.advance(entry, pending_query=False, query_level=None)

    # --- GUARDS ---
    @staticmethod
    def _check_open(state):
        if state.is_terminal:
            raise InvalidTransitionError(f"Request {state.request_id} is already {state.stage.value}")

    def _check_actionable(self, state, role, action):
        self._check_open(state)
        if state.pending_query:
            querier_rejects = (action == Action.REJECT and self.policy.querier_may_reject
                               and role == state.query_level)
            if not querier_rejects:
                raise InvalidTransitionError(
                    f"Request {state.request_id} is waiting for the requester to answer a clarification")
        self._authorize(state, role)

    def _authorize(self, state, role):
        allowed = self.definition.roles_for(state.stage, state.attributes)
        if role not in allowed:
            raise UnauthorizedActionError(
                f"{role.value} cannot act on {state.stage.value} "
                f"(allowed: {', '.join(sorted(r.value for r in allowed))})")

    def _entry(self, state, actor_id, role, action, notes, new_stage):
        return HistoryRecord(
            actor_id=actor_id, actor_role=role, action=action, notes=notes,
            timestamp=self.clock(), previous_stage=state.stage, new_stage=new_stage,
        )

    # --- EVENTS ---
    def _emit(self, state):
        if self.emitter is None:
            return
        event = StatusChangeEvent.from_entry(state.request_id, state.last_entry)
        try:
            self.emitter.emit(event)
        except Exception:
            # The transition is already stored; delivery is the dispatcher's problem
            logger.exception("Failed to hand off %s event for request %s",
                             event.action.value, state.request_id)


def build_engine(config, store, directory, resolver=None, emitter=None):
    """Wires an engine from a Flask config mapping."""
    definition = WorkflowDefinition(resolver=resolver)
    return WorkflowEngine(
        store=store,
        directory=directory,
        definition=definition,
        emitter=emitter,
        allocator=RequestIdAllocator(store, max_attempts=config.get('REQUEST_ID_MAX_ATTEMPTS', 100)),
        policy=ClarificationPolicy(
            querier_may_reject=config.get('WORKFLOW_QUERIER_MAY_REJECT', False),
            allow_requery=config.get('WORKFLOW_ALLOW_REQUERY', False),
        ),
        max_retries=config.get('WORKFLOW_MAX_RETRIES', 5),
    )
