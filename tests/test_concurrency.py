"""Tests for version-checked writes under concurrent actors."""

import threading

import pytest

from conftest import REQUESTER, actor
from srm_approvals.constants import Action, Role, Stage
from srm_approvals.errors import ConcurrentModificationError, UnauthorizedActionError
from srm_approvals.services.request_store import InMemoryRequestStore
from srm_approvals.services.workflow_engine import WorkflowEngine


class BarrierStore(InMemoryRequestStore):
    """Holds each thread's first read until every racer has read the same version."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = None
        self.parties = parties
        self.conflicts = 0
        self._seen = threading.local()

    def arm(self):
        self.barrier = threading.Barrier(self.parties, timeout=5)

    def get(self, request_id):
        state = super().get(request_id)
        if (self.barrier is not None and threading.current_thread() is not threading.main_thread()
                and not getattr(self._seen, 'done', False)):
            self._seen.done = True
            self.barrier.wait()
        return state

    def conditional_update(self, request_id, expected_version, new_state):
        ok = super().conditional_update(request_id, expected_version, new_state)
        if not ok:
            with self._lock:
                self.conflicts += 1
        return ok


class AlwaysStaleStore(InMemoryRequestStore):
    """Every write loses the race."""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    def conditional_update(self, request_id, expected_version, new_state):
        self.attempts += 1
        return False


def run_concurrently(*calls):
    results, errors = [None] * len(calls), []

    def target(index, fn):
        try:
            results[index] = fn()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=target, args=(i, fn)) for i, fn in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


@pytest.fixture
def racing(directory, attributes, emitter):
    store = BarrierStore(parties=2)
    engine = WorkflowEngine(store=store, directory=directory, emitter=emitter)
    state = engine.submit(REQUESTER, attributes)
    engine.approve(state.request_id, actor(Role.INSTITUTION_MANAGER))
    store.arm()
    return engine, store, state.request_id


class TestConcurrentParallelApproval:

    def test_both_approvals_land_and_join_completes(self, racing):
        engine, store, request_id = racing
        _, errors = run_concurrently(
            lambda: engine.approve(request_id, actor(Role.SOP_VERIFIER)),
            lambda: engine.approve(request_id, actor(Role.ACCOUNTANT)),
        )
        assert not errors
        assert store.conflicts == 1

        state = engine.get_request(request_id)
        assert state.stage == Stage.VP_APPROVAL
        assert state.parallel_approvals == frozenset()
        roles = [e.actor_role for e in state.history if e.previous_stage == Stage.PARALLEL_VERIFICATION]
        assert sorted(r.value for r in roles) == ['accountant', 'sop_verifier']
        # Exactly one of the two approvals advanced the stage
        assert [e.new_stage for e in state.history[-2:]].count(Stage.VP_APPROVAL) == 1
        assert state.version == 4

    def test_one_event_per_stored_transition(self, racing, emitter):
        engine, store, request_id = racing
        run_concurrently(
            lambda: engine.approve(request_id, actor(Role.SOP_VERIFIER)),
            lambda: engine.approve(request_id, actor(Role.ACCOUNTANT)),
        )
        events = emitter.for_request(request_id)
        assert len(events) == len(engine.history(request_id))
        assert [e.action for e in events].count(Action.APPROVE) == 3

    def test_reject_racing_approve(self, racing):
        engine, store, request_id = racing
        results, errors = run_concurrently(
            lambda: engine.reject(request_id, actor(Role.SOP_VERIFIER), 'Out of policy'),
            lambda: engine.approve(request_id, actor(Role.ACCOUNTANT)),
        )
        state = engine.get_request(request_id)
        assert state.stage == Stage.REJECTED
        # The approval either landed first or lost to the terminal stage
        if errors:
            (error,) = errors
            assert error.status_code == 409
            assert len(state.history) == 3
        else:
            assert len(state.history) == 4


class TestRetryLimit:

    def test_gives_up_after_max_retries(self, directory, attributes):
        store = AlwaysStaleStore()
        engine = WorkflowEngine(store=store, directory=directory, max_retries=3)
        state = engine.submit(REQUESTER, attributes)
        with pytest.raises(ConcurrentModificationError):
            engine.approve(state.request_id, actor(Role.INSTITUTION_MANAGER))
        assert store.attempts == 3
        assert engine.current_stage(state.request_id) == Stage.MANAGER_REVIEW

    def test_business_errors_are_not_retried(self, directory, attributes):
        store = AlwaysStaleStore()
        engine = WorkflowEngine(store=store, directory=directory, max_retries=3)
        state = engine.submit(REQUESTER, attributes)
        with pytest.raises(UnauthorizedActionError):
            engine.approve(state.request_id, actor(Role.DEAN))
        assert store.attempts == 0


class TestManyRequests:

    def test_independent_requests_progress_in_parallel(self, engine, attributes):
        ids = [engine.submit(REQUESTER, attributes).request_id for _ in range(10)]
        _, errors = run_concurrently(*[
            (lambda rid=rid: engine.approve(rid, actor(Role.INSTITUTION_MANAGER))) for rid in ids
        ])
        assert not errors
        assert all(engine.current_stage(rid) == Stage.PARALLEL_VERIFICATION for rid in ids)
