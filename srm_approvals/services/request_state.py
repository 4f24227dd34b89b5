"""Immutable snapshots of a request and its audit trail.

Stores hand out ``RequestState`` values and accept new ones; nothing mutates a
snapshot in place. A transition produces a new state whose history is the old
history plus exactly one entry, which keeps the trail append-only.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Tuple, FrozenSet, Dict, Any

from srm_approvals.constants import Stage, Role, Action


@dataclass(frozen=True)
class HistoryRecord:
    actor_id: Any
    actor_role: Role
    action: Action
    timestamp: datetime
    previous_stage: Stage
    new_stage: Stage
    notes: Optional[str] = None

    def to_dict(self):
        return {
            'actor_id': self.actor_id,
            'actor_role': self.actor_role.value,
            'action': self.action.value,
            'notes': self.notes,
            'previous_stage': self.previous_stage.value,
            'new_stage': self.new_stage.value,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RequestState:
    request_id: str
    requester_id: Any
    stage: Stage
    version: int = 1
    attributes: Dict[str, Any] = field(default_factory=dict)
    parallel_approvals: FrozenSet[Role] = frozenset()
    pending_query: bool = False
    query_level: Optional[Role] = None
    history: Tuple[HistoryRecord, ...] = ()
    id: Optional[int] = None

    @property
    def is_terminal(self):
        return self.stage.is_terminal

    @property
    def last_entry(self):
        return self.history[-1] if self.history else None

    def advance(self, entry, **changes):
        """Returns the state after ``entry`` is accepted, with ``changes`` applied."""
        if self.history and entry.timestamp < self.history[-1].timestamp:
            entry = replace(entry, timestamp=self.history[-1].timestamp)
        return replace(self, history=self.history + (entry,), **changes)

    def to_dict(self):
        return {
            'request_id': self.request_id,
            'requester_id': self.requester_id,
            'stage': self.stage.value,
            'version': self.version,
            'attributes': dict(self.attributes),
            'parallel_approvals': sorted(r.value for r in self.parallel_approvals),
            'pending_query': self.pending_query,
            'query_level': self.query_level.value if self.query_level else None,
            'history': [entry.to_dict() for entry in self.history],
        }


@dataclass(frozen=True)
class StatusChangeEvent:
    """Fact handed to the notification side after a transition is stored."""
    request_id: str
    actor_id: Any
    actor_role: Role
    action: Action
    previous_stage: Stage
    new_stage: Stage
    timestamp: datetime
    notes: Optional[str] = None

    @classmethod
    def from_entry(cls, request_id, entry):
        return cls(
            request_id=request_id,
            actor_id=entry.actor_id,
            actor_role=entry.actor_role,
            action=entry.action,
            previous_stage=entry.previous_stage,
            new_stage=entry.new_stage,
            timestamp=entry.timestamp,
            notes=entry.notes,
        )

    @property
    def stage_changed(self):
        return self.previous_stage != self.new_stage

    def to_dict(self):
        return {
            'request_id': self.request_id,
            'actor_id': self.actor_id,
            'actor_role': self.actor_role.value,
            'action': self.action.value,
            'previous_stage': self.previous_stage.value,
            'new_stage': self.new_stage.value,
            'notes': self.notes,
            'timestamp': self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            request_id=data['request_id'],
            actor_id=data['actor_id'],
            actor_role=Role(data['actor_role']),
            action=Action(data['action']),
            previous_stage=Stage(data['previous_stage']),
            new_stage=Stage(data['new_stage']),
            notes=data.get('notes'),
            timestamp=datetime.fromisoformat(data['timestamp']),
        )
