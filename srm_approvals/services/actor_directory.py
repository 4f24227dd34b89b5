from srm_approvals.constants import Role
from srm_approvals.errors import NotFoundError
from srm_approvals.extensions import db
from srm_approvals.models import User


class SqlActorDirectory:
    """Resolves actors against the ``User`` table. Inactive users are treated as unknown."""

    @staticmethod
    def role_of(actor_id):
        user = db.session.get(User, actor_id)
        if not user or not user.is_active:
            raise NotFoundError(f"Actor {actor_id} not found")
        return Role(user.role)

    @staticmethod
    def active_actors_with_role(role):
        users = User.query.filter_by(role=Role(role).value, is_active=True).all()
        return {u.id for u in users}


class InMemoryActorDirectory:

    def __init__(self, actors=None):
        # actor_id -> (role, is_active)
        self._actors = {}
        for actor_id, role in (actors or {}).items():
            self.add(actor_id, role)

    def add(self, actor_id, role, active=True):
        self._actors[actor_id] = (Role(role), active)

    def deactivate(self, actor_id):
        role, _ = self._actors[actor_id]
        self._actors[actor_id] = (role, False)

    def role_of(self, actor_id):
        role, active = self._actors.get(actor_id, (None, False))
        if role is None or not active:
            raise NotFoundError(f"Actor {actor_id} not found")
        return role

    def active_actors_with_role(self, role):
        role = Role(role)
        return {a for a, (r, active) in self._actors.items() if r == role and active}
