import json
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from srm_approvals.extensions import db
from srm_approvals.constants import Stage
from srm_approvals.utils import utcnow


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    role = db.Column(db.String(32), nullable=False, index=True)
    college = db.Column(db.String(100))
    department = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'role': self.role,
            'college': self.college,
            'department': self.department,
            'is_active': self.is_active,
        }


class RequestIdReservation(db.Model):
    """One row per issued 6-digit request id. The unique constraint is the reservation."""
    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(6), unique=True, nullable=False)
    reserved_at = db.Column(db.DateTime, default=utcnow)


class ApprovalRequest(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.String(6), unique=True, nullable=False, index=True)
    requester_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow)

    # Basic Data
    title = db.Column(db.String(200), nullable=False)
    purpose = db.Column(db.Text, nullable=False)
    college = db.Column(db.String(100), nullable=False)
    department = db.Column(db.String(100), nullable=False)
    expense_category = db.Column(db.String(100))
    cost_estimate = db.Column(db.Float)

    # Workflow
    stage = db.Column(db.String(32), nullable=False, default=Stage.MANAGER_REVIEW.value, index=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    parallel_approvals = db.Column(db.Text, nullable=False, default='[]')  # JSON list of role values
    pending_query = db.Column(db.Boolean, nullable=False, default=False)
    query_level = db.Column(db.String(32))

    requester = db.relationship('User', foreign_keys=[requester_id])
    history = db.relationship('HistoryEntry', order_by='HistoryEntry.sequence',
                              back_populates='request', lazy='selectin')

    ATTRIBUTE_FIELDS = ('title', 'purpose', 'college', 'department', 'expense_category', 'cost_estimate')

    def get_parallel_approvals(self):
        try: return json.loads(self.parallel_approvals) if self.parallel_approvals else []
        except ValueError: return []

    def get_attributes(self):
        return {name: getattr(self, name) for name in self.ATTRIBUTE_FIELDS}


class HistoryEntry(db.Model):
    """Audit trail row. Rows are only ever inserted."""
    __table_args__ = (
        db.UniqueConstraint('approval_request_id', 'sequence', name='uq_history_request_sequence'),
    )

    id = db.Column(db.Integer, primary_key=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey('approval_request.id'), nullable=False)
    sequence = db.Column(db.Integer, nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    actor_role = db.Column(db.String(32), nullable=False)
    action = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.Text)
    previous_stage = db.Column(db.String(32), nullable=False)
    new_stage = db.Column(db.String(32), nullable=False)
    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

    request = db.relationship('ApprovalRequest', back_populates='history')


class CheckRouting(db.Model):
    """Expense category -> role that owns the department checks stage."""
    id = db.Column(db.Integer, primary_key=True)
    expense_category = db.Column(db.String(100), unique=True, nullable=False)
    role = db.Column(db.String(32), nullable=False)


class Notification(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    approval_request_id = db.Column(db.Integer, db.ForeignKey('approval_request.id'), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, default=False, nullable=False, index=True)
    action_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    request = db.relationship('ApprovalRequest')

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'read': self.read,
            'action_url': self.action_url,
            'request_id': self.request.request_id if self.request else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
