import logging
from srm_approvals.constants import Action, NotificationType, Stage
from srm_approvals.extensions import db
from srm_approvals.models import Notification, User
from srm_approvals.tasks import send_async_email

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Consumes StatusChangeEvents: writes in-app notifications and queues emails.

    Runs outside the transition that produced the event, so nothing here can
    fail a workflow action.
    """

    def __init__(self, engine, app_name='SRM Approval System', base_url='http://localhost:5000'):
        self.engine = engine
        self.app_name = app_name
        self.base_url = base_url.rstrip('/')

    @classmethod
    def from_app(cls, app):
        return cls(app.extensions['workflow_engine'],
                   app_name=app.config.get('APP_NAME', 'SRM Approval System'),
                   base_url=app.config.get('BASE_URL', 'http://localhost:5000'))

    def dispatch(self, event):
        state = self.engine.get_request(event.request_id)
        requester = db.session.get(User, state.requester_id)
        actor = db.session.get(User, event.actor_id)
        title = state.attributes.get('title') or state.request_id
        actor_label = f"{actor.username if actor else event.actor_id} ({event.actor_role.value})"

        outgoing = []
        if event.action == Action.SUBMIT:
            outgoing.append((state.requester_id, NotificationType.REQUEST_CREATED, 'Request Submitted',
                             f'Your request "{title}" was submitted as #{state.request_id}.'))
            outgoing += self._to_pending(event.new_stage, state, title, requester)

        elif event.action == Action.APPROVE:
            outgoing.append((state.requester_id, NotificationType.APPROVAL_APPROVED, 'Request Approved',
                             f'Your request "{title}" has been approved by {actor_label}.'))
            if event.stage_changed and not event.new_stage.is_terminal:
                outgoing += self._to_pending(event.new_stage, state, title, requester)

        elif event.action == Action.REJECT:
            reason = f" Reason: {event.notes}" if event.notes else ''
            outgoing.append((state.requester_id, NotificationType.APPROVAL_REJECTED, 'Request Rejected',
                             f'Your request "{title}" has been rejected by {actor_label}.{reason}'))

        elif event.action == Action.QUERY:
            outgoing.append((state.requester_id, NotificationType.QUERY_RECEIVED, 'Clarification Requested',
                             f'{actor_label} has requested clarification on "{title}": {event.notes or ""}'))

        elif event.action == Action.RESPOND:
            for user_id in self._actors_for(event.new_stage, state):
                outgoing.append((user_id, NotificationType.QUERY_RESPONDED, 'Clarification Received',
                                 f'The requester has responded to the clarification on "{title}".'))

        if event.new_stage.is_terminal and event.stage_changed:
            outcome = 'approved' if event.new_stage == Stage.APPROVED else 'rejected'
            outgoing.append((state.requester_id, NotificationType.REQUEST_COMPLETED, 'Request Completed',
                             f'Your request "{title}" has been {outcome}.'))

        return self._deliver(state, outgoing)

    def _to_pending(self, stage, state, title, requester):
        name = requester.username if requester else 'A requester'
        return [(user_id, NotificationType.APPROVAL_PENDING, 'New Approval Request',
                 f'{name} has submitted "{title}" for your approval.')
                for user_id in self._actors_for(stage, state)]

    def _actors_for(self, stage, state):
        # Stage recorded on the event; the request may have moved on since
        roles = () if stage.is_terminal else self.engine.definition.roles_for(stage, state.attributes)
        actors = set()
        for role in roles:
            actors |= self.engine.directory.active_actors_with_role(role)
        return sorted(actors)

    def _deliver(self, state, outgoing):
        action_url = f"{self.base_url}/requests/{state.request_id}"
        created = []
        for user_id, kind, subject, message in outgoing:
            created.append(Notification(
                user_id=user_id,
                approval_request_id=state.id,
                type=kind.value,
                title=subject,
                message=message,
                action_url=action_url,
            ))
        db.session.add_all(created)
        db.session.commit()

        for note in created:
            user = db.session.get(User, note.user_id)
            if not user or not user.email:
                continue
            body = f"{note.title}\n\n{note.message}\n\nView request: {action_url}\n\n-- {self.app_name}"
            try:
                send_async_email.delay(f"[{self.app_name}] {note.title}", user.email, body, is_html=False)
            except Exception:
                # Broker unavailable: the in-app notification is already stored
                logger.exception("Could not queue email for user %s", user.id)

        logger.info("Created %d notifications for request %s", len(created), state.request_id)
        return len(created)


class NotificationService:

    @staticmethod
    def list_for_user(user_id, unread_only=False, page=1, limit=50):
        page, limit = max(1, page), max(1, min(limit, 100))
        query = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            query = query.filter_by(read=False)

        total = query.count()
        items = query.order_by(Notification.created_at.desc(), Notification.id.desc()) \
            .offset((page - 1) * limit).limit(limit).all()
        return {
            'notifications': [n.to_dict() for n in items],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'pages': (total + limit - 1) // limit,
            },
            'unread_count': Notification.query.filter_by(user_id=user_id, read=False).count(),
        }

    @staticmethod
    def mark_read(user_id, notification_ids=None, mark_all=False):
        query = Notification.query.filter_by(user_id=user_id, read=False)
        if not mark_all:
            if not notification_ids:
                raise ValueError("notification_ids is required unless mark_all is set")
            query = query.filter(Notification.id.in_(notification_ids))
        count = query.update({'read': True}, synchronize_session=False)
        db.session.commit()
        return count

    @staticmethod
    def delete(user_id, notification_id):
        note = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if not note:
            return False
        db.session.delete(note)
        db.session.commit()
        return True
