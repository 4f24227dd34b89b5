import logging
from flask import current_app
from flask_mail import Message
from sqlalchemy.exc import SQLAlchemyError
from srm_approvals.extensions import celery, mail, db

logger = logging.getLogger(__name__)


@celery.task(bind=True, max_retries=3)
def send_async_email(self, subject, recipient, body, is_html=False):
    """
    Background task to send an email via Flask-Mail.
    """
    try:
        msg = Message(subject, recipients=[recipient],
                      sender=current_app.config.get('MAIL_DEFAULT_SENDER'))
        if is_html:
            msg.html = body
        else:
            msg.body = body

        mail.send(msg)
        return f"Email sent to {recipient}"
    except Exception as e:
        # Retry in 60 seconds if it fails (e.g., Network/SMTP issues)
        logger.warning("Email to %s failed: %s", recipient, e)
        raise self.retry(exc=e, countdown=60)


@celery.task(bind=True, max_retries=3)
def dispatch_status_change(self, payload):
    """
    Background task turning one StatusChangeEvent into in-app and email notifications.
    """
    from srm_approvals.services.notification_service import NotificationDispatcher
    from srm_approvals.services.request_state import StatusChangeEvent

    event = StatusChangeEvent.from_dict(payload)
    try:
        return NotificationDispatcher.from_app(current_app).dispatch(event)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.warning("Notification dispatch for request %s failed: %s", event.request_id, e)
        raise self.retry(exc=e, countdown=30)
