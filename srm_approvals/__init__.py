import logging
from flask import Flask
from config import Config
from .extensions import db, login_manager, mail, migrate, celery
from .models import User
from dotenv import load_dotenv
from .celery_utils import init_celery
from .errors import WorkflowError
from .utils import error_response

# Load .env file before app creation
load_dotenv()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # Initialize Extensions
    db.init_app(app)
    mail.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)

    # Initialize Celery
    init_celery(app, celery)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return {'error': 'Unauthorized', 'message': 'Login required'}, 401

    app.register_error_handler(WorkflowError, error_response)

    # Workflow engine
    init_workflow(app)

    # CLI: `flask users ...`, `flask routing ...`
    from .commands import register_commands
    register_commands(app)

    # Register Blueprints
    from .blueprints.auth import auth_bp
    from .blueprints.requests import requests_bp
    from .blueprints.notifications import notifications_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(requests_bp, url_prefix='/requests')
    app.register_blueprint(notifications_bp, url_prefix='/notifications')

    # Create DB Tables
    # With Flask-Migrate use 'flask db upgrade' in production; this keeps dev/test databases ready.
    with app.app_context():
        db.create_all()

    return app


def init_workflow(app):
    from .services.actor_directory import SqlActorDirectory
    from .services.event_emitter import CeleryEventEmitter
    from .services.request_store import SqlRequestStore
    from .services.routing_service import routing_table_resolver
    from .services.workflow_engine import build_engine

    engine = build_engine(
        app.config,
        store=SqlRequestStore(),
        directory=SqlActorDirectory(),
        resolver=routing_table_resolver(app.config.get('DEPARTMENT_CHECK_ROUTING')),
        emitter=CeleryEventEmitter(),
    )
    app.extensions['workflow_engine'] = engine
    return engine
