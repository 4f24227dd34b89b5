from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from celery import Celery

db = SQLAlchemy()
login_manager = LoginManager()
mail = Mail()
migrate = Migrate()

# Configured by init_celery; `include` lets a bare worker find the notification tasks
celery = Celery('srm_approvals', include=['srm_approvals.tasks'])
