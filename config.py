import os
from dotenv import load_dotenv

# Load the .env file immediately
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    # 1. Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-fallback-key'

    # 2. Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'app.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 3. Application
    APP_NAME = os.environ.get('APP_NAME') or 'SRM Approval System'
    BASE_URL = os.environ.get('BASE_URL') or 'http://localhost:5000'
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'

    # 4. Email Configuration
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.gmail.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') == 'True'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or MAIL_USERNAME

    # 5. Celery Configuration
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL') or 'redis://localhost:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND') or 'redis://localhost:6379/0'
    CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER')

    # 6. Workflow
    # Conditional-update retries before a ConcurrentModificationError reaches the caller
    WORKFLOW_MAX_RETRIES = int(os.environ.get('WORKFLOW_MAX_RETRIES') or 5)
    REQUEST_ID_MAX_ATTEMPTS = int(os.environ.get('REQUEST_ID_MAX_ATTEMPTS') or 100)
    WORKFLOW_QUERIER_MAY_REJECT = _env_bool('WORKFLOW_QUERIER_MAY_REJECT')
    WORKFLOW_ALLOW_REQUERY = _env_bool('WORKFLOW_ALLOW_REQUERY')

    # Expense category -> role that runs the department checks stage.
    # Categories not listed here go to MMA.
    DEPARTMENT_CHECK_ROUTING = {
        'Equipment': 'mma',
        'Maintenance': 'mma',
        'Consumables': 'mma',
        'Staffing': 'hr',
        'Training': 'hr',
        'Consultancy': 'audit',
        'Software': 'it',
        'IT Infrastructure': 'it',
    }


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@srm.test'
    LOG_LEVEL = 'WARNING'
