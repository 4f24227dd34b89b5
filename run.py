import os

from srm_approvals import create_app, celery  # celery exported so `celery -A run.celery worker` finds it


app = create_app()
app.app_context().push()  # Worker tasks started from this module reuse this context


if __name__ == '__main__':
    app.run(host=os.environ.get('FLASK_RUN_HOST', '0.0.0.0'),
            port=int(os.environ.get('FLASK_RUN_PORT') or 5000),
            debug=os.environ.get('FLASK_DEBUG') == '1')
