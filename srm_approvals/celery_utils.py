from flask import has_app_context


def init_celery(app, celery_app):
    """
    Points the shared celery_app at the broker and backend named in the Flask config
    and makes every task run with an application context (tasks use db.session).
    """
    celery_app.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_always_eager=app.config.get('CELERY_TASK_ALWAYS_EAGER', False),
        task_acks_late=True,
    )

    class ContextTask(celery_app.Task):
        def __call__(self, *args, **kwargs):
            # Eager tasks run inside the caller's context and share its session
            if has_app_context():
                return self.run(*args, **kwargs)
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app.Task = ContextTask
    celery_app.main = app.import_name
    return celery_app
