# Overview: Fire-and-forget background execution for long-running work (queued imports).

from __future__ import annotations

import threading

from flask import Flask, current_app


class TaskRunner:
    """
    Runs a callable outside the request that submitted it.

    Each task gets a daemon thread and its own application context (and so
    its own database session). Exceptions are logged and never reach the
    submitter; callers publish outcomes through persisted state instead.

    With IMPORT_TASKS_INLINE set the task runs synchronously in the calling
    thread, which keeps tests deterministic.
    """

    def __init__(self, app: Flask | None = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.extensions["task_runner"] = self

    def submit(self, name: str, func, *args, **kwargs) -> threading.Thread | None:
        app = current_app._get_current_object()

        if app.config.get("IMPORT_TASKS_INLINE"):
            self._invoke(app, name, func, args, kwargs)
            return None

        thread = threading.Thread(
            target=self._run_in_context,
            args=(app, name, func, args, kwargs),
            name=f"task-{name}",
            daemon=True,
        )
        thread.start()
        app.logger.info("Queued background task %s", name)
        return thread

    def _run_in_context(self, app: Flask, name: str, func, args, kwargs) -> None:
        with app.app_context():
            self._invoke(app, name, func, args, kwargs)

    @staticmethod
    def _invoke(app: Flask, name: str, func, args, kwargs) -> None:
        try:
            func(*args, **kwargs)
        except Exception:
            app.logger.exception("Background task %s failed", name)


task_runner = TaskRunner()
