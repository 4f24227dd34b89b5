import logging
import threading

logger = logging.getLogger(__name__)


class CeleryEventEmitter:
    """Queues each status change for the notification dispatcher task."""

    def emit(self, event):
        # Imported here: tasks imports the services that build the engine
        from srm_approvals.tasks import dispatch_status_change
        dispatch_status_change.delay(event.to_dict())
        logger.debug("Queued %s event for request %s", event.action.value, event.request_id)


class CollectingEventEmitter:
    """Keeps emitted events in memory, in emission order."""

    def __init__(self):
        self._lock = threading.Lock()
        self.events = []

    def emit(self, event):
        with self._lock:
            self.events.append(event)

    def for_request(self, request_id):
        with self._lock:
            return [e for e in self.events if e.request_id == request_id]
