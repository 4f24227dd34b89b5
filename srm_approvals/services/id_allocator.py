import logging
import random

from srm_approvals.errors import IdExhaustionError

logger = logging.getLogger(__name__)

MIN_REQUEST_ID = 100000
MAX_REQUEST_ID = 999999
DEFAULT_MAX_ATTEMPTS = 100


class RequestIdAllocator:
    """Hands out unique 6-digit request ids.

    A candidate is drawn uniformly from 100000-999999, checked against the
    store and then reserved through the store's unique constraint. Losing a
    reservation race is treated like any other collision: draw again.
    """

    def __init__(self, store, max_attempts=DEFAULT_MAX_ATTEMPTS, rng=None):
        self.store = store
        self.max_attempts = max_attempts
        self.rng = rng or random.SystemRandom()

    def candidate(self):
        return str(self.rng.randint(MIN_REQUEST_ID, MAX_REQUEST_ID))

    def allocate(self):
        for attempt in range(1, self.max_attempts + 1):
            candidate = self.candidate()
            if self.store.request_id_exists(candidate):
                continue
            if self.store.reserve_request_id(candidate):
                if attempt > 1:
                    logger.info("Allocated request id %s after %d attempts", candidate, attempt)
                return candidate

        logger.error("Request id space exhausted after %d attempts", self.max_attempts)
        raise IdExhaustionError(
            f"Unable to generate unique request ID after {self.max_attempts} attempts")
