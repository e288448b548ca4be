import logging
from threading import Event, Thread

from telemed.core import config
from telemed.core.clock import Clock
from telemed.services.cancellation import CancellationEnforcer
from telemed.services.store import Store

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically cancels unpaid appointments whose payment deadline has passed."""

    def __init__(self, session_factory, clock: Clock, interval_seconds: int | None = None):
        self.session_factory = session_factory
        self.clock = clock
        self.interval_seconds = interval_seconds or config.EXPIRY_SWEEP_INTERVAL_SECONDS
        self._stop = Event()
        self._thread: Thread | None = None

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return CancellationEnforcer(Store(db), self.clock).expire_unpaid()
        finally:
            db.close()

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                logger.exception('Expiry sweep failed; retrying in %s seconds', self.interval_seconds)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._loop, name='expiry-sweeper', daemon=True)
        self._thread.start()
        logger.info('Expiry sweep started (every %s seconds)', self.interval_seconds)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval_seconds)
            self._thread = None
        logger.info('Expiry sweep stopped')
