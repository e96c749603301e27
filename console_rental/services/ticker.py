import threading
from datetime import datetime
from typing import Callable, Optional

from loguru import logger
from sqlalchemy.orm import sessionmaker

from console_rental.core.locks import console_key
from console_rental.core.outcome import Outcome, capture
from console_rental.core.utils import to_local
from console_rental.db.database import session_scope
from console_rental.monitoring.metrics import MetricsCollector
from console_rental.schemas import SessionSnapshot
from console_rental.services.factory import ServiceFactory
from console_rental.services.rental import TickReport


class SessionTicker:
    """Background thread that refreshes running totals of active sessions.

    Purely advisory: a tick never changes what close will charge. Each
    session is recomputed and committed while its console lock is held, and
    consoles busy with another operation are skipped until the next tick.
    """

    def __init__(
        self,
        factory: ServiceFactory,
        session_factory: sessionmaker,
        interval_sec: float = 1.0,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.factory = factory
        self.session_factory = session_factory
        self.interval_sec = interval_sec
        self.clock = clock or (lambda: to_local(datetime.now().astimezone(), factory.zone))
        self._worker: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def _tick_session(self, session_id: str, now: datetime) -> SessionSnapshot:
        with session_scope(self.session_factory) as session:
            return self.factory.rental_manager(session).tick(session_id, now)

    def tick_once(self) -> TickReport:
        now = self.clock()
        with session_scope(self.session_factory) as session:
            active = [(r.id, r.console_id) for r in self.factory.rental_manager(session).list_active()]

        report = TickReport()
        failed = 0
        for session_id, console_id in active:
            with self.factory.locks.try_hold(console_key(console_id)) as acquired:
                if not acquired:
                    report.skipped.append(session_id)
                    continue
                outcome: Outcome = capture(self._tick_session, session_id, now)
            if outcome.ok:
                report.ticked.append(session_id)
            else:
                failed += 1
                MetricsCollector.record_engine_error(outcome.error_kind)
                logger.warning(f"Tick of {session_id} failed: {outcome.error.message}")

        MetricsCollector.record_tick("ticked", len(report.ticked))
        MetricsCollector.record_tick("skipped", len(report.skipped))
        MetricsCollector.record_tick("failed", failed)
        if report.skipped:
            logger.debug(f"Tick skipped busy sessions: {report.skipped}")
        return report

    def _run_safely(self) -> None:
        try:
            self.tick_once()
        except Exception as e:
            # the next tick recomputes from scratch
            MetricsCollector.record_tick("failed")
            logger.error(f"Tick crashed: {e}")

    def start(self) -> None:
        if self._worker and self._worker.is_alive():
            return
        stop_event = threading.Event()
        self._stop_event = stop_event

        def _loop():
            while not stop_event.is_set():
                self._run_safely()
                if stop_event.wait(self.interval_sec):
                    break

        self._worker = threading.Thread(target=_loop, name="session-ticker", daemon=True)
        self._worker.start()
        logger.info(f"Session ticker started (interval={self.interval_sec}s)")

    def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._worker:
            self._worker.join(timeout=2.0)
        self._worker = None
        self._stop_event = None
        logger.info("Session ticker stopped")

    @property
    def running(self) -> bool:
        return bool(self._worker and self._worker.is_alive())
