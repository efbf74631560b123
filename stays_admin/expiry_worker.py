import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import Booking, PaymentStatus, utcnow

logger = logging.getLogger(__name__)


async def expire_stale_bookings(db: AsyncSession, older_than: datetime) -> int:
    """One sweep: pending bookings created before `older_than` become expired."""
    res = await db.execute(
        update(Booking)
        .where(
            Booking.payment_status == PaymentStatus.PENDING.value,
            Booking.created_at < older_than,
        )
        .values(payment_status=PaymentStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return res.rowcount


class ExpirySweeper:
    def __init__(
        self,
        sessionmaker: async_sessionmaker,
        interval_seconds: float = 30 * 60,
        pending_ttl_seconds: float = 60 * 60,
    ):
        self._sessionmaker = sessionmaker
        self.interval_seconds = interval_seconds
        self.pending_ttl = timedelta(seconds=pending_ttl_seconds)
        self._lock = asyncio.Lock()
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: datetime | None = None) -> int | None:
        """
        Run a single sweep. Returns the number of expired rows, or None when a
        sweep was already in flight and this one was skipped.
        """
        if self._lock.locked():
            logger.warning("expiry sweep skipped: previous sweep still running")
            return None

        async with self._lock:
            cutoff = (now or utcnow()) - self.pending_ttl
            async with self._sessionmaker() as db:
                expired = await expire_stale_bookings(db, cutoff)
            logger.info("marked %s bookings as expired", expired)
            return expired

    async def _loop(self, stop_event: asyncio.Event):
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_once()
            except Exception:
                logger.exception("booking cleanup error")

    def start(self):
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stop_event), name="expiry-sweeper")

    async def stop(self):
        if not self._task:
            return
        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
            self._stop_event = None
