"""Balance polling using APScheduler, tied to the lifetime of a user session."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from daredevil.errors import BetError
from daredevil.ledger import PointsLedger
from daredevil.models import UserSession

logger = logging.getLogger(__name__)

JOB_ID = "ledger-balance-poll"


class BalancePoller:
    """Refreshes the ledger every ``interval_seconds`` while a session is active.

    Each job is bound to the user id it was started for, so a tick that fires
    after a session change never reads balances for the previous user.
    """

    def __init__(
        self,
        ledger: PointsLedger,
        interval_seconds: int = 10,
        scheduler: AsyncIOScheduler | None = None,
    ):
        self.ledger = ledger
        self.interval_seconds = interval_seconds
        self.scheduler = scheduler or AsyncIOScheduler()
        self.user_id: str | None = None

    @property
    def is_running(self) -> bool:
        return self.user_id is not None

    async def tick(self, user_id: str) -> None:
        if user_id != self.user_id:
            logger.debug(f"Ignoring poll tick for stale user {user_id}")
            return
        try:
            await self.ledger.refresh(user_id)
        except BetError as e:
            logger.warning(f"Balance poll failed: {e.user_message}")

    def start(self, user_id: str) -> None:
        """Start (or restart) polling for ``user_id``. Needs a running event loop."""
        self.stop()
        self.user_id = user_id
        self.scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.interval_seconds),
            args=[user_id],
            id=JOB_ID,
            name="Ledger: Balance Poll",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(
            f"Registered job: Balance Poll for {user_id} (every {self.interval_seconds}s)"
        )

    def stop(self) -> None:
        if self.user_id is None:
            return
        if self.scheduler.get_job(JOB_ID):
            self.scheduler.remove_job(JOB_ID)
        logger.info(f"Stopped balance polling for {self.user_id}")
        self.user_id = None

    def shutdown(self) -> None:
        self.stop()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("✓ Scheduler stopped cleanly")

    async def on_session_change(self, session: UserSession | None) -> None:
        if session is None:
            self.stop()
        else:
            self.start(session.auth_user_id)
