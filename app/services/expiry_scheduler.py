import asyncio
import logging
from typing import Optional

from app.database import get_db
from app.core.config import settings
from app.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)


class ExpiryScheduler:
    def __init__(self, initial_delay: Optional[int] = None, loop_interval: Optional[int] = None):
        self.running = False
        self.task = None
        self.initial_delay = settings.SCHEDULER_INITIAL_DELAY_SECONDS if initial_delay is None else initial_delay
        self.loop_interval = settings.SCHEDULER_LOOP_INTERVAL_SECONDS if loop_interval is None else loop_interval

    async def start(self):
        """Start the expiry scheduler"""
        if self.running:
            logger.warning("Expiry scheduler is already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run_scheduler())
        logger.info("Expiry scheduler started")

    async def stop(self):
        """Stop the expiry scheduler"""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass

        logger.info("Expiry scheduler stopped")

    async def _run_scheduler(self):
        """Main scheduler loop"""
        # Keep the sweep off the boot path
        initial_delay = max(0, self.initial_delay)
        if initial_delay:
            logger.info(f"Scheduler initial delay: {initial_delay}s")
            await asyncio.sleep(initial_delay)

        while self.running:
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"Error in expiry scheduler: {e}")
            await asyncio.sleep(max(1, self.loop_interval))

    async def sweep(self) -> int:
        """Mark overdue purchases as expired"""
        db = next(get_db())
        try:
            expired = PurchaseService(db).expire_overdue_purchases()
        finally:
            db.close()

        if expired > 0:
            logger.info(f"Expired {expired} overdue purchases")
        return expired


# Global scheduler instance
expiry_scheduler = ExpiryScheduler()


async def start_expiry_scheduler():
    """Start the expiry scheduler (call this when the app starts)"""
    await expiry_scheduler.start()


async def stop_expiry_scheduler():
    """Stop the expiry scheduler (call this when the app shuts down)"""
    await expiry_scheduler.stop()
