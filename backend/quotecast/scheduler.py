"""Owner of every timer in the process: close rebuilds and broadcasts."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .broadcast import Broadcaster
from .market.service import MarketService
from .market.sessions import EXCHANGE_TZ

logger = logging.getLogger(__name__)

# 15 minutes after the regular 16:00 ET close
STOCK_CLOSE_TRIGGER = {"hour": 16, "minute": 15}
# One minute into the UTC day, once the last bar of the previous day is final
CRYPTO_CLOSE_TRIGGER = {"hour": 0, "minute": 1}

STOCK_CLOSE_JOB = "rebuild-stock-closes"
CRYPTO_CLOSE_JOB = "rebuild-crypto-closes"
PRICE_BROADCAST_JOB = "broadcast-prices"
NEWS_BROADCAST_JOB = "broadcast-news"


class MarketScheduler:
    """Registers the four recurring jobs on one AsyncIOScheduler.

    The stream and fetch components never register timers themselves; they
    are driven from here through MarketService and Broadcaster.
    """

    def __init__(
        self,
        market: MarketService,
        broadcaster: Broadcaster,
        price_interval: float = 60.0,
        news_interval: float = 600.0,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._market = market
        self._broadcaster = broadcaster
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._register(price_interval, news_interval)

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler

    def start(self) -> None:
        """Start firing jobs. Needs a running event loop."""
        self._scheduler.start()
        logger.info("Scheduler started: %s", ", ".join(job.id for job in self._scheduler.get_jobs()))

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    # --- Jobs ---

    async def rebuild_stock_closes(self) -> None:
        await _run_logged(STOCK_CLOSE_JOB, self._market.rebuild_stock_closes)

    async def rebuild_crypto_closes(self) -> None:
        await _run_logged(CRYPTO_CLOSE_JOB, self._market.rebuild_crypto_closes)

    async def broadcast_prices(self) -> None:
        await _run_logged(PRICE_BROADCAST_JOB, self._broadcaster.broadcast_prices)

    async def broadcast_news(self) -> None:
        await _run_logged(NEWS_BROADCAST_JOB, self._broadcaster.refresh_and_broadcast_news)

    # --- Internal ---

    def _register(self, price_interval: float, news_interval: float) -> None:
        common = {"max_instances": 1, "coalesce": True, "replace_existing": True}
        self._scheduler.add_job(
            self.rebuild_stock_closes,
            CronTrigger(timezone=EXCHANGE_TZ, **STOCK_CLOSE_TRIGGER),
            id=STOCK_CLOSE_JOB,
            **common,
        )
        self._scheduler.add_job(
            self.rebuild_crypto_closes,
            CronTrigger(timezone="UTC", **CRYPTO_CLOSE_TRIGGER),
            id=CRYPTO_CLOSE_JOB,
            **common,
        )
        self._scheduler.add_job(
            self.broadcast_prices,
            IntervalTrigger(seconds=price_interval),
            id=PRICE_BROADCAST_JOB,
            **common,
        )
        self._scheduler.add_job(
            self.broadcast_news,
            IntervalTrigger(seconds=news_interval),
            id=NEWS_BROADCAST_JOB,
            **common,
        )


async def _run_logged(name: str, job: Callable[[], Awaitable[object]]) -> None:
    """Run a job; a failure is logged and the previous cache contents stay."""
    try:
        await job()
    except Exception:
        logger.exception("Scheduled job %s failed", name)
