"""Maintenance sweeper - periodic cleanup of refresh tokens, stale codes and dead accounts."""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from media_accounts.core import async_session_maker, settings
from media_accounts.core.config import Settings
from media_accounts.core.logging import get_logger
from media_accounts.services.factory import (
    build_account_service,
    build_session_manager,
    build_token_codec,
)
from media_accounts.services.token_codec import TokenCodec

logger = get_logger("sweeper")

# Wait a bit before the first sweep to let the app start up
INITIAL_DELAY_SECONDS = 60

SweepJob = Callable[[AsyncSession], Awaitable[int]]


class MaintenanceSweeper:
    """Background service running the periodic cleanup jobs.

    Each job gets its own database session. A failing job is logged and
    the remaining jobs still run; the loop keeps going.
    """

    _instance: Optional["MaintenanceSweeper"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_maker,
        codec: TokenCodec | None = None,
        config: Settings = settings,
        interval_seconds: float | None = None,
        initial_delay_seconds: float = INITIAL_DELAY_SECONDS,
    ):
        self._session_factory = session_factory
        self._config = config
        self._codec = codec or build_token_codec(config)
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else config.sweeper_interval_seconds
        )
        self.initial_delay_seconds = initial_delay_seconds
        self._running = False
        self._task: asyncio.Task | None = None
        self.jobs: dict[str, SweepJob] = {
            "expired_refresh_tokens": self._purge_refresh_tokens,
            "expired_codes": self._clear_expired_codes,
            "unverified_accounts": self._deactivate_unverified_accounts,
            "inactive_accounts": self._purge_inactive_accounts,
        }

    @classmethod
    def get_instance(cls) -> "MaintenanceSweeper":
        """Get singleton instance of the sweeper (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def task(self) -> asyncio.Task | None:
        return self._task

    async def start(self) -> asyncio.Task | None:
        """Start the background sweep task."""
        if self._running:
            logger.warning("Maintenance sweeper is already running")
            return self._task

        self._running = True
        self._task = asyncio.create_task(self._sweep_loop(), name="maintenance-sweeper")
        logger.info(f"Maintenance sweeper started (interval: {self.interval_seconds}s)")
        return self._task

    async def stop(self) -> None:
        """Stop the background sweep task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Maintenance sweeper stopped")

    async def _sweep_loop(self) -> None:
        await asyncio.sleep(self.initial_delay_seconds)

        while self._running:
            try:
                await self.run_now()
            except Exception as e:
                logger.error(f"Error in maintenance sweep: {e}")

            await asyncio.sleep(self.interval_seconds)

    async def run_now(self) -> dict[str, int]:
        """Run every job once.

        Returns:
            Rows affected per job name; failed jobs are left out
        """
        results: dict[str, int] = {}
        for name, job in self.jobs.items():
            async with self._session_factory() as db:
                try:
                    results[name] = await job(db)
                except Exception:
                    logger.exception(f"Maintenance job {name} failed")
                    await db.rollback()
        return results

    async def _purge_refresh_tokens(self, db: AsyncSession) -> int:
        return await build_session_manager(db, self._codec, self._config).purge_expired()

    async def _clear_expired_codes(self, db: AsyncSession) -> int:
        return await build_account_service(db, self._codec, self._config).clear_expired_codes()

    async def _deactivate_unverified_accounts(self, db: AsyncSession) -> int:
        accounts = build_account_service(db, self._codec, self._config)
        return await accounts.deactivate_unverified_accounts()

    async def _purge_inactive_accounts(self, db: AsyncSession) -> int:
        return await build_account_service(db, self._codec, self._config).purge_inactive_accounts()
