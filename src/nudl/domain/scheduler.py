"""Fixed-interval, single-flight driver for reconciliation cycles.

A tick starts a cycle only when none is in flight; otherwise it is a no-op.
Shutdown stops new cycles, waits for the in-flight one, removes every managed
label and then reports :data:`SHUTDOWN_EXIT_STATUS`.
"""

from __future__ import annotations

import asyncio
import contextlib
from logging import getLogger
from typing import TYPE_CHECKING

from .errors import CycleCancelled
from .reconciliation import CancellationToken, SchedulerState

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from nudl.common.metrics import LabelerMetrics

    from .reconciliation import Reconciler

log = getLogger(__name__)

SHUTDOWN_EXIT_STATUS = 130
DEFAULT_UPDATE_INTERVAL_SECONDS = 10.0


class ReconciliationScheduler:
    def __init__(
        self,
        reconciler: Reconciler,
        metrics: LabelerMetrics,
        *,
        interval: float = DEFAULT_UPDATE_INTERVAL_SECONDS,
        on_shutdown: Sequence[Callable[[], None]] = (),
    ) -> None:
        self.reconciler = reconciler
        self.metrics = metrics
        self.interval = interval
        self.token = CancellationToken()
        self._on_shutdown = tuple(on_shutdown)
        self._lock = asyncio.Lock()
        self._state = SchedulerState.IDLE
        self._cycle: asyncio.Task[None] | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def cycle_in_flight(self) -> bool:
        return self._lock.locked()

    @property
    def current_cycle(self) -> asyncio.Task[None] | None:
        return self._cycle

    async def run(self) -> int:
        """Tick every ``interval`` seconds until shutdown is requested."""

        log.info("Starting reconciliation every %ss", self.interval)
        while not self.token.cancelled:
            await self.tick()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self.token.wait(), timeout=self.interval)
        return await self.shutdown()

    async def tick(self) -> bool:
        """Start a cycle unless one is running or shutdown began."""

        if self.token.cancelled:
            return False
        if self._lock.locked():
            log.debug("Previous cycle still running, skipping tick")
            return False
        # Never suspends: the lock is free and nothing else waits on it.
        await self._lock.acquire()
        self._cycle = asyncio.create_task(self._run_cycle(), name="nudl-cycle")
        return True

    def request_shutdown(self, reason: str | None = None) -> None:
        if not self.token.cancelled:
            log.info("Received %s, shutting down", reason or "shutdown request")
        self.token.cancel()

    async def shutdown(self) -> int:
        self.token.cancel()
        self._state = SchedulerState.SHUTTING_DOWN
        async with self._lock:
            try:
                await self.reconciler.cleanup()
            except Exception:
                log.exception("Could not clean node")
        for callback in self._on_shutdown:
            try:
                await asyncio.to_thread(callback)
            except Exception:
                log.exception("Shutdown callback failed")
        log.info("Shutting down")
        return SHUTDOWN_EXIT_STATUS

    async def _run_cycle(self) -> None:
        try:
            result = await self.reconciler.reconcile(self.token, on_state=self._enter)
        except CycleCancelled as exc:
            log.info("Cycle interrupted: %s", exc)
        except Exception:
            log.exception("Failed to scan and label")
            self.metrics.record_cycle(success=False)
        else:
            log.debug("Cycle finished with %s managed labels", result.managed)
            self.metrics.record_cycle(success=True)
        finally:
            self._enter(SchedulerState.IDLE)
            self._lock.release()

    def _enter(self, state: SchedulerState) -> None:
        if self._state is not SchedulerState.SHUTTING_DOWN:
            self._state = state
