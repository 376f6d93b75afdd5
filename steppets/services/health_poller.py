# steppets/services/health_poller.py
# -*- coding: utf-8 -*-
"""Synchronisation périodique du service santé (pas de push côté plateforme)."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Callable, Optional

from steppets import config
from steppets.services.clock import SystemClock
from steppets.services.step_sources import (
    HealthService,
    HealthServiceError,
    SourceUnavailableError,
    StepSource,
)

logger = logging.getLogger(__name__)


class HealthPoller:
    """
    Tâche planifiée annulable : lit "pas depuis minuit" toutes les `interval_sec`
    secondes tant qu'elle est démarrée (écran actif / app au premier plan).
    En cas d'échec, la dernière valeur connue est conservée.
    """

    def __init__(
        self,
        service: HealthService,
        *,
        clock=None,
        interval_sec: float = config.HEALTH_POLL_INTERVAL_SEC,
        timeout_sec: float = config.HEALTH_TIMEOUT_SEC,
    ) -> None:
        self.service = service
        self.clock = clock or SystemClock()
        self.interval_sec = interval_sec
        self.timeout_sec = timeout_sec
        self.authorized = False

        self._latest = 0
        self._latest_day: Optional[dt.date] = None
        self.last_polled_at: Optional[dt.datetime] = None
        self._listeners: list[Callable[[int], None]] = []
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def authorize(self) -> None:
        if self.authorized:
            return
        if not await self.service.authorize():
            raise SourceUnavailableError(StepSource.HEALTH_INTEGRATION, "autorisation refusée")
        self.authorized = True

    @property
    def steps(self) -> int:
        """Dernière valeur lue, si elle concerne bien aujourd'hui."""
        if self._latest_day != self.clock.today():
            return 0
        return self._latest

    @property
    def running(self) -> bool:
        return self._running

    def add_listener(self, callback: Callable[[int], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[int], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    async def poll_once(self) -> Optional[int]:
        """Une lecture bornée par `timeout_sec`. None = pas de mise à jour ce cycle."""
        try:
            value = await asyncio.wait_for(self.service.steps_since_midnight(), timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning(f"Lecture santé expirée après {self.timeout_sec}s, valeur conservée")
            return None
        except HealthServiceError as e:
            logger.warning(f"Lecture santé en échec, valeur conservée: {e}")
            return None

        value = max(0, int(value))
        changed = value != self.steps
        self._latest = value
        self._latest_day = self.clock.today()
        self.last_polled_at = self.clock.now()
        if changed:
            for cb in list(self._listeners):
                cb(value)
        return value

    async def start(self) -> None:
        if self._running:
            logger.debug("Synchronisation santé déjà démarrée")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Synchronisation santé démarrée (intervalle: {self.interval_sec}s)")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Synchronisation santé arrêtée")

    async def _poll_loop(self) -> None:
        while self._running:
            await self.poll_once()
            await asyncio.sleep(self.interval_sec)
