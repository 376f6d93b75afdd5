# steppets/services/step_adapter.py
# -*- coding: utf-8 -*-
"""
Adaptateur de sources de pas : un seul entier "pas d'aujourd'hui", quelle que
soit la source choisie par l'utilisateur.

Les deux sources tournent en parallèle dès qu'elles sont disponibles, ce qui rend
le changement de source instantané et sans perte. Une source indisponible n'est
jamais fatale : on bascule sur l'autre, ou sur un état "pas de données" (0 pas).

Usage:
    adapter = StepSourceAdapter(pedometer_manager, health_poller)
    active = await adapter.initialize_with_fallback(StepSource.from_profile(profile.step_source))
    adapter.subscribe(lambda steps: ...)
    await adapter.on_app_state("background")
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from steppets.services.health_poller import HealthPoller
from steppets.services.pedometer_manager import BACKGROUND_STATES, PedometerManager
from steppets.services.step_sources import SourceUnavailableError, StepSource

logger = logging.getLogger(__name__)


class StepSourceAdapter:
    def __init__(self, pedometer: PedometerManager, health: HealthPoller) -> None:
        self.pedometer = pedometer
        self.health = health
        self.active: Optional[StepSource] = None
        self.last_error: Optional[str] = None
        self._started: set[StepSource] = set()
        self._listeners: list[Callable[[int], None]] = []

    # ------------------------------------------------------------------
    # Démarrage des sources
    # ------------------------------------------------------------------

    async def _start(self, source: StepSource) -> None:
        if source in self._started:
            return
        if source is StepSource.PEDOMETER:
            await self.pedometer.initialize()
            self.pedometer.add_listener(self._on_pedometer)
        else:
            await self.health.authorize()
            await self.health.poll_once()
            await self.health.start()
            self.health.add_listener(self._on_health)
        self._started.add(source)
        logger.info(f"Source {source.value} démarrée")

    async def initialize(self, source: StepSource) -> None:
        """
        Idempotent. Démarre `source` (SourceUnavailableError si impossible) puis,
        au mieux, l'autre source en tâche de fond.
        """
        await self._start(source)
        self.active = source
        self.last_error = None
        try:
            await self._start(source.other)
        except SourceUnavailableError as e:
            logger.info(f"Source secondaire non démarrée: {e}")
        self._notify()

    async def initialize_with_fallback(self, preferred: StepSource) -> Optional[StepSource]:
        """Source préférée, sinon l'autre, sinon None (état "pas de données", 0 pas)."""
        for source in (preferred, preferred.other):
            try:
                await self.initialize(source)
                if source is not preferred:
                    self.last_error = f"{preferred.value} indisponible, bascule sur {source.value}"
                    logger.warning(self.last_error)
                return source
            except SourceUnavailableError as e:
                logger.warning(f"Source indisponible: {e}")
                self.last_error = str(e)
        self.active = None
        return None

    # ------------------------------------------------------------------
    # Lecture
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self.active is not None and self.active in self._started

    def get_steps(self) -> int:
        if not self.is_available:
            return 0
        if self.active is StepSource.PEDOMETER:
            return self.pedometer.current_steps
        return self.health.steps

    @property
    def pedometer_steps(self) -> int:
        return self.pedometer.current_steps if StepSource.PEDOMETER in self._started else 0

    @property
    def health_steps(self) -> int:
        return self.health.steps if StepSource.HEALTH_INTEGRATION in self._started else 0

    async def switch_source(self, new_source: StepSource) -> None:
        """Change la source active ; l'autre continue de tourner."""
        if new_source is self.active:
            return
        await self._start(new_source)
        self.active = new_source
        self.last_error = None
        logger.info(f"Source active : {new_source.value}")
        self._notify()

    async def refresh(self) -> int:
        """Relecture hors cycle de la source active (retour sur un écran)."""
        if self.active is StepSource.HEALTH_INTEGRATION and self.is_available:
            await self.health.poll_once()
        steps = self.get_steps()
        self._notify()
        return steps

    async def on_app_state(self, state: str) -> None:
        if StepSource.PEDOMETER in self._started:
            await self.pedometer.handle_app_state(state)
        if StepSource.HEALTH_INTEGRATION in self._started:
            if state in BACKGROUND_STATES:
                await self.health.stop()
            elif state == "active":
                await self.health.poll_once()
                await self.health.start()

    async def shutdown(self) -> None:
        if StepSource.HEALTH_INTEGRATION in self._started:
            self.health.remove_listener(self._on_health)
            await self.health.stop()
        if StepSource.PEDOMETER in self._started:
            await self.pedometer.cleanup()
        self._started.clear()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Abonnements (lecture seule)
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[int], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)
        callback(self.get_steps())

    def unsubscribe(self, callback: Callable[[int], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        steps = self.get_steps()
        for cb in list(self._listeners):
            cb(steps)

    def _on_pedometer(self, _steps: int) -> None:
        if self.active is StepSource.PEDOMETER:
            self._notify()

    def _on_health(self, _steps: int) -> None:
        if self.active is StepSource.HEALTH_INTEGRATION:
            self._notify()
