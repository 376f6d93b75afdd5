# steppets/services/pedometer_manager.py
# -*- coding: utf-8 -*-
"""
Compteur de pas local, alimenté par le podomètre de l'appareil.

Une seule instance par processus est créée par le conteneur de services et
injectée là où on en a besoin ; les écrans ne font que s'abonner (lecture seule).

Invariants :
- Le compteur ne fait que croître dans une journée : seuls les deltas positifs
  du capteur sont appliqués, chacun une seule fois.
- Changement de date => remise à 0 (aucun report de la veille).
- Rattrapage des pas manqués (processus suspendu/tué) :
      nouveau = sauvegardé + max(0, santé_maintenant - santé_au_dernier_snapshot)
  (jamais en dessous de la valeur en mémoire), puis le snapshot est réécrit
  avec santé_maintenant, ce qui empêche d'appliquer deux fois le même delta.
- Seuls le passage en arrière-plan et le rattrapage écrivent une paire
  (compteur, santé) cohérente ; les sauvegardes différées en premier plan
  écrivent health_snapshot=None.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from steppets import config
from steppets.services.clock import SystemClock
from steppets.services.step_sources import (
    HealthService,
    HealthServiceError,
    PedometerDevice,
    SourceUnavailableError,
    StepSource,
)

logger = logging.getLogger(__name__)

BACKGROUND_STATES = ("background", "inactive")


class PedometerManager:
    def __init__(
        self,
        device: PedometerDevice,
        snapshots,
        health: Optional[HealthService] = None,
        *,
        key: str = "default",
        clock=None,
        debounce_sec: float = config.PERSIST_DEBOUNCE_SEC,
        health_timeout_sec: float = config.HEALTH_TIMEOUT_SEC,
    ) -> None:
        self.device = device
        self.snapshots = snapshots
        self.health = health
        self.key = key
        self.clock = clock or SystemClock()
        self.debounce_sec = debounce_sec
        self.health_timeout_sec = health_timeout_sec

        self._steps = 0
        self._day = None
        self._last_watch = 0
        self._listeners: list[Callable[[int], None]] = []
        self._subscription = None
        self._persist_handle: Optional[asyncio.TimerHandle] = None
        self._sync_lock = asyncio.Lock()
        self.is_initialized = False

    # ------------------------------------------------------------------
    # Cycle de vie
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Idempotent. Lève SourceUnavailableError si capteur absent ou permission refusée."""
        if self.is_initialized:
            logger.debug(f"Podomètre déjà initialisé ({self._steps} pas)")
            return

        if not await self.device.is_available():
            raise SourceUnavailableError(StepSource.PEDOMETER, "capteur absent")
        if not await self.device.request_permission():
            raise SourceUnavailableError(StepSource.PEDOMETER, "permission refusée")

        self._load_persisted()
        await self.sync_missed_steps()

        self._last_watch = 0
        self._subscription = self.device.watch(self._on_watch)
        self.is_initialized = True
        logger.info(f"Podomètre initialisé : {self._steps} pas aujourd'hui")

    async def cleanup(self) -> None:
        """Écrit la valeur finale (avec la paire santé, comme en arrière-plan) puis se désabonne."""
        await self.flush_for_background()
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None
        self._listeners.clear()
        self.is_initialized = False

    async def handle_app_state(self, state: str) -> None:
        if state in BACKGROUND_STATES:
            await self.flush_for_background()
        elif state == "active":
            await self.sync_missed_steps()

    # ------------------------------------------------------------------
    # Lecture / abonnements
    # ------------------------------------------------------------------

    @property
    def current_steps(self) -> int:
        self._roll_day()
        return self._steps

    def add_listener(self, callback: Callable[[int], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)
        callback(self.current_steps)

    def remove_listener(self, callback: Callable[[int], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb(self._steps)

    # ------------------------------------------------------------------
    # Mutations (sections synchrones : jamais entrelacées dans la boucle)
    # ------------------------------------------------------------------

    def _on_watch(self, cumulative: int) -> None:
        increment = cumulative - self._last_watch
        self._last_watch = cumulative
        if increment > 0:
            self._apply(increment)

    def _apply(self, delta: int) -> None:
        self._roll_day()
        self._steps += delta
        logger.debug(f"Podomètre : +{delta} pas (total {self._steps})")
        self._schedule_persist()
        self._notify()

    def _roll_day(self) -> bool:
        today = self.clock.today()
        if self._day == today:
            return False
        if self._day is not None:
            logger.info(f"Nouveau jour ({today}), compteur remis à 0 (était {self._steps})")
        self._day = today
        self._steps = 0
        return True

    def _load_persisted(self) -> None:
        today = self.clock.today()
        snap = self._load_snapshot()
        self._day = today
        if snap is not None and snap.snapshot_date == today:
            self._steps = snap.steps
            logger.info(f"Même jour : {snap.steps} pas restaurés")
            return
        if snap is not None:
            logger.info(f"Nouveau jour détecté, compteur remis à 0 (était {snap.steps} le {snap.snapshot_date})")
        self._steps = 0
        self._persist(health_snapshot=None)

    def _load_snapshot(self):
        try:
            return self.snapshots.load(self.key)
        except SQLAlchemyError as e:
            logger.error(f"Lecture du snapshot podomètre impossible: {e}")
            return None

    # ------------------------------------------------------------------
    # Persistance
    # ------------------------------------------------------------------

    def _persist(self, health_snapshot: Optional[int]) -> bool:
        self._roll_day()
        try:
            self.snapshots.save(self.key, self._steps, self._day, health_snapshot)
        except SQLAlchemyError as e:
            logger.error(f"Sauvegarde du compteur impossible ({self._steps} pas): {e}")
            return False
        return True

    def _schedule_persist(self) -> None:
        self._cancel_pending_persist()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Appel hors boucle : écriture immédiate
            self._persist(health_snapshot=None)
            return
        self._persist_handle = loop.call_later(self.debounce_sec, self._debounced_persist)

    def _debounced_persist(self) -> None:
        self._persist_handle = None
        if self._persist(health_snapshot=None):
            logger.debug(f"Compteur sauvegardé : {self._steps}")

    def _cancel_pending_persist(self) -> None:
        if self._persist_handle is not None:
            self._persist_handle.cancel()
            self._persist_handle = None

    @property
    def has_pending_persist(self) -> bool:
        return self._persist_handle is not None

    # ------------------------------------------------------------------
    # Service santé
    # ------------------------------------------------------------------

    async def _read_health(self) -> Optional[int]:
        if self.health is None:
            return None
        try:
            return await asyncio.wait_for(self.health.steps_since_midnight(), timeout=self.health_timeout_sec)
        except asyncio.TimeoutError:
            logger.warning(f"Lecture santé expirée après {self.health_timeout_sec}s")
        except HealthServiceError as e:
            logger.warning(f"Lecture santé en échec: {e}")
        return None

    async def flush_for_background(self) -> None:
        """Passage en arrière-plan : annule le debounce et écrit immédiatement (compteur, santé)."""
        self._cancel_pending_persist()
        async with self._sync_lock:
            health_now = await self._read_health()
            self._cancel_pending_persist()
            if self._persist(health_snapshot=health_now):
                logger.info(f"Arrière-plan : {self._steps} pas sauvegardés (santé: {health_now})")

    async def sync_missed_steps(self) -> int:
        """
        Rattrape les pas faits pendant que le compteur local ne tournait pas.
        Retourne le nombre de pas ajoutés (0 si rien à rattraper ou lecture impossible).
        """
        async with self._sync_lock:
            # Lu avant l'appel santé : la paire écrite au passage en arrière-plan fait foi
            snap = self._load_snapshot()
            health_now = await self._read_health()
            if health_now is None:
                return 0

            self._roll_day()
            if snap is None or snap.snapshot_date != self._day or snap.health_snapshot is None:
                logger.debug("Pas de snapshot santé cohérent pour aujourd'hui, rien à rattraper")
                return 0

            # Base = compteur sauvegardé avec la paire, pas la valeur en mémoire :
            # les pas livrés par le capteur depuis sont déjà dans le delta santé.
            missed = max(0, health_now - snap.health_snapshot)
            reconciled = snap.steps + missed
            added = max(0, reconciled - self._steps)
            if added:
                self._steps = reconciled
                logger.info(
                    f"{added} pas rattrapés (santé {snap.health_snapshot} -> {health_now}), total {self._steps}"
                )
                self._notify()
            self._cancel_pending_persist()
            self._persist(health_snapshot=health_now)
            return added
