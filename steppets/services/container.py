# steppets/services/container.py
# -*- coding: utf-8 -*-
"""
Conteneur de services : une instance de chaque dépôt / moteur par processus.

Les dépôts sont importés à l'appel (et non au chargement du module) pour que
les tests puissent recharger la couche persistance avec un autre DB_URL.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from steppets.services.clock import SystemClock
from steppets.services.progress_tracker import DailyProgressTracker, ProgressResult
from steppets.services.reward_engine import Eligibility, RewardEngine, RewardKind
from steppets.services.streak_engine import StreakEngine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    clock: object
    profiles: object
    daily_steps: object
    completions: object
    catalog: object
    pets: object
    furniture: object
    snapshots: object
    tracker: DailyProgressTracker
    streaks: StreakEngine
    rewards: RewardEngine

    # Cache d'affichage (badges "récompense disponible") ; award() revérifie toujours
    eligibility: dict = field(default_factory=dict)

    def refresh_eligibility(self, user_id: int) -> dict[RewardKind, Eligibility]:
        states = {kind: self.rewards.check_eligibility(user_id, kind) for kind in RewardKind}
        for kind, state in states.items():
            self.eligibility[(user_id, kind)] = state
        return states

    def cached_eligibility(self, user_id: int, kind: RewardKind) -> Optional[Eligibility]:
        return self.eligibility.get((user_id, kind))

    def _on_goal_reached(self, user_id: int, result: ProgressResult) -> None:
        states = self.refresh_eligibility(user_id)
        ready = [k.value for k, e in states.items() if e.eligible]
        if ready:
            logger.info(f"Récompense(s) disponible(s) pour l'utilisateur {user_id}: {', '.join(ready)}")


def build_services(*, clock=None, selector=None, policies=None) -> Services:
    from steppets.persistence.repositories.catalog_repo import CatalogRepository
    from steppets.persistence.repositories.profiles_repo import ProfileRepository
    from steppets.persistence.repositories.rewards_repo import UserFurnitureRepository, UserPetRepository
    from steppets.persistence.repositories.snapshots_repo import StepSnapshotRepository
    from steppets.persistence.repositories.steps_repo import DailyStepsRepository, GoalCompletionRepository

    clock = clock or SystemClock()
    profiles = ProfileRepository()
    daily_steps = DailyStepsRepository()
    completions = GoalCompletionRepository()
    catalog = CatalogRepository()
    pets = UserPetRepository()
    furniture = UserFurnitureRepository()

    tracker = DailyProgressTracker(completions, daily_steps, clock=clock)
    streaks = StreakEngine(completions, clock=clock)
    rewards = RewardEngine(
        profiles=profiles, completions=completions, pets=pets, furniture=furniture,
        catalog=catalog, streaks=streaks, policies=policies, selector=selector, clock=clock,
    )

    services = Services(
        clock=clock, profiles=profiles, daily_steps=daily_steps, completions=completions,
        catalog=catalog, pets=pets, furniture=furniture, snapshots=StepSnapshotRepository(),
        tracker=tracker, streaks=streaks, rewards=rewards,
    )
    tracker.on_goal_reached(services._on_goal_reached)
    logger.debug("Conteneur de services initialisé")
    return services


def build_step_adapter(services: Services, *, device=None, health=None, key: str = "default"):
    """Adaptateur de sources branché sur le stockage de snapshots du conteneur."""
    from steppets.services.health_poller import HealthPoller
    from steppets.services.pedometer_manager import PedometerManager
    from steppets.services.step_adapter import StepSourceAdapter
    from steppets.services.step_sources import InMemoryPedometer, build_health_service

    health = health or build_health_service()
    manager = PedometerManager(device or InMemoryPedometer(), services.snapshots, health,
                               key=key, clock=services.clock)
    poller = HealthPoller(health, clock=services.clock)
    return StepSourceAdapter(manager, poller)
