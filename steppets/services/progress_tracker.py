# steppets/services/progress_tracker.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Callable

from steppets.services.clock import SystemClock

logger = logging.getLogger(__name__)

MAX_PERCENT = 100


class ProgressValidationError(ValueError):
    """Entrée invalide pour le suivi de progression."""


@dataclass(frozen=True)
class ProgressResult:
    """État de la journée après enregistrement."""
    date: dt.date
    steps: int
    goal_steps: int
    percentage: int          # 0..100
    goal_met: bool
    goal_reached_now: bool = False   # premier franchissement de la session


def progress_percentage(steps: int, goal_steps: int) -> int:
    """
    min(100, round(100 * steps / goal)), arrondi au demi supérieur.
    Objectif <= 0 : 0 % (pas de division par zéro).
    """
    if goal_steps <= 0:
        return 0
    steps = max(0, steps)
    # arrondi entier exact : floor(100*steps/goal + 1/2)
    pct = (200 * steps + goal_steps) // (2 * goal_steps)
    return min(MAX_PERCENT, pct)


def is_goal_met(steps: int, goal_steps: int) -> bool:
    return goal_steps > 0 and steps >= goal_steps


class DailyProgressTracker:
    """
    Convertit (pas, objectif) en progression et persiste une seule ligne
    goal_completions (et daily_steps) par utilisateur et par jour.

    Ne décide pas des récompenses : il signale seulement le premier
    franchissement de l'objectif aux listeners `on_goal_reached`.
    """

    def __init__(self, completions, daily_steps, clock=None) -> None:
        self.completions = completions
        self.daily_steps = daily_steps
        self.clock = clock or SystemClock()
        self._reached: set[tuple[int, dt.date]] = set()
        self._goal_listeners: list[Callable[[int, ProgressResult], None]] = []

    def on_goal_reached(self, callback: Callable[[int, ProgressResult], None]) -> None:
        self._goal_listeners.append(callback)

    def record_progress(self, user_id: int, steps_achieved: int, goal_steps: int) -> ProgressResult:
        """Upsert idempotent de la journée ; peut être appelé à chaque nouveau pas."""
        if steps_achieved < 0:
            raise ProgressValidationError(f"Nombre de pas négatif: {steps_achieved}")

        today = self.clock.today()
        goal_met = is_goal_met(steps_achieved, goal_steps)
        pct = progress_percentage(steps_achieved, goal_steps)

        self.completions.upsert(user_id, today, steps_achieved=steps_achieved,
                                goal_steps=goal_steps, goal_met=goal_met)
        self.daily_steps.upsert(user_id, today, step_count=steps_achieved, goal_reached=goal_met)

        key = (user_id, today)
        self._reached = {k for k in self._reached if k[1] == today}
        reached_now = goal_met and key not in self._reached
        if goal_met:
            self._reached.add(key)
        else:
            # repasse sous l'objectif (objectif relevé) : le franchissement est réarmé
            self._reached.discard(key)

        result = ProgressResult(date=today, steps=steps_achieved, goal_steps=goal_steps,
                                percentage=pct, goal_met=goal_met, goal_reached_now=reached_now)
        if reached_now:
            logger.info(f"Objectif atteint pour l'utilisateur {user_id} ({steps_achieved}/{goal_steps})")
            for cb in list(self._goal_listeners):
                cb(user_id, result)
        return result

    def todays_progress(self, user_id: int, goal_steps: int) -> ProgressResult:
        today = self.clock.today()
        row = self.daily_steps.get(user_id, today)
        steps = row.step_count if row else 0
        return ProgressResult(date=today, steps=steps, goal_steps=goal_steps,
                              percentage=progress_percentage(steps, goal_steps),
                              goal_met=is_goal_met(steps, goal_steps))

    def has_completed_goal_today(self, user_id: int) -> bool:
        return self.completions.goal_met_on(user_id, self.clock.today())
