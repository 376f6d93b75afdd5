# steppets/services/streak_engine.py
# -*- coding: utf-8 -*-
"""
Calcul des séries (streaks) de jours consécutifs avec objectif atteint.

La série n'est jamais stockée comme compteur : elle est recalculée depuis les
lignes goal_completions, ancrée à la date de la dernière récompense du type
concerné (seuls les jours strictement postérieurs comptent).
"""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Optional

from steppets.services.clock import SystemClock

ONE_DAY = dt.timedelta(days=1)


def compute_streak(completions: Iterable, today: dt.date) -> int:
    """
    Marche arrière depuis `today` sur des complétions triées par date décroissante.

    - date attendue et goal_met   -> +1, on recule d'un jour
    - date attendue et non atteint -> fin de série
    - trou (date attendue absente) -> fin de série
    La journée en cours ne casse jamais la série : absente ou pas encore atteinte,
    elle est simplement sautée et la marche reprend à la veille. Les lignes datées
    après `today` sont ignorées.
    """
    streak = 0
    expected = today
    yesterday = today - ONE_DAY
    for c in completions:
        day = c.completion_date
        if day > expected:
            continue
        if day == today and not c.goal_met:
            expected = yesterday
            continue
        if expected == today and day < today:
            expected = yesterday
        if day == expected and c.goal_met:
            streak += 1
            expected -= ONE_DAY
            continue
        break
    return streak


def best_streak(completions: Iterable) -> int:
    """Plus longue série de jours consécutifs atteints (ordre indifférent)."""
    days = sorted({c.completion_date for c in completions if c.goal_met})
    best = run = 0
    previous: Optional[dt.date] = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == ONE_DAY else 1
        best = max(best, run)
        previous = day
    return best


class StreakEngine:
    def __init__(self, completions, clock=None) -> None:
        self.completions = completions
        self.clock = clock or SystemClock()

    def current_streak(self, user_id: int, since: Optional[dt.date] = None) -> int:
        """Série courante en ne comptant que les jours > `since` (date de la dernière récompense)."""
        rows = self.completions.list_after(user_id, after=since, desc=True)
        return compute_streak(rows, self.clock.today())
