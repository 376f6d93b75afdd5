# steppets/services/clock.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import datetime as dt


class SystemClock:
    """Horloge locale de l'appareil : le 'jour' est le jour calendaire local."""

    def now(self) -> dt.datetime:
        return dt.datetime.now()

    def today(self) -> dt.date:
        return self.now().date()


class FixedClock:
    """Horloge pilotable (tests, seed, démo)."""

    def __init__(self, now: dt.datetime | dt.date) -> None:
        if not isinstance(now, dt.datetime):
            now = dt.datetime.combine(now, dt.time(12, 0))
        self._now = now

    def now(self) -> dt.datetime:
        return self._now

    def today(self) -> dt.date:
        return self._now.date()

    def set(self, now: dt.datetime | dt.date) -> None:
        if not isinstance(now, dt.datetime):
            now = dt.datetime.combine(now, dt.time(12, 0))
        self._now = now

    def advance(self, days: int = 0, **kwargs) -> None:
        self._now = self._now + dt.timedelta(days=days, **kwargs)
