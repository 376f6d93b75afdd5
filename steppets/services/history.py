# steppets/services/history.py
# -*- coding: utf-8 -*-
"""
Mise en forme de l'historique (goal_completions) pour les pages Streamlit.

Les fonctions sont pures (pandas uniquement) pour rester testables sans UI.
"""
from __future__ import annotations

import datetime as dt
from dataclasses import dataclass

import pandas as pd

from steppets.services.progress_tracker import progress_percentage
from steppets.services.streak_engine import best_streak

COLUMNS = ["day", "steps", "goal", "percentage", "goal_met"]


def completions_frame(rows) -> pd.DataFrame:
    """Une ligne par jour, triée par date croissante."""
    if not rows:
        return pd.DataFrame(columns=COLUMNS)
    df = pd.DataFrame([{
        "day": r.completion_date,
        "steps": r.steps_achieved,
        "goal": r.goal_steps,
        "percentage": progress_percentage(r.steps_achieved, r.goal_steps),
        "goal_met": bool(r.goal_met),
    } for r in rows])
    df["day"] = pd.to_datetime(df["day"]).dt.normalize()
    return df.sort_values("day").reset_index(drop=True)


@dataclass(frozen=True)
class PeriodSummary:
    days: int
    days_met: int
    total_steps: int
    mean_steps: float
    best_streak: int

    @property
    def completion_rate(self) -> float:
        return self.days_met / self.days if self.days else 0.0


def period_summary(rows) -> PeriodSummary:
    df = completions_frame(rows)
    if df.empty:
        return PeriodSummary(days=0, days_met=0, total_steps=0, mean_steps=0.0, best_streak=0)
    return PeriodSummary(
        days=len(df),
        days_met=int(df["goal_met"].sum()),
        total_steps=int(df["steps"].sum()),
        mean_steps=float(df["steps"].mean()),
        best_streak=best_streak(rows),
    )


def previous_period(start: dt.date, end: dt.date) -> tuple[dt.date, dt.date]:
    """Période de même longueur juste avant [start, end]."""
    length = (end - start).days + 1
    prev_end = start - dt.timedelta(days=1)
    return prev_end - dt.timedelta(days=length - 1), prev_end
