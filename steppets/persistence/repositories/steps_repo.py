# steppets/persistence/repositories/steps_repo.py
# -*- coding: utf-8 -*-
from sqlalchemy import select, func, and_
from steppets.persistence.db import get_session, upsert
from steppets.persistence.models import DailySteps, GoalCompletion
import datetime as dt

def normalize_date(d):
    if isinstance(d, dt.datetime):
        return d.date()
    if isinstance(d, dt.date):
        return d
    if isinstance(d, str):
        return dt.date.fromisoformat(d)
    raise TypeError("Invalid date type")

class DailyStepsRepository:
    """Table daily_steps : un compteur de pas par (user, jour)."""

    def upsert(self, user_id: int, date, step_count: int, goal_reached: bool) -> DailySteps:
        day = normalize_date(date)
        with get_session() as s:
            upsert(
                s, DailySteps,
                dict(user_id=user_id, date=day, step_count=step_count,
                     goal_reached=goal_reached, updated_at=dt.datetime.now()),
                conflict=["user_id", "date"],
                update=["step_count", "goal_reached", "updated_at"],
            )
            row = s.scalar(select(DailySteps).where(and_(DailySteps.user_id == user_id, DailySteps.date == day)))
            s.expunge(row)
            return row

    def get(self, user_id: int, date) -> DailySteps | None:
        day = normalize_date(date)
        with get_session() as s:
            row = s.scalar(select(DailySteps).where(and_(DailySteps.user_id == user_id, DailySteps.date == day)))
            if not row:
                return None
            s.expunge(row)
            return row

    def get_range(self, user_id: int, start=None, end=None, asc=True):
        with get_session() as s:
            stmt = select(DailySteps).where(DailySteps.user_id == user_id)
            if start is not None:
                stmt = stmt.where(DailySteps.date >= normalize_date(start))
            if end is not None:
                stmt = stmt.where(DailySteps.date <= normalize_date(end))
            stmt = stmt.order_by(DailySteps.date.asc() if asc else DailySteps.date.desc())
            rows = list(s.scalars(stmt))
            for r in rows:
                s.expunge(r)
            return rows

class GoalCompletionRepository:
    """Table goal_completions, partagée par les systèmes animaux et meubles."""

    def upsert(self, user_id: int, date, steps_achieved: int, goal_steps: int, goal_met: bool) -> GoalCompletion:
        day = normalize_date(date)
        with get_session() as s:
            upsert(
                s, GoalCompletion,
                dict(user_id=user_id, completion_date=day, steps_achieved=steps_achieved,
                     goal_steps=goal_steps, goal_met=goal_met),
                conflict=["user_id", "completion_date"],
                update=["steps_achieved", "goal_steps", "goal_met"],
            )
            row = s.scalar(select(GoalCompletion).where(
                and_(GoalCompletion.user_id == user_id, GoalCompletion.completion_date == day)
            ))
            s.expunge(row)
            return row

    def get(self, user_id: int, date) -> GoalCompletion | None:
        day = normalize_date(date)
        with get_session() as s:
            row = s.scalar(select(GoalCompletion).where(
                and_(GoalCompletion.user_id == user_id, GoalCompletion.completion_date == day)
            ))
            if not row:
                return None
            s.expunge(row)
            return row

    def goal_met_on(self, user_id: int, date) -> bool:
        row = self.get(user_id, date)
        return bool(row and row.goal_met)

    def list_after(self, user_id: int, after=None, desc=True):
        """Complétions strictement postérieures à `after` (toutes si None)."""
        with get_session() as s:
            stmt = select(GoalCompletion).where(GoalCompletion.user_id == user_id)
            if after is not None:
                stmt = stmt.where(GoalCompletion.completion_date > normalize_date(after))
            order = GoalCompletion.completion_date
            stmt = stmt.order_by(order.desc() if desc else order.asc())
            rows = list(s.scalars(stmt))
            for r in rows:
                s.expunge(r)
            return rows

    def get_range(self, user_id: int, start=None, end=None, asc=True):
        with get_session() as s:
            stmt = select(GoalCompletion).where(GoalCompletion.user_id == user_id)
            if start is not None:
                stmt = stmt.where(GoalCompletion.completion_date >= normalize_date(start))
            if end is not None:
                stmt = stmt.where(GoalCompletion.completion_date <= normalize_date(end))
            order = GoalCompletion.completion_date
            stmt = stmt.order_by(order.asc() if asc else order.desc())
            rows = list(s.scalars(stmt))
            for r in rows:
                s.expunge(r)
            return rows

    def count(self, user_id: int) -> int:
        with get_session() as s:
            return s.scalar(select(func.count(GoalCompletion.id)).where(GoalCompletion.user_id == user_id)) or 0
