# steppets/persistence/repositories/profiles_repo.py
# -*- coding: utf-8 -*-
from sqlalchemy import select
from steppets.persistence.db import get_session
from steppets.persistence.models import Profile
from steppets.config import DEFAULT_STEP_GOAL
import datetime as dt

class ProfileRepository:
    def create(self, email: str, username: str | None = None,
               step_goal: int = DEFAULT_STEP_GOAL, step_source: str = "pedometer") -> Profile:
        with get_session() as s:
            p = Profile(email=email.strip().lower(), username=username,
                        step_goal=step_goal, step_source=step_source)
            s.add(p)
            s.flush(); s.refresh(p); s.expunge(p)
            return p

    def get(self, profile_id: int) -> Profile | None:
        with get_session() as s:
            p = s.get(Profile, profile_id)
            if not p:
                return None
            s.expunge(p)
            return p

    def get_by_email(self, email: str) -> Profile | None:
        with get_session() as s:
            p = s.scalar(select(Profile).where(Profile.email == email.strip().lower()))
            if not p:
                return None
            s.expunge(p)
            return p

    def get_or_create(self, email: str, **fields) -> Profile:
        p = self.get_by_email(email)
        return p or self.create(email=email, **fields)

    def _update(self, profile_id: int, **fields) -> Profile:
        with get_session() as s:
            p = s.get(Profile, profile_id)
            if not p:
                raise ValueError(f"Profil introuvable: {profile_id}")
            for k, v in fields.items():
                setattr(p, k, v)
            s.add(p); s.flush(); s.refresh(p); s.expunge(p)
            return p

    def set_step_goal(self, profile_id: int, step_goal: int) -> Profile:
        if step_goal <= 0:
            raise ValueError(f"Objectif de pas invalide: {step_goal}")
        return self._update(profile_id, step_goal=int(step_goal))

    def set_step_source(self, profile_id: int, step_source: str) -> Profile:
        return self._update(profile_id, step_source=step_source)

    def cache_streak(self, profile_id: int, streak: int, day: dt.date) -> Profile:
        return self._update(profile_id, current_streak=streak, last_streak_update=day)

    def set_last_furniture_date(self, profile_id: int, day: dt.date) -> Profile:
        return self._update(profile_id, last_furniture_date=day)
