# steppets/persistence/repositories/snapshots_repo.py
# -*- coding: utf-8 -*-
from sqlalchemy import select
from steppets.persistence.db import get_session, upsert
from steppets.persistence.models import StepSnapshot
import datetime as dt

class StepSnapshotRepository:
    """Sauvegarde locale du compteur podomètre, une ligne par clé d'appareil."""

    def load(self, key: str) -> StepSnapshot | None:
        with get_session() as s:
            snap = s.scalar(select(StepSnapshot).where(StepSnapshot.key == key))
            if not snap:
                return None
            s.expunge(snap)
            return snap

    def save(self, key: str, steps: int, day: dt.date, health_snapshot: int | None = None) -> None:
        with get_session() as s:
            upsert(
                s, StepSnapshot,
                dict(key=key, steps=steps, snapshot_date=day,
                     health_snapshot=health_snapshot, saved_at=dt.datetime.now()),
                conflict=["key"],
                update=["steps", "snapshot_date", "health_snapshot", "saved_at"],
            )
