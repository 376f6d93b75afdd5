# tests/conftest.py
# -*- coding: utf-8 -*-
"""
Fixtures partagées : base SQLite temporaire par test (DB_URL -> tmp file),
modules persistance rechargés pour utiliser l'engine courant.
"""

import datetime as dt
import importlib
from dataclasses import dataclass

import pytest


@dataclass
class Repos:
    profiles: object
    daily_steps: object
    completions: object
    catalog: object
    pets: object
    furniture: object
    snapshots: object


REPO_MODULES = [
    "steppets.persistence.repositories.profiles_repo",
    "steppets.persistence.repositories.steps_repo",
    "steppets.persistence.repositories.catalog_repo",
    "steppets.persistence.repositories.rewards_repo",
    "steppets.persistence.repositories.snapshots_repo",
]


@pytest.fixture
def db_modules(tmp_path, monkeypatch):
    """
    - définit DB_URL AVANT de (re)charger les modules
    - (re)charge db/models pour régénérer l'engine et les tables
    - (re)charge les repos pour qu'ils utilisent bien le db.engine courant
    """
    db_path = tmp_path / "test_steppets.db"
    monkeypatch.setenv("DB_URL", f"sqlite:///{db_path}")

    import steppets.persistence.db as db
    import steppets.persistence.models as models
    importlib.reload(db)
    importlib.reload(models)
    db.init_db(models.Base, drop_and_recreate=True)

    modules = {}
    for name in REPO_MODULES:
        mod = importlib.import_module(name)
        modules[name.rsplit(".", 1)[-1]] = importlib.reload(mod)
    return db, models, modules


@pytest.fixture
def repos(db_modules) -> Repos:
    _, _, m = db_modules
    return Repos(
        profiles=m["profiles_repo"].ProfileRepository(),
        daily_steps=m["steps_repo"].DailyStepsRepository(),
        completions=m["steps_repo"].GoalCompletionRepository(),
        catalog=m["catalog_repo"].CatalogRepository(),
        pets=m["rewards_repo"].UserPetRepository(),
        furniture=m["rewards_repo"].UserFurnitureRepository(),
        snapshots=m["snapshots_repo"].StepSnapshotRepository(),
    )


@pytest.fixture
def clock():
    from steppets.services.clock import FixedClock
    return FixedClock(dt.datetime(2025, 3, 10, 9, 0))
