# tests/test_reward_engine.py
# -*- coding: utf-8 -*-
"""
Tests pour steppets/services/reward_engine.py (base SQLite temporaire).

Ce fichier couvre :
- le premier animal offert à l'inscription, puis les paliers 3 et 7 jours,
- l'objectif du jour exigé, l'ancrage de la série sur la dernière récompense,
- un seul meuble par jour, y compris face à un doublon concurrent,
- catalogue vide et erreur de persistance rendus comme résultats,
- le rafraîchissement du cache d'éligibilité par le conteneur.
"""

import datetime as dt
import random

import pytest
from sqlalchemy.exc import SQLAlchemyError

from steppets.services.container import build_services
from steppets.services.reward_engine import (
    AwardError,
    EligibilityState,
    RewardKind,
    RewardPolicy,
    UniformSelector,
    required_streak_for_next,
)

D0 = dt.date(2025, 3, 10)


@pytest.fixture
def services(repos, clock):
    clock.set(D0)
    svc = build_services(clock=clock, selector=UniformSelector(random.Random(0)))
    for name in ("Chat", "Chien", "Lapin"):
        svc.catalog.add_pet(name)
    for name in ("Coussin", "Lampe"):
        svc.catalog.add_furniture(name)
    return svc


@pytest.fixture
def user(services):
    return services.profiles.create("walker@example.com")


def walk_days(services, user_id: int, first: int, last: int, steps: int = 1200) -> None:
    """Objectif atteint de D0+first à D0+last inclus ; l'horloge reste sur D0+last."""
    for n in range(first, last + 1):
        services.clock.set(D0 + dt.timedelta(days=n))
        services.tracker.record_progress(user_id, steps, 1000)


# -----------------------------------------------------------------------------
# Paliers
# -----------------------------------------------------------------------------

@pytest.mark.parametrize("total, expected", [(0, 0), (1, 3), (2, 7), (3, 7), (50, 7)])
def test_required_streak_for_next(total, expected):
    assert required_streak_for_next(total) == expected


# -----------------------------------------------------------------------------
# Animaux
# -----------------------------------------------------------------------------

def test_first_pet_is_free_and_immediate(services, user):
    e = services.rewards.check_eligibility(user.id, RewardKind.PET)
    assert e.state is EligibilityState.ELIGIBLE
    assert e.required_streak == 0 and e.goal_met_today is False

    res = services.rewards.award(user.id, RewardKind.PET)
    assert res.success is True and res.error is None

    pets = services.pets.list_for_user(user.id)
    assert len(pets) == 1
    assert pets[0].earned_via_streak is False and pets[0].streak_requirement == 0
    assert services.rewards.check_eligibility(user.id, RewardKind.PET).state is EligibilityState.AWARDED_TODAY
    assert services.rewards.award(user.id, RewardKind.PET).error is AwardError.NOT_ELIGIBLE

def test_pet_escalation_three_then_seven_days(services, user):
    assert services.rewards.award(user.id, RewardKind.PET).success

    walk_days(services, user.id, 1, 3)
    e = services.rewards.check_eligibility(user.id, RewardKind.PET)
    assert (e.state, e.current_streak, e.required_streak) == (EligibilityState.ELIGIBLE, 3, 3)
    assert services.rewards.award(user.id, RewardKind.PET).success

    # la série repart après la récompense
    walk_days(services, user.id, 4, 4)
    e = services.rewards.check_eligibility(user.id, RewardKind.PET)
    assert (e.state, e.current_streak, e.required_streak) == (EligibilityState.LOCKED, 1, 7)
    assert e.days_remaining == 6
    assert services.rewards.award(user.id, RewardKind.PET).error is AwardError.NOT_ELIGIBLE

    walk_days(services, user.id, 5, 10)
    assert services.rewards.check_eligibility(user.id, RewardKind.PET).current_streak == 7
    res = services.rewards.award(user.id, RewardKind.PET)
    assert res.success

    pets = services.pets.list_for_user(user.id)
    assert [p.streak_requirement for p in pets] == [0, 3, 7]
    assert len({p.pet_id for p in pets}) == 3  # tirage parmi les non possédés

def test_pet_requires_goal_met_today(services, user):
    services.rewards.award(user.id, RewardKind.PET)
    walk_days(services, user.id, 1, 3)
    services.clock.set(D0 + dt.timedelta(days=4))
    services.tracker.record_progress(user.id, 400, 1000)

    e = services.rewards.check_eligibility(user.id, RewardKind.PET)
    assert e.current_streak == 3  # la journée en cours ne casse pas la série
    assert e.state is EligibilityState.LOCKED and e.days_remaining == 0

def test_gap_resets_pet_streak(services, user):
    services.rewards.award(user.id, RewardKind.PET)
    walk_days(services, user.id, 1, 2)
    walk_days(services, user.id, 4, 5)  # trou à D0+3
    assert services.rewards.check_eligibility(user.id, RewardKind.PET).current_streak == 2

def test_check_eligibility_caches_streak_on_profile(services, user):
    services.rewards.award(user.id, RewardKind.PET)
    walk_days(services, user.id, 1, 2)
    services.rewards.check_eligibility(user.id, RewardKind.PET)
    p = services.profiles.get(user.id)
    assert (p.current_streak, p.last_streak_update) == (2, D0 + dt.timedelta(days=2))


# -----------------------------------------------------------------------------
# Meubles
# -----------------------------------------------------------------------------

def test_furniture_needs_goal_and_is_once_per_day(services, user):
    assert services.rewards.check_eligibility(user.id, RewardKind.FURNITURE).state is EligibilityState.LOCKED

    services.tracker.record_progress(user.id, 1000, 1000)
    assert services.rewards.check_eligibility(user.id, RewardKind.FURNITURE).eligible

    res = services.rewards.award(user.id, RewardKind.FURNITURE)
    assert res.success
    assert services.profiles.get(user.id).last_furniture_date == D0
    assert services.rewards.check_eligibility(user.id, RewardKind.FURNITURE).state is EligibilityState.AWARDED_TODAY
    assert services.rewards.award(user.id, RewardKind.FURNITURE).error is AwardError.NOT_ELIGIBLE

    walk_days(services, user.id, 1, 1)
    assert services.rewards.award(user.id, RewardKind.FURNITURE).success
    assert services.furniture.count(user.id) == 2

def test_concurrent_duplicate_furniture_award_is_rejected(services, user, monkeypatch):
    services.tracker.record_progress(user.id, 1000, 1000)
    stale = services.rewards.check_eligibility(user.id, RewardKind.FURNITURE)
    assert services.rewards.award(user.id, RewardKind.FURNITURE).success

    # second appel qui aurait lu l'état avant la première insertion
    monkeypatch.setattr(services.rewards, "check_eligibility", lambda uid, kind: stale)
    res = services.rewards.award(user.id, RewardKind.FURNITURE)
    assert res.success is False and res.error is AwardError.NOT_ELIGIBLE
    assert services.furniture.count(user.id) == 1

def test_configurable_furniture_tiers(repos, clock):
    clock.set(D0)
    policy = RewardPolicy(kind=RewardKind.FURNITURE, tiers=(0, 2), window="day")
    svc = build_services(clock=clock, policies={RewardKind.FURNITURE: policy})
    svc.catalog.add_furniture("Tapis")
    u = svc.profiles.create("tiers@example.com")

    walk_days(svc, u.id, 0, 0)
    assert svc.rewards.award(u.id, RewardKind.FURNITURE).success
    walk_days(svc, u.id, 1, 1)
    assert svc.rewards.check_eligibility(u.id, RewardKind.FURNITURE).days_remaining == 1
    walk_days(svc, u.id, 2, 2)
    assert svc.rewards.award(u.id, RewardKind.FURNITURE).success


# -----------------------------------------------------------------------------
# Erreurs rendues comme résultats
# -----------------------------------------------------------------------------

def test_empty_catalog_reports_error_without_writing(repos, clock):
    svc = build_services(clock=clock)
    u = svc.profiles.create("nocat@example.com")
    res = svc.rewards.award(u.id, RewardKind.PET)
    assert res.error is AwardError.NO_CATALOG_AVAILABLE
    assert svc.pets.count(u.id) == 0
    assert svc.rewards.check_eligibility(u.id, RewardKind.PET).eligible

def test_persistence_error_is_reported(services, user, monkeypatch):
    def boom(*args, **kwargs):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(services.pets, "add", boom)
    res = services.rewards.award(user.id, RewardKind.PET)
    assert res.error is AwardError.PERSISTENCE_ERROR
    assert services.pets.count(user.id) == 0

def test_furniture_award_succeeds_when_profile_date_write_fails(services, user, monkeypatch):
    def boom(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    services.tracker.record_progress(user.id, 1000, 1000)
    monkeypatch.setattr(services.profiles, "set_last_furniture_date", boom)
    res = services.rewards.award(user.id, RewardKind.FURNITURE)
    assert res.success is True and res.error is None
    assert services.furniture.count(user.id) == 1
    # la fenêtre du jour reste consommée malgré la date de profil absente
    assert services.rewards.check_eligibility(user.id, RewardKind.FURNITURE).state is EligibilityState.AWARDED_TODAY

def test_pet_award_ignores_streak_cache_failure(services, user, monkeypatch):
    def boom(*args, **kwargs):
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(services.profiles, "cache_streak", boom)
    res = services.rewards.award(user.id, RewardKind.PET)
    assert res.success is True
    assert services.pets.count(user.id) == 1


# -----------------------------------------------------------------------------
# Conteneur : cache d'éligibilité rafraîchi au franchissement de l'objectif
# -----------------------------------------------------------------------------

def test_goal_reached_refreshes_eligibility_cache(services, user):
    assert services.cached_eligibility(user.id, RewardKind.FURNITURE) is None
    services.tracker.record_progress(user.id, 1000, 1000)
    cached = services.cached_eligibility(user.id, RewardKind.FURNITURE)
    assert cached is not None and cached.eligible
    assert cached.goal_met_today is True
