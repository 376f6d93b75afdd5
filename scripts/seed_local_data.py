# scripts/seed_local_data.py
# -*- coding: utf-8 -*-
"""
Seed local pour StepPets : catalogues, profils et historique de pas réalistes.

Caractéristiques :
- Idempotent : réexécutable sans doublons (upsert par user + date, get_or_create)
- Paramétrable via CLI : nb d'utilisateurs, nb de jours, date de fin, taux de réussite
- Progression enregistrée via DailyProgressTracker (mêmes règles que l'app)
- Option (--award) pour attribuer les récompenses éligibles au dernier jour
- Option (--wipe) pour drop+recreate le schéma (utile en dev)

Exemples :
    # 3 users, 14 jours jusqu'à aujourd'hui
    python scripts/seed_local_data.py

    # 5 users, 30 jours, objectif atteint ~60% du temps, avec récompenses
    python scripts/seed_local_data.py --users 5 --days 30 --success-rate 0.6 --award

    # Recommencer à zéro avec une date de fin fixe
    python scripts/seed_local_data.py --end 2025-10-01 --wipe
"""

from __future__ import annotations

import argparse
import datetime as dt
import logging
import os
import random
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from steppets.config import configure_logging
from steppets.persistence.db import init_db
from steppets.persistence.models import Base
from steppets.services.clock import FixedClock
from steppets.services.container import build_services
from steppets.services.reward_engine import RewardKind

logger = logging.getLogger("seed")

PETS = [("Chat", "cat.png"), ("Chien", "dog.png"), ("Lapin", "rabbit.png"),
        ("Renard", "fox.png"), ("Panda", "panda.png")]
FURNITURE = [("Panier", "basket.png"), ("Coussin", "cushion.png"), ("Lampe", "lamp.png"),
             ("Plante", "plant.png"), ("Tapis", "rug.png")]


# -------------------------------------------------------------------
# Utils
# -------------------------------------------------------------------

def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def sample_day_steps(goal: int, success_rate: float) -> int:
    """Au-dessus de l'objectif avec probabilité `success_rate`, sinon en dessous."""
    if random.random() < success_rate:
        return int(goal * random.uniform(1.0, 2.5))
    return int(goal * clamp(random.gauss(0.55, 0.2), 0.0, 0.99))


def daterange(end: dt.date, days: int):
    """Génère des dates [end - (days-1) .. end] incluses, en ordre croissant."""
    for i in range(days):
        yield end - dt.timedelta(days=(days - 1 - i))


# -------------------------------------------------------------------
# Seeding
# -------------------------------------------------------------------

def seed_catalog(services) -> None:
    for name, image in PETS:
        services.catalog.get_or_create_pet(name, image)
    for name, image in FURNITURE:
        services.catalog.get_or_create_furniture(name, image)


def seed(
    *,
    users: int,
    days: int,
    end_date: dt.date,
    email_prefix: str,
    domain: str,
    goal: int,
    success_rate: float,
    award: bool,
) -> int:
    """
    Crée `users` profils, chacun avec `days` jours de progression (rejoués jour par
    jour avec une horloge fixe). Retourne le nombre de jours enregistrés.
    """
    clock = FixedClock(end_date)
    services = build_services(clock=clock)
    seed_catalog(services)

    logger.info(f"Seeding {users} user(s), {days} jour(s), fin au {end_date.isoformat()}"
                f" | réussite ~{int(success_rate * 100)}% | récompenses={'on' if award else 'off'}")

    total = 0
    for i in range(1, users + 1):
        email = f"{email_prefix}{i}@{domain}".lower()
        p = services.profiles.get_or_create(email, step_goal=goal)
        logger.info(f"User {p.id:>3}  {p.email:<30}  objectif={p.step_goal}")

        for day in daterange(end=end_date, days=days):
            clock.set(day)
            services.tracker.record_progress(p.id, sample_day_steps(p.step_goal, success_rate), p.step_goal)
            total += 1

        if award:
            clock.set(end_date)
            for kind in RewardKind:
                res = services.rewards.award(p.id, kind)
                logger.info(f"  {kind.value}: {res.message}")

    logger.info(f"Terminé : {users} user(s), {total} jour(s) créés/mis à jour.")
    return total


# -------------------------------------------------------------------
# CLI
# -------------------------------------------------------------------

def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Seed local data for StepPets")
    p.add_argument("--users", type=int, default=3, help="Nombre d'utilisateurs (défaut: 3)")
    p.add_argument("--days", type=int, default=14, help="Nombre de jours (défaut: 14)")
    p.add_argument("--end", type=str, default=None, help="Date de fin (YYYY-MM-DD). Défaut: aujourd'hui")
    p.add_argument("--email-prefix", type=str, default="user", help="Préfixe email (défaut: 'user')")
    p.add_argument("--domain", type=str, default="example.com", help="Domaine email (défaut: example.com)")
    p.add_argument("--goal", type=int, default=1000, help="Objectif quotidien des nouveaux profils")
    p.add_argument("--success-rate", type=float, default=0.7, help="Probabilité d'atteindre l'objectif (0..1)")
    p.add_argument("--seed", type=int, default=None, help="Seed du générateur aléatoire pour reproductibilité")
    p.add_argument("--award", action="store_true", help="Attribuer les récompenses éligibles au dernier jour")
    p.add_argument("--wipe", action="store_true", help="Drop + recreate la base avant seeding")
    return p.parse_args()


def main():
    args = parse_args()
    configure_logging()

    if args.seed is not None:
        random.seed(args.seed)

    end_date = dt.date.fromisoformat(args.end) if args.end else dt.date.today()

    if args.wipe:
        logger.warning("Wipe : drop & recreate le schéma…")
    init_db(Base, drop_and_recreate=bool(args.wipe))

    seed(
        users=max(1, args.users),
        days=max(1, args.days),
        end_date=end_date,
        email_prefix=args.email_prefix,
        domain=args.domain,
        goal=max(1, args.goal),
        success_rate=clamp(args.success_rate, 0.0, 1.0),
        award=bool(args.award),
    )


if __name__ == "__main__":
    main()
