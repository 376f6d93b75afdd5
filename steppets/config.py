# steppets/config.py
# -*- coding: utf-8 -*-
"""Configuration (variables d'environnement, .env chargé si présent)."""
import logging
import os

from dotenv import load_dotenv

load_dotenv()


def parse_tiers(raw: str) -> tuple[int, ...]:
    """'0,3,7' -> (0, 3, 7). Paliers de streak exigés pour la récompense N+1."""
    tiers = tuple(int(x) for x in raw.replace(" ", "").split(",") if x)
    if not tiers or any(t < 0 for t in tiers):
        raise ValueError(f"Paliers de streak invalides: {raw!r}")
    return tiers


# Objectif par défaut d'un nouveau profil
DEFAULT_STEP_GOAL: int = int(os.getenv("DEFAULT_STEP_GOAL", "1000"))

# Source santé : 'stub' (offline) ou 'http' (passerelle santé)
HEALTH_PROVIDER: str = os.getenv("HEALTH_PROVIDER", "stub").strip().lower()
HEALTH_API_URL: str = os.getenv("HEALTH_API_URL", "").strip()
HEALTH_API_TOKEN: str = os.getenv("HEALTH_API_TOKEN", "").strip()
HEALTH_TIMEOUT_SEC: float = float(os.getenv("HEALTH_TIMEOUT_SEC", "5"))
HEALTH_POLL_INTERVAL_SEC: float = float(os.getenv("HEALTH_POLL_INTERVAL_SEC", "1"))

# Délai d'inactivité avant sauvegarde du compteur podomètre
PERSIST_DEBOUNCE_SEC: float = float(os.getenv("PERSIST_DEBOUNCE_SEC", "2"))

# Paliers : animaux 0 / 3 / 7 jours, meubles sans palier
PET_STREAK_TIERS: tuple[int, ...] = parse_tiers(os.getenv("PET_STREAK_TIERS", "0,3,7"))
FURNITURE_STREAK_TIERS: tuple[int, ...] = parse_tiers(os.getenv("FURNITURE_STREAK_TIERS", "0"))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


def configure_logging(level: str | None = None) -> None:
    """Configure le logging racine (appelé par les points d'entrée)."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
