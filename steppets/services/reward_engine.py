# steppets/services/reward_engine.py
# -*- coding: utf-8 -*-
"""
Éligibilité et attribution des récompenses (animaux, meubles).

Machine à états par (utilisateur, type) :
    LOCKED        -> série insuffisante (ou objectif du jour non atteint)
    ELIGIBLE      -> exigence remplie, pas encore récompensé dans la fenêtre
    AWARDED_TODAY -> récompense déjà reçue aujourd'hui / pour ce palier

Garanties :
- `award()` revérifie l'éligibilité depuis la base au moment de l'attribution.
- Chaque ligne insérée porte sa fenêtre d'attribution (palier pour les animaux,
  jour pour les meubles) et (user_id, award_window) est unique : deux appels
  concurrents ne peuvent pas réussir tous les deux.
- Les cas attendus (non éligible, catalogue vide, erreur de base) sont des
  valeurs de retour (`AwardResult`), jamais des exceptions.
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
import random
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from steppets import config
from steppets.services.clock import SystemClock

logger = logging.getLogger(__name__)


class RewardKind(str, enum.Enum):
    PET = "pet"
    FURNITURE = "furniture"


class EligibilityState(str, enum.Enum):
    LOCKED = "locked"
    ELIGIBLE = "eligible"
    AWARDED_TODAY = "awarded_today"


class AwardError(str, enum.Enum):
    NOT_ELIGIBLE = "not_eligible"
    NO_CATALOG_AVAILABLE = "no_catalog_available"
    PERSISTENCE_ERROR = "persistence_error"


def required_streak_for_next(total_earned: int, tiers: Sequence[int] = config.PET_STREAK_TIERS) -> int:
    """
    Série exigée pour la prochaine récompense, selon le nombre déjà obtenu.
    Avec les paliers animaux (0, 3, 7) : 0 -> 0, 1 -> 3, 2 et plus -> 7.
    Unique source de vérité pour le moteur ET l'affichage "encore N jours".
    """
    if not tiers:
        return 0
    return tiers[min(max(total_earned, 0), len(tiers) - 1)]


@dataclass(frozen=True)
class RewardPolicy:
    kind: RewardKind
    tiers: tuple[int, ...]
    requires_goal_today: bool = True
    first_reward_free: bool = False   # première récompense dès l'inscription
    window: str = "day"               # 'day' ou 'milestone'

    def required_streak(self, total_earned: int) -> int:
        return required_streak_for_next(total_earned, self.tiers)

    def window_key(self, total_earned: int, today: dt.date) -> str:
        if self.window == "milestone":
            return f"milestone:{total_earned}"
        return f"day:{today.isoformat()}"


PET_POLICY = RewardPolicy(
    kind=RewardKind.PET,
    tiers=config.PET_STREAK_TIERS,
    requires_goal_today=True,
    first_reward_free=True,
    window="milestone",
)

FURNITURE_POLICY = RewardPolicy(
    kind=RewardKind.FURNITURE,
    tiers=config.FURNITURE_STREAK_TIERS,
    requires_goal_today=True,
    window="day",
)

DEFAULT_POLICIES = {RewardKind.PET: PET_POLICY, RewardKind.FURNITURE: FURNITURE_POLICY}


@dataclass(frozen=True)
class Eligibility:
    kind: RewardKind
    state: EligibilityState
    current_streak: int
    total_earned: int
    required_streak: int
    goal_met_today: bool
    window_key: str

    @property
    def eligible(self) -> bool:
        return self.state is EligibilityState.ELIGIBLE

    @property
    def days_remaining(self) -> int:
        """Jours de série encore nécessaires (affichage UI)."""
        return max(0, self.required_streak - self.current_streak)


@dataclass(frozen=True)
class AwardResult:
    success: bool
    kind: RewardKind
    reward_id: Optional[int] = None   # id de la ligne users_pets / users_furniture
    item_id: Optional[int] = None     # id du type d'animal / du meuble
    error: Optional[AwardError] = None
    message: str = ""


# -----------------------------------------------------------------------------
# Politique de tirage
# -----------------------------------------------------------------------------

class RewardSelector(Protocol):
    def pick_pet(self, catalog: Sequence, owned_ids: set[int]): ...
    def pick_furniture(self, catalog: Sequence): ...


class UniformSelector:
    """Tirage uniforme : un animal non possédé si possible, sinon parmi tous."""

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()

    def pick_pet(self, catalog: Sequence, owned_ids: set[int]):
        candidates = [p for p in catalog if p.id not in owned_ids] or list(catalog)
        return self.rng.choice(candidates)

    def pick_furniture(self, catalog: Sequence):
        return self.rng.choice(list(catalog))


# -----------------------------------------------------------------------------
# Moteur
# -----------------------------------------------------------------------------

class RewardEngine:
    def __init__(
        self,
        *,
        profiles,
        completions,
        pets,
        furniture,
        catalog,
        streaks,
        policies: Optional[dict] = None,
        selector: Optional[RewardSelector] = None,
        clock=None,
    ) -> None:
        self.profiles = profiles
        self.completions = completions
        self.pets = pets
        self.furniture = furniture
        self.catalog = catalog
        self.streaks = streaks
        self.policies = {**DEFAULT_POLICIES, **(policies or {})}
        self.selector = selector or UniformSelector()
        self.clock = clock or SystemClock()

    def _records(self, kind: RewardKind):
        return self.pets if kind is RewardKind.PET else self.furniture

    def check_eligibility(self, user_id: int, kind: RewardKind) -> Eligibility:
        """État courant, recalculé depuis la base (aucun cache n'est utilisé pour décider)."""
        policy = self.policies[kind]
        today = self.clock.today()

        records = self._records(kind).list_for_user(user_id)
        total = len(records)
        last_award_day = records[-1].created_at.date() if records else None

        required = policy.required_streak(total)
        streak = self.streaks.current_streak(user_id, since=last_award_day)
        goal_today = self.completions.goal_met_on(user_id, today)
        window = policy.window_key(total, today)
        already_in_window = any(r.award_window == window for r in records)

        if already_in_window:
            eligible = False
        elif policy.first_reward_free and total == 0:
            eligible = True
        else:
            eligible = streak >= required and (goal_today or not policy.requires_goal_today)

        if eligible:
            state = EligibilityState.ELIGIBLE
        elif already_in_window or last_award_day == today:
            state = EligibilityState.AWARDED_TODAY
        else:
            state = EligibilityState.LOCKED

        if kind is RewardKind.PET:
            # cache d'affichage : un échec ne doit pas bloquer la décision
            try:
                self.profiles.cache_streak(user_id, streak, today)
            except SQLAlchemyError as e:
                logger.warning(f"Cache de série non mis à jour pour l'utilisateur {user_id}: {e}")

        return Eligibility(kind=kind, state=state, current_streak=streak, total_earned=total,
                           required_streak=required, goal_met_today=goal_today, window_key=window)

    def award(self, user_id: int, kind: RewardKind) -> AwardResult:
        """Attribue une récompense si (et seulement si) l'utilisateur est éligible maintenant."""
        try:
            eligibility = self.check_eligibility(user_id, kind)
            if not eligibility.eligible:
                return AwardResult(False, kind, error=AwardError.NOT_ELIGIBLE,
                                   message=f"Non éligible ({eligibility.state.value}, "
                                           f"{eligibility.days_remaining} jour(s) restant(s))")

            if kind is RewardKind.PET:
                return self._award_pet(user_id, eligibility)
            return self._award_furniture(user_id, eligibility)
        except IntegrityError:
            # fenêtre déjà consommée par un appel concurrent
            logger.info(f"Attribution {kind.value} concurrente refusée pour l'utilisateur {user_id}")
            return AwardResult(False, kind, error=AwardError.NOT_ELIGIBLE,
                               message="Récompense déjà attribuée pour cette fenêtre")
        except SQLAlchemyError as e:
            logger.error(f"Erreur de persistance pendant l'attribution {kind.value}: {e}", exc_info=True)
            return AwardResult(False, kind, error=AwardError.PERSISTENCE_ERROR,
                               message="Erreur temporaire, réessaie plus tard")

    def _award_pet(self, user_id: int, eligibility: Eligibility) -> AwardResult:
        catalog = self.catalog.list_pets()
        if not catalog:
            logger.error("Catalogue d'animaux vide : aucune récompense possible")
            return AwardResult(False, RewardKind.PET, error=AwardError.NO_CATALOG_AVAILABLE,
                               message="Aucun animal disponible dans le catalogue")

        pet = self.selector.pick_pet(catalog, self.pets.owned_pet_ids(user_id))
        record = self.pets.add(
            user_id, pet.id,
            award_window=eligibility.window_key,
            earned_via_streak=eligibility.total_earned > 0,
            streak_requirement=eligibility.required_streak,
            created_at=self.clock.now(),
        )
        logger.info(f"Animal {pet.id} ({pet.name}) attribué à l'utilisateur {user_id} "
                    f"(palier {eligibility.required_streak}, série {eligibility.current_streak})")
        return AwardResult(True, RewardKind.PET, reward_id=record.id, item_id=pet.id,
                           message=f"Nouvel animal : {pet.name}")

    def _award_furniture(self, user_id: int, eligibility: Eligibility) -> AwardResult:
        catalog = self.catalog.list_furniture()
        if not catalog:
            logger.error("Catalogue de meubles vide : aucune récompense possible")
            return AwardResult(False, RewardKind.FURNITURE, error=AwardError.NO_CATALOG_AVAILABLE,
                               message="Aucun meuble disponible dans le catalogue")

        item = self.selector.pick_furniture(catalog)
        record = self.furniture.add(
            user_id, item.id,
            award_window=eligibility.window_key,
            created_at=self.clock.now(),
        )
        # Le meuble est déjà enregistré : la date sur le profil n'est qu'un reflet
        # (la fenêtre "day:" sur users_furniture fait foi pour l'éligibilité).
        try:
            self.profiles.set_last_furniture_date(user_id, self.clock.today())
        except SQLAlchemyError as e:
            logger.warning(f"Date du dernier meuble non mise à jour pour l'utilisateur {user_id}: {e}")
        logger.info(f"Meuble {item.id} ({item.name}) attribué à l'utilisateur {user_id}")
        return AwardResult(True, RewardKind.FURNITURE, reward_id=record.id, item_id=item.id,
                           message=f"Nouveau meuble : {item.name}")
