# steppets/services/step_sources.py
# -*- coding: utf-8 -*-
"""
Sources de pas consommées par l'adaptateur.

Deux familles :
- Podomètre de l'appareil : flux de pas *cumulés depuis l'abonnement*.
- Service santé de la plateforme : requête ponctuelle "pas depuis minuit".

Providers fournis :
- InMemoryPedometer : podomètre pilotable (tests).
- StubHealthService : offline, valeur réglable, déterministe.
- HttpHealthService : passerelle santé HTTP (si HEALTH_API_URL/HEALTH_API_TOKEN présents).

Usage:
    from steppets.services.step_sources import build_health_service

    health = build_health_service()      # auto: stub si pas de configuration HTTP
    steps = await health.steps_since_midnight()
"""

from __future__ import annotations

import datetime as dt
import enum
import logging
from typing import Callable, Optional, Protocol

import httpx

from steppets import config

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Types communs
# -----------------------------------------------------------------------------

class StepSource(str, enum.Enum):
    PEDOMETER = "pedometer"
    HEALTH_INTEGRATION = "healthIntegration"

    @classmethod
    def from_profile(cls, value: str | None) -> "StepSource":
        """
        Normalise la préférence stockée dans profiles.step_source.
        Les anciennes valeurs par plateforme ('googleFit', 'appleHealth') désignent
        l'intégration santé ; toute valeur inconnue retombe sur le podomètre.
        """
        v = (value or "").strip()
        if v in ("healthIntegration", "googleFit", "appleHealth"):
            return cls.HEALTH_INTEGRATION
        return cls.PEDOMETER

    @property
    def other(self) -> "StepSource":
        return StepSource.HEALTH_INTEGRATION if self is StepSource.PEDOMETER else StepSource.PEDOMETER


class SourceUnavailableError(Exception):
    """Permission refusée ou capteur/service absent sur l'appareil."""

    def __init__(self, source: StepSource, reason: str) -> None:
        super().__init__(f"{source.value} indisponible : {reason}")
        self.source = source
        self.reason = reason


class HealthServiceError(Exception):
    """Échec transitoire de lecture du service santé (réseau, réponse invalide)."""


class Subscription(Protocol):
    def remove(self) -> None: ...


class PedometerDevice(Protocol):
    async def is_available(self) -> bool: ...
    async def request_permission(self) -> bool: ...
    def watch(self, callback: Callable[[int], None]) -> Subscription: ...


class HealthService(Protocol):
    async def authorize(self) -> bool: ...
    async def steps_since_midnight(self) -> int: ...


# -----------------------------------------------------------------------------
# Provider: podomètre en mémoire
# -----------------------------------------------------------------------------

class _Watch:
    def __init__(self, device: "InMemoryPedometer", callback: Callable[[int], None]) -> None:
        self._device = device
        self.callback = callback

    def remove(self) -> None:
        self._device._watches.discard(self)
        self._device._session_steps.pop(self, None)


class InMemoryPedometer:
    """
    Podomètre pilotable. `walk(n)` simule n pas ; les callbacks reçoivent,
    comme un vrai capteur, le cumul depuis le début de leur abonnement.
    """

    def __init__(self, available: bool = True, permission_granted: bool = True) -> None:
        self.available = available
        self.permission_granted = permission_granted
        self._watches: set[_Watch] = set()
        self._session_steps: dict[_Watch, int] = {}

    async def is_available(self) -> bool:
        return self.available

    async def request_permission(self) -> bool:
        return self.permission_granted

    def watch(self, callback: Callable[[int], None]) -> _Watch:
        w = _Watch(self, callback)
        self._watches.add(w)
        self._session_steps[w] = 0
        return w

    @property
    def watching(self) -> bool:
        return bool(self._watches)

    def walk(self, steps: int) -> None:
        for w in list(self._watches):
            self._session_steps[w] += steps
            w.callback(self._session_steps[w])

    def emit(self, cumulative: int) -> None:
        """Envoie une valeur cumulée brute (répétitions, retours en arrière...)."""
        for w in list(self._watches):
            self._session_steps[w] = cumulative
            w.callback(cumulative)


# -----------------------------------------------------------------------------
# Provider: Stub santé (déterministe, offline)
# -----------------------------------------------------------------------------

class StubHealthService:
    """Service santé factice : `steps` est la valeur "depuis minuit" renvoyée."""

    def __init__(self, steps: int = 0, authorized: bool = True) -> None:
        self.steps = steps
        self.authorized = authorized
        self.fail_next = 0  # nb de lectures à faire échouer
        self.calls = 0

    async def authorize(self) -> bool:
        return self.authorized

    async def steps_since_midnight(self) -> int:
        self.calls += 1
        if self.fail_next > 0:
            self.fail_next -= 1
            raise HealthServiceError("lecture santé simulée en échec")
        return self.steps


# -----------------------------------------------------------------------------
# Provider: passerelle santé HTTP
# -----------------------------------------------------------------------------

ESTIMATED_STEPS_SOURCE = "com.google.android.gms:estimated_steps"


def parse_steps_payload(data) -> int:
    """
    Extrait un nombre de pas des formats de réponse connus :
      {"steps": 1234}
      {"value": 1234}                                   (Apple Health)
      [{"source": "...estimated_steps", "steps": [{"value": 1234}]}, ...]  (Google Fit)
    """
    if isinstance(data, dict):
        for key in ("steps", "value"):
            if isinstance(data.get(key), (int, float)):
                return max(0, int(data[key]))
        raise HealthServiceError(f"Réponse santé inattendue: {str(data)[:200]}")

    if isinstance(data, list):
        if not data:
            return 0
        bucket = next((b for b in data if isinstance(b, dict) and b.get("source") == ESTIMATED_STEPS_SOURCE), data[0])
        samples = bucket.get("steps") if isinstance(bucket, dict) else None
        if not samples:
            return 0
        first = samples[0] if isinstance(samples, list) else None
        if not isinstance(first, dict):
            raise HealthServiceError(f"Échantillon santé inattendu: {str(samples)[:200]}")
        value = first.get("value")
        if value is None:
            return 0
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise HealthServiceError(f"Valeur de pas non numérique: {value!r}")
        return max(0, int(value))

    raise HealthServiceError(f"Réponse santé inattendue: {str(data)[:200]}")


class HttpHealthService:
    """
    Client de la passerelle santé (Google Fit / Apple Health exposés en HTTP).

    Variables d'environnement supportées:
        HEALTH_API_URL      : URL de base (obligatoire), ex. 'https://health.example.org/v1'
        HEALTH_API_TOKEN    : token secret (obligatoire)
        HEALTH_TIMEOUT_SEC  : int/float (par défaut 5)

    Notes:
        - GET {HEALTH_API_URL}/steps?start=<minuit ISO>&end=<maintenant ISO>
        - Toute erreur réseau ou HTTP est convertie en HealthServiceError : l'appelant
          la traite comme "pas de mise à jour ce cycle".
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url if base_url is not None else config.HEALTH_API_URL).rstrip("/")
        self.token = token if token is not None else config.HEALTH_API_TOKEN
        if not self.base_url or not self.token:
            raise RuntimeError("HEALTH_API_URL / HEALTH_API_TOKEN manquants pour HttpHealthService.")
        self.timeout_sec = timeout_sec if timeout_sec is not None else config.HEALTH_TIMEOUT_SEC
        self._transport = transport
        self._headers = {"Authorization": f"Bearer {self.token}", "Accept": "application/json"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_sec, headers=self._headers, transport=self._transport)

    async def authorize(self) -> bool:
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/authorize")
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Autorisation santé refusée ou injoignable: {e}")
            return False
        return True

    async def steps_since_midnight(self) -> int:
        now = dt.datetime.now()
        midnight = dt.datetime.combine(now.date(), dt.time.min)
        params = {"start": midnight.isoformat(), "end": now.isoformat()}
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/steps", params=params)
                resp.raise_for_status()
                data = resp.json()
                return parse_steps_payload(data)
        except (httpx.HTTPError, ValueError) as e:
            raise HealthServiceError(f"Lecture santé impossible: {e}") from e


# -----------------------------------------------------------------------------
# Façade
# -----------------------------------------------------------------------------

def build_health_service(provider: Optional[str] = None) -> HealthService:
    """
    Choisit le provider santé :
      - HEALTH_PROVIDER=http -> HttpHealthService (si URL + token présents)
      - sinon                -> StubHealthService (par défaut)
    """
    prov = (provider or config.HEALTH_PROVIDER).strip().lower()
    if prov == "http":
        try:
            return HttpHealthService()
        except RuntimeError as e:
            logger.warning(f"Configuration santé HTTP incomplète, utilisation du stub: {e}")
    return StubHealthService()
