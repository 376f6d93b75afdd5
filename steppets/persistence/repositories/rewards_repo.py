# steppets/persistence/repositories/rewards_repo.py
# -*- coding: utf-8 -*-
"""
Enregistrements de récompenses : une ligne par attribution.

Les lignes ne sont jamais modifiées par le moteur ; seuls les champs cosmétiques
(nom personnalisé, position, meuble posé près d'un animal) le sont par l'UI.
L'unicité (user_id, award_window) fait échouer un doublon avec IntegrityError.
"""
from sqlalchemy import select, func, and_
from steppets.persistence.db import get_session
from steppets.persistence.models import UserPet, UserFurniture
import datetime as dt

class UserPetRepository:
    def add(self, user_id: int, pet_id: int, *, award_window: str, earned_via_streak: bool,
            streak_requirement: int, created_at: dt.datetime | None = None) -> UserPet:
        with get_session() as s:
            up = UserPet(
                user_id=user_id, pet_id=pet_id, award_window=award_window,
                earned_via_streak=earned_via_streak, streak_requirement=streak_requirement,
                created_at=created_at or dt.datetime.now(),
            )
            s.add(up); s.flush(); s.refresh(up); s.expunge(up)
            return up

    def list_for_user(self, user_id: int) -> list[UserPet]:
        """Animaux de l'utilisateur, du plus ancien au plus récent."""
        with get_session() as s:
            stmt = (select(UserPet).where(UserPet.user_id == user_id)
                    .order_by(UserPet.created_at.asc(), UserPet.id.asc()))
            rows = list(s.scalars(stmt).unique())
            for r in rows:
                s.expunge(r)
            return rows

    def count(self, user_id: int) -> int:
        with get_session() as s:
            return s.scalar(select(func.count(UserPet.id)).where(UserPet.user_id == user_id)) or 0

    def owned_pet_ids(self, user_id: int) -> set[int]:
        with get_session() as s:
            return set(s.scalars(select(UserPet.pet_id).where(UserPet.user_id == user_id)))

    def _update(self, user_pet_id: int, user_id: int, **fields) -> UserPet:
        with get_session() as s:
            up = s.scalar(select(UserPet).where(and_(UserPet.id == user_pet_id, UserPet.user_id == user_id)))
            if not up:
                raise ValueError(f"Animal introuvable: {user_pet_id}")
            for k, v in fields.items():
                setattr(up, k, v)
            s.add(up); s.flush(); s.refresh(up); s.expunge(up)
            return up

    def set_custom_name(self, user_pet_id: int, user_id: int, name: str | None) -> UserPet:
        name = (name or "").strip() or None
        return self._update(user_pet_id, user_id, custom_name=name)

    def set_position(self, user_pet_id: int, user_id: int, x: float, y: float) -> UserPet:
        return self._update(user_pet_id, user_id, position_x=x, position_y=y)

class UserFurnitureRepository:
    def add(self, user_id: int, furniture_id: int, *, award_window: str,
            created_at: dt.datetime | None = None) -> UserFurniture:
        with get_session() as s:
            uf = UserFurniture(
                user_id=user_id, furniture_id=furniture_id, award_window=award_window,
                created_at=created_at or dt.datetime.now(),
            )
            s.add(uf); s.flush(); s.refresh(uf); s.expunge(uf)
            return uf

    def list_for_user(self, user_id: int) -> list[UserFurniture]:
        with get_session() as s:
            stmt = (select(UserFurniture).where(UserFurniture.user_id == user_id)
                    .order_by(UserFurniture.created_at.asc(), UserFurniture.id.asc()))
            rows = list(s.scalars(stmt).unique())
            for r in rows:
                s.expunge(r)
            return rows

    def count(self, user_id: int) -> int:
        with get_session() as s:
            return s.scalar(select(func.count(UserFurniture.id)).where(UserFurniture.user_id == user_id)) or 0

    def _update(self, user_furniture_id: int, user_id: int, **fields) -> UserFurniture:
        with get_session() as s:
            uf = s.scalar(select(UserFurniture).where(
                and_(UserFurniture.id == user_furniture_id, UserFurniture.user_id == user_id)
            ))
            if not uf:
                raise ValueError(f"Meuble introuvable: {user_furniture_id}")
            for k, v in fields.items():
                setattr(uf, k, v)
            s.add(uf); s.flush(); s.refresh(uf); s.expunge(uf)
            return uf

    def place_with_pet(self, user_furniture_id: int, user_id: int, user_pet_id: int | None) -> UserFurniture:
        return self._update(user_furniture_id, user_id, user_pet_id=user_pet_id)

    def set_position(self, user_furniture_id: int, user_id: int, x: float, y: float) -> UserFurniture:
        return self._update(user_furniture_id, user_id, position_x=x, position_y=y)
