# steppets/persistence/repositories/catalog_repo.py
# -*- coding: utf-8 -*-
from sqlalchemy import select
from steppets.persistence.db import get_session
from steppets.persistence.models import Pet, Furniture

class CatalogRepository:
    """Catalogues des récompenses (types d'animaux, meubles)."""

    def add_pet(self, name: str, image: str | None = None) -> Pet:
        with get_session() as s:
            p = Pet(name=name, image=image)
            s.add(p); s.flush(); s.refresh(p); s.expunge(p)
            return p

    def add_furniture(self, name: str, image: str | None = None) -> Furniture:
        with get_session() as s:
            f = Furniture(name=name, image=image)
            s.add(f); s.flush(); s.refresh(f); s.expunge(f)
            return f

    def get_or_create_pet(self, name: str, image: str | None = None) -> Pet:
        with get_session() as s:
            p = s.scalar(select(Pet).where(Pet.name == name).limit(1))
            if p:
                s.expunge(p)
                return p
        return self.add_pet(name, image)

    def get_or_create_furniture(self, name: str, image: str | None = None) -> Furniture:
        with get_session() as s:
            f = s.scalar(select(Furniture).where(Furniture.name == name).limit(1))
            if f:
                s.expunge(f)
                return f
        return self.add_furniture(name, image)

    def list_pets(self) -> list[Pet]:
        with get_session() as s:
            rows = list(s.scalars(select(Pet).order_by(Pet.id)))
            for r in rows:
                s.expunge(r)
            return rows

    def list_furniture(self) -> list[Furniture]:
        with get_session() as s:
            rows = list(s.scalars(select(Furniture).order_by(Furniture.id)))
            for r in rows:
                s.expunge(r)
            return rows
