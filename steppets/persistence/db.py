# steppets/persistence/db.py
# -*- coding: utf-8 -*-
from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import sessionmaker
from contextlib import contextmanager
import os

DB_URL = os.getenv("DB_URL", "sqlite:///steppets.db")

engine = create_engine(DB_URL, echo=False, future=True)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,  # les objets restent lisibles après commit (détachés)
    future=True,
)

# Dialectes supportant INSERT ... ON CONFLICT
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@contextmanager
def get_session():
    """Contexte gérant automatiquement commit/rollback."""
    s = SessionLocal()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def init_db(Base, drop_and_recreate=False):
    """Crée les tables (et les recrée si demandé)."""
    if drop_and_recreate:
        Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


def upsert(s, model, values: dict, conflict: list[str], update: list[str]) -> None:
    """
    INSERT ... ON CONFLICT (conflict) DO UPDATE SET (update).

    La cible de conflit doit correspondre à une contrainte d'unicité du modèle :
    c'est elle (et non un SELECT préalable) qui garantit une seule ligne par clé,
    même si deux écritures arrivent en même temps.
    """
    dialect = s.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Upsert non supporté pour le dialecte {dialect}")

    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=conflict,
        set_={name: stmt.excluded[name] for name in update},
    )
    s.execute(stmt)
