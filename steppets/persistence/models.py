# steppets/persistence/models.py
# -*- coding: utf-8 -*-
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Date, DateTime, Boolean, ForeignKey, UniqueConstraint, func
import datetime as dt

class Base(DeclarativeBase):
    pass

class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    step_goal: Mapped[int] = mapped_column(Integer, default=1000, nullable=False)
    step_source: Mapped[str] = mapped_column(String(32), default="pedometer", nullable=False)

    # Cache d'affichage : le gating recalcule toujours depuis goal_completions
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_streak_update: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    last_furniture_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=func.now(), nullable=False)

class DailySteps(Base):
    __tablename__ = "daily_steps"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_daily_steps_user_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True, nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    step_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    goal_reached: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, default=func.now(), nullable=False)

class GoalCompletion(Base):
    __tablename__ = "goal_completions"
    __table_args__ = (UniqueConstraint("user_id", "completion_date", name="uq_completion_user_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True, nullable=False)
    completion_date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    steps_achieved: Mapped[int] = mapped_column(Integer, nullable=False)
    goal_steps: Mapped[int] = mapped_column(Integer, nullable=False)
    goal_met: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

class Pet(Base):
    __tablename__ = "pets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    image: Mapped[str | None] = mapped_column(String(512), nullable=True)

class Furniture(Base):
    __tablename__ = "furniture"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    image: Mapped[str | None] = mapped_column(String(512), nullable=True)

class UserPet(Base):
    __tablename__ = "users_pets"
    __table_args__ = (UniqueConstraint("user_id", "award_window", name="uq_pet_award_window"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True, nullable=False)
    pet_id: Mapped[int] = mapped_column(ForeignKey("pets.id"), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=func.now(), nullable=False)
    earned_via_streak: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    streak_requirement: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    award_window: Mapped[str] = mapped_column(String(32), nullable=False)

    # Champs cosmétiques, propriété de l'UI
    custom_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    position_x: Mapped[float | None] = mapped_column(nullable=True)
    position_y: Mapped[float | None] = mapped_column(nullable=True)

    pet = relationship("Pet", lazy="joined")

class UserFurniture(Base):
    __tablename__ = "users_furniture"
    __table_args__ = (UniqueConstraint("user_id", "award_window", name="uq_furniture_award_window"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), index=True, nullable=False)
    furniture_id: Mapped[int] = mapped_column(ForeignKey("furniture.id"), nullable=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=func.now(), nullable=False)
    award_window: Mapped[str] = mapped_column(String(32), nullable=False)

    user_pet_id: Mapped[int | None] = mapped_column(ForeignKey("users_pets.id"), nullable=True)
    position_x: Mapped[float | None] = mapped_column(nullable=True)
    position_y: Mapped[float | None] = mapped_column(nullable=True)

    furniture = relationship("Furniture", lazy="joined")

class StepSnapshot(Base):
    """Dernier état persistant du podomètre local : {steps, date, health_snapshot}."""
    __tablename__ = "step_snapshots"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    steps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    snapshot_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    # NULL = pas de paire (compteur, santé) cohérente à cet instant
    health_snapshot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    saved_at: Mapped[dt.datetime] = mapped_column(DateTime, default=func.now(), nullable=False)
