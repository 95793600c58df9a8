"""Game and participant models."""
import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cluehunt.database import Base


class Game(Base):
    """Scavenger hunt game."""

    __tablename__ = "games"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    region_label: Mapped[str | None] = mapped_column(String(100), nullable=True)  # "Chicago", etc.
    phase: Mapped[str] = mapped_column(String(20), default="PHASE_1")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Optional play area; unset means any location is accepted
    min_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    min_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Relationships
    participants: Mapped[list["Participant"]] = relationship(
        "Participant", back_populates="game", cascade="all, delete-orphan"
    )
    clue_sets: Mapped[list["ClueSet"]] = relationship(
        "ClueSet", back_populates="game", cascade="all, delete-orphan"
    )

    @property
    def has_bounds(self) -> bool:
        return None not in (
            self.min_latitude, self.max_latitude, self.min_longitude, self.max_longitude
        )


class Participant(Base):
    """A user's membership in a game, with their current clue set and position."""

    __tablename__ = "participants"
    __table_args__ = (UniqueConstraint("user_id", "game_id", name="uq_participants_user_game"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    game_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("games.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE")
    )
    clue_set_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("clue_sets.id", ondelete="SET NULL"), nullable=True
    )

    current_latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_location_update: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    current_level: Mapped[int] = mapped_column(Integer, default=1)
    current_stage: Mapped[int] = mapped_column(Integer, default=1)
    registration_city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    game: Mapped["Game"] = relationship("Game", back_populates="participants")
    user: Mapped["User"] = relationship("User", back_populates="participations")
    clue_set: Mapped[Optional["ClueSet"]] = relationship("ClueSet", back_populates="participants")
