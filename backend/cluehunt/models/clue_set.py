"""Clue set (region), hunt and clue models."""
import uuid
from datetime import datetime
from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cluehunt.database import Base


class ClueSet(Base):
    """Circular region of a game that scopes which clues a participant sees.

    Geometry is fixed at creation; the bounding box columns are derived from
    the center and radius and only serve as a pre-filter.
    """

    __tablename__ = "clue_sets"
    __table_args__ = (
        Index("ix_clue_sets_game_active", "game_id", "is_active"),
        Index(
            "ix_clue_sets_bbox",
            "min_latitude", "max_latitude", "min_longitude", "max_longitude",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    game_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("games.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    main_subject: Mapped[str | None] = mapped_column(String(255), nullable=True)

    center_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    center_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    radius_km: Mapped[float] = mapped_column(Float, nullable=False)
    min_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    max_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    min_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    max_longitude: Mapped[float] = mapped_column(Float, nullable=False)

    phase: Mapped[str] = mapped_column(String(20), default="PHASE_1")
    level_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stage_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    game: Mapped["Game"] = relationship("Game", back_populates="clue_sets")
    participants: Mapped[list["Participant"]] = relationship(
        "Participant", back_populates="clue_set"
    )
    hunts: Mapped[list["Hunt"]] = relationship(
        "Hunt", back_populates="clue_set", cascade="all, delete-orphan"
    )

    @property
    def center(self) -> tuple[float, float]:
        return (self.center_latitude, self.center_longitude)


class Hunt(Base):
    """Ordered group of clues generated for a clue set."""

    __tablename__ = "hunts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    clue_set_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("clue_sets.id", ondelete="CASCADE"), index=True
    )
    hunt_number: Mapped[int] = mapped_column(Integer, default=1)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    level_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stage_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    clue_set: Mapped["ClueSet"] = relationship("ClueSet", back_populates="hunts")
    clues: Mapped[list["Clue"]] = relationship(
        "Clue",
        back_populates="hunt",
        cascade="all, delete-orphan",
        order_by="Clue.clue_number",
    )


class Clue(Base):
    """Single clue in a hunt."""

    __tablename__ = "clues"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    hunt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("hunts.id", ondelete="CASCADE"), index=True
    )
    clue_number: Mapped[int] = mapped_column(Integer, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    hint: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(20), default="TEXT_ANSWER")  # TEXT_ANSWER, PHOTO_UPLOAD, COMBINED
    ai_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    hunt: Mapped["Hunt"] = relationship("Hunt", back_populates="clues")
