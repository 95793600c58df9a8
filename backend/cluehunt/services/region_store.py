"""Clue set and participant stores.

Defines the interfaces the RegionAssigner works against. Consumers in the API
should use SqlAlchemyStore, which implements both over one AsyncSession so
that a clue set insert and the participant pointer update commit together.
"""
import asyncio
import weakref
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.models.clue_set import ClueSet
from cluehunt.models.game import Participant
from cluehunt.services.errors import ParticipantNotFoundError
from cluehunt.utils.geo import BoundingBox, Point


@dataclass
class RegionMetadata:
    """Descriptive fields stored with a new clue set."""
    name: str
    description: Optional[str] = None
    phase: str = "PHASE_1"
    level_number: Optional[int] = None
    stage_number: Optional[int] = None
    city: Optional[str] = None


class LockRegistry:
    """Process-wide asyncio locks keyed by id.

    Locks are held weakly: one stays registered while a caller holds or waits
    on it and is dropped once no coroutine references it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, key) -> asyncio.Lock:
        key = str(key)
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock


game_locks = LockRegistry()
content_locks = LockRegistry()


class RegionStore(ABC):
    """Persistent clue sets keyed by game."""

    @abstractmethod
    async def find_by_bounding_box(self, game_id, point: Point) -> list[ClueSet]:
        """Active clue sets of the game whose bounding box contains the point.

        Results are ordered by creation time.
        """
        ...

    @abstractmethod
    async def find_all_active(self, game_id) -> list[ClueSet]:
        """All active clue sets of the game, ordered by creation time."""
        ...

    @abstractmethod
    async def get(self, region_id) -> Optional[ClueSet]:
        ...

    @abstractmethod
    async def create(
        self,
        game_id,
        center: Point,
        radius_km: float,
        bbox: BoundingBox,
        metadata: RegionMetadata,
    ) -> ClueSet:
        """Insert a clue set. Becomes durable when the enclosing transaction commits."""
        ...

    @abstractmethod
    def atomic(self):
        """Async context manager: commit writes on success, roll back on error."""
        ...

    @abstractmethod
    def exclusive(self, game_id):
        """Like ``atomic`` but also serializes clue set creation for one game."""
        ...


class ParticipantStore(ABC):
    """Participant records updated by clue set assignment."""

    @abstractmethod
    async def update_region_assignment(self, participant_id, region_id, point: Point) -> None:
        """Point the participant at a clue set and record their latest coordinate."""
        ...


class SqlAlchemyStore(RegionStore, ParticipantStore):
    """Region and participant store backed by an AsyncSession."""

    def __init__(self, db: AsyncSession, locks: LockRegistry = game_locks):
        self.db = db
        self.locks = locks

    async def find_by_bounding_box(self, game_id, point: Point) -> list[ClueSet]:
        lat, lng = point
        result = await self.db.execute(
            select(ClueSet)
            .where(
                ClueSet.game_id == game_id,
                ClueSet.is_active.is_(True),
                ClueSet.min_latitude <= lat,
                ClueSet.max_latitude >= lat,
                ClueSet.min_longitude <= lng,
                ClueSet.max_longitude >= lng,
            )
            .order_by(ClueSet.created_at, ClueSet.id)
        )
        return list(result.scalars().all())

    async def find_all_active(self, game_id) -> list[ClueSet]:
        result = await self.db.execute(
            select(ClueSet)
            .where(ClueSet.game_id == game_id, ClueSet.is_active.is_(True))
            .order_by(ClueSet.created_at, ClueSet.id)
        )
        return list(result.scalars().all())

    async def get(self, region_id) -> Optional[ClueSet]:
        return await self.db.get(ClueSet, region_id)

    async def create(
        self,
        game_id,
        center: Point,
        radius_km: float,
        bbox: BoundingBox,
        metadata: RegionMetadata,
    ) -> ClueSet:
        lat, lng = center
        clue_set = ClueSet(
            game_id=game_id,
            name=metadata.name,
            description=metadata.description,
            center_latitude=lat,
            center_longitude=lng,
            radius_km=radius_km,
            min_latitude=bbox.min_lat,
            max_latitude=bbox.max_lat,
            min_longitude=bbox.min_lng,
            max_longitude=bbox.max_lng,
            phase=metadata.phase,
            level_number=metadata.level_number,
            stage_number=metadata.stage_number,
            city=metadata.city,
            is_active=True,
        )
        self.db.add(clue_set)
        await self.db.flush()
        return clue_set

    async def update_region_assignment(self, participant_id, region_id, point: Point) -> None:
        participant = await self.db.get(Participant, participant_id)
        if participant is None:
            raise ParticipantNotFoundError(f"Participant {participant_id} not found")
        participant.clue_set_id = region_id
        participant.current_latitude, participant.current_longitude = point
        participant.last_location_update = datetime.utcnow()
        await self.db.flush()

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        try:
            yield
            await self.db.commit()
        except BaseException:
            await self.db.rollback()
            raise

    @asynccontextmanager
    async def exclusive(self, game_id) -> AsyncIterator[None]:
        async with self.locks.get(game_id):
            async with self.atomic():
                if self.db.get_bind().dialect.name == "postgresql":
                    # Held until commit/rollback; covers other API processes
                    await self.db.execute(
                        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
                        {"key": str(game_id)},
                    )
                yield
