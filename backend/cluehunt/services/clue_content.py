"""Generated hunts and clues for clue sets."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cluehunt.config import get_settings
from cluehunt.models.clue_set import Clue, ClueSet, Hunt
from cluehunt.services.clue_generator import ClueGenerator, ClueRequest
from cluehunt.services.errors import ClueGenerationError

settings = get_settings()
logger = logging.getLogger("cluehunt.clues")


class ContentProvider(ABC):
    """Source of clue content for a clue set."""

    @abstractmethod
    async def has_content(self, clue_set: ClueSet) -> bool:
        """True once clues for the clue set have been generated and stored.

        Raises ClueGenerationError when the lookup itself fails.
        """
        ...

    @abstractmethod
    async def generate(
        self,
        clue_set: ClueSet,
        *,
        level: Optional[int] = None,
        stage: Optional[int] = None,
    ) -> Hunt:
        """Generate and store clues. Raises ClueGenerationError on any failure."""
        ...


class ClueContentService(ContentProvider):
    """Stores generator output as a hunt with numbered clues."""

    def __init__(self, db: AsyncSession, generator: ClueGenerator):
        self.db = db
        self.generator = generator

    async def has_content(self, clue_set: ClueSet) -> bool:
        try:
            result = await self.db.execute(
                select(func.count(Clue.id))
                .join(Hunt, Clue.hunt_id == Hunt.id)
                .where(Hunt.clue_set_id == clue_set.id)
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up clues for clue set {clue_set.id}: {e}")
            raise ClueGenerationError("Failed to look up stored clues") from e
        return result.scalar_one() > 0

    async def get_hunts(self, clue_set: ClueSet) -> list[Hunt]:
        result = await self.db.execute(
            select(Hunt)
            .where(Hunt.clue_set_id == clue_set.id)
            .options(selectinload(Hunt.clues))
            .order_by(Hunt.hunt_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _next_hunt_number(self, clue_set: ClueSet) -> int:
        result = await self.db.execute(
            select(func.max(Hunt.hunt_number)).where(Hunt.clue_set_id == clue_set.id)
        )
        current = result.scalar_one_or_none()
        return (current or 0) + 1

    async def _reset(self, clue_set: ClueSet) -> None:
        try:
            await self.db.rollback()
            # rollback expires loaded objects; callers keep using clue_set
            await self.db.refresh(clue_set)
        except SQLAlchemyError as e:
            raise ClueGenerationError("Failed to reset session after clue storage error") from e

    async def generate(
        self,
        clue_set: ClueSet,
        *,
        level: Optional[int] = None,
        stage: Optional[int] = None,
    ) -> Hunt:
        level = level or clue_set.level_number or 1
        stage = stage or clue_set.stage_number or 1
        request = ClueRequest(
            location_name=clue_set.name,
            center=clue_set.center,
            radius_km=clue_set.radius_km,
            phase=clue_set.phase,
            level=level,
            stage=stage,
            clues_count=settings.CLUES_PER_REGION,
        )
        content = await self.generator.generate(request)

        try:
            hunt = Hunt(
                clue_set_id=clue_set.id,
                hunt_number=await self._next_hunt_number(clue_set),
                name=f"{clue_set.name} Hunt",
                description=f"Hunt for {clue_set.name} (Level {level}, Stage {stage})",
                level_number=level,
                stage_number=stage,
            )
            self.db.add(hunt)
            await self.db.flush()

            for number, generated in enumerate(content.clues, start=1):
                self.db.add(
                    Clue(
                        hunt_id=hunt.id,
                        clue_number=number,
                        question=generated.question,
                        answer=generated.answer,
                        hint=generated.hint,
                        type=generated.type,
                        ai_generated=True,
                        is_active=True,
                    )
                )
            if content.main_subject:
                clue_set.main_subject = content.main_subject
            await self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store generated clues for clue set {clue_set.id}: {e}")
            await self._reset(clue_set)
            raise ClueGenerationError("Failed to store generated clues") from e

        logger.info(f"Stored {len(content.clues)} clues for clue set {clue_set.id}")
        return hunt
