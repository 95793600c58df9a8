"""Service dependencies for API routes."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.database import get_db
from cluehunt.services.clue_content import ClueContentService
from cluehunt.services.clue_generator import ChatCompletionClueGenerator, ClueGenerator
from cluehunt.services.region_assigner import RegionAssigner
from cluehunt.services.region_store import SqlAlchemyStore


def get_clue_generator() -> ClueGenerator:
    return ChatCompletionClueGenerator()


def get_clue_content(
    db: AsyncSession = Depends(get_db),
    generator: ClueGenerator = Depends(get_clue_generator),
) -> ClueContentService:
    return ClueContentService(db, generator)


def get_region_assigner(
    db: AsyncSession = Depends(get_db),
    content: ClueContentService = Depends(get_clue_content),
) -> RegionAssigner:
    store = SqlAlchemyStore(db)
    return RegionAssigner(store, store, content)
