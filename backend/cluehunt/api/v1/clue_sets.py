"""Clue set API endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cluehunt.api.v1.deps import get_clue_content, get_region_assigner
from cluehunt.auth.jwt import get_current_active_admin, get_current_user
from cluehunt.database import get_db
from cluehunt.models.clue_set import ClueSet
from cluehunt.models.game import Game, Participant
from cluehunt.models.user import User
from cluehunt.schemas.clue_set import (
    AssignmentResponse,
    ClueSetListItem,
    ClueSetListResponse,
    ClueSetResponse,
    Coordinate,
    HuntListResponse,
    HuntResponse,
    PreviewResponse,
)
from cluehunt.services.clue_content import ClueContentService
from cluehunt.services.errors import AssignmentError
from cluehunt.services.region_assigner import (
    CONTENT_UNAVAILABLE,
    RegionAssigner,
    requires_different_region,
)
from cluehunt.utils.geo import haversine_distance_km

logger = logging.getLogger("cluehunt.api")

ASSIGNMENT_FAILED = {"error": "assignment_failed", "message": "Could not place you in a game area"}
CLUES_UNAVAILABLE = {"error": "clues_unavailable", "message": "No clues available yet for your area"}

router = APIRouter(prefix="/games/{game_id}/clue-sets", tags=["Clue Sets"])


async def get_game_or_404(db: AsyncSession, game_id: UUID) -> Game:
    game = await db.get(Game, game_id)
    if not game or not game.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Game not found",
        )
    return game


async def get_participant(db: AsyncSession, game_id: UUID, user: User) -> Participant | None:
    result = await db.execute(
        select(Participant).where(
            Participant.game_id == game_id,
            Participant.user_id == user.id,
        )
    )
    return result.scalar_one_or_none()


async def get_participant_or_404(db: AsyncSession, game_id: UUID, user: User) -> Participant:
    participant = await get_participant(db, game_id, user)
    if not participant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Participant not found in this game",
        )
    return participant


@router.post("/assign", response_model=AssignmentResponse)
async def assign_clue_set(
    game_id: UUID,
    data: Coordinate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assigner: RegionAssigner = Depends(get_region_assigner),
):
    """Place the caller in the clue set covering their location, creating one if needed."""
    game = await get_game_or_404(db, game_id)
    participant = await get_participant_or_404(db, game.id, current_user)
    # read before assign; a rollback expires loaded rows
    participant_id = participant.id
    level, stage = participant.current_level, participant.current_stage

    try:
        assignment = await assigner.assign(
            game.id,
            participant_id,
            data,
            phase=game.phase,
            level=level,
            stage=stage,
            city=participant.registration_city,
            different_region=requires_different_region(level, stage),
        )
    except AssignmentError as e:
        raise HTTPException(status_code=e.status_code, detail=e.payload)
    except SQLAlchemyError as e:
        logger.error(f"Clue set assignment failed for participant {participant_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ASSIGNMENT_FAILED,
        )

    message = None
    if assignment.content_status == CONTENT_UNAVAILABLE:
        message = CLUES_UNAVAILABLE["message"]

    return AssignmentResponse(
        result=assignment.result,
        clue_set=ClueSetResponse.from_model(assignment.region),
        distance_km=round(assignment.distance_km, 3),
        relocation_attempts=assignment.relocation_attempts,
        content_status=assignment.content_status,
        message=message,
    )


@router.post("/preview", response_model=PreviewResponse)
async def preview_clue_set(
    game_id: UUID,
    data: Coordinate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assigner: RegionAssigner = Depends(get_region_assigner),
):
    """Report which clue set a location falls in, without assigning anything."""
    game = await get_game_or_404(db, game_id)
    clue_set = await assigner.find_containing(game.id, data)

    if clue_set is None:
        return PreviewResponse(
            result="would_create_new",
            location=data,
            message="No existing clue set found. Would create new one.",
        )

    distance = haversine_distance_km((data.lat, data.lng), clue_set.center)
    return PreviewResponse(
        result="existing_clue_set",
        clue_set=ClueSetResponse.from_model(clue_set),
        distance_km=round(distance, 3),
    )


@router.get("", response_model=ClueSetListResponse)
async def list_clue_sets(
    game_id: UUID,
    current_user: User = Depends(get_current_active_admin),
    db: AsyncSession = Depends(get_db),
):
    """List active clue sets of a game with their participants."""
    game = await get_game_or_404(db, game_id)
    result = await db.execute(
        select(ClueSet)
        .where(ClueSet.game_id == game.id, ClueSet.is_active.is_(True))
        .options(selectinload(ClueSet.participants).selectinload(Participant.user))
        .order_by(ClueSet.created_at, ClueSet.id)
    )
    clue_sets = result.scalars().all()

    items = []
    for clue_set in clue_sets:
        base = ClueSetResponse.from_model(clue_set)
        items.append(
            ClueSetListItem(
                **base.model_dump(),
                participant_count=len(clue_set.participants),
                participants=[p.user.username for p in clue_set.participants if p.user],
            )
        )
    return ClueSetListResponse(clue_sets=items)


@router.get("/{clue_set_id}/clues", response_model=HuntListResponse)
async def get_clue_set_clues(
    game_id: UUID,
    clue_set_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assigner: RegionAssigner = Depends(get_region_assigner),
    content: ClueContentService = Depends(get_clue_content),
):
    """Hunts and clues of a clue set, generating them first if there are none yet."""
    game = await get_game_or_404(db, game_id)
    participant = await get_participant(db, game.id, current_user)
    if participant is None and current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Participant not found in this game",
        )

    clue_set = await db.get(ClueSet, clue_set_id)
    if not clue_set or clue_set.game_id != game.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Clue set not found",
        )

    content_status = await assigner.ensure_content(
        clue_set,
        level=participant.current_level if participant else None,
        stage=participant.current_stage if participant else None,
    )
    if content_status == CONTENT_UNAVAILABLE:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=CLUES_UNAVAILABLE,
        )

    hunts = await content.get_hunts(clue_set)
    return HuntListResponse(
        clue_set=ClueSetResponse.from_model(clue_set),
        hunts=[HuntResponse.model_validate(hunt) for hunt in hunts],
    )
