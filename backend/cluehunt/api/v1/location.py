"""Participant location endpoint."""
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from cluehunt.api.v1.clue_sets import get_game_or_404, get_participant
from cluehunt.auth.jwt import get_current_user
from cluehunt.database import get_db
from cluehunt.models.user import User
from cluehunt.schemas.clue_set import Coordinate, LocationValidationResponse
from cluehunt.utils.audit import log_audit_event

router = APIRouter(prefix="/games/{game_id}/location", tags=["Location"])


@router.post("", response_model=LocationValidationResponse)
async def update_location(
    game_id: UUID,
    data: Coordinate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Check a location against the game's play area and store it as the participant's latest."""
    game = await get_game_or_404(db, game_id)
    participant = await get_participant(db, game.id, current_user)
    if not participant:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a participant in this game",
        )

    area = game.region_label or game.title
    if game.has_bounds:
        is_valid = (
            game.min_latitude <= data.lat <= game.max_latitude
            and game.min_longitude <= data.lng <= game.max_longitude
        )
        if is_valid:
            message = f"Location validated for {area}"
        else:
            message = f"Location outside game region. You must be in {area} to participate."
    else:
        is_valid = True
        message = "Location accepted (geographic bounds not yet configured)"

    participant.current_latitude = data.lat
    participant.current_longitude = data.lng
    participant.last_location_update = datetime.utcnow()
    await db.commit()

    log_audit_event(
        "participant.location",
        game_id=game.id,
        participant_id=participant.id,
        actor=current_user,
        details={
            "location": [data.lat, data.lng],
            "is_valid": is_valid,
        },
    )

    return LocationValidationResponse(
        is_valid_location=is_valid,
        message=message,
        game_id=game.id,
        location=data,
    )
