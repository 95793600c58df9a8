"""API v1 router aggregation."""
from fastapi import APIRouter

from cluehunt.api.v1.clue_sets import router as clue_sets_router
from cluehunt.api.v1.location import router as location_router

router = APIRouter()

router.include_router(clue_sets_router)
router.include_router(location_router)
