"""Division standings read route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from deuce.database.db import get_db_session
from deuce.models.schemas import Best6CompositionResponse, StandingResponse
from deuce.services import standings_service
from deuce.services.match_result_service import get_season_config
from deuce.utils.constants import STANDINGS_UNAVAILABLE_MESSAGE

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/standings/divisions/{division_id}", response_model=List[StandingResponse])
async def get_division_standings(
    division_id: int,
    season_id: int = Query(...),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get ranked standings for a division+season.

    Returns:
        list: Standings rows in rank order (empty if nothing is ranked yet)
    """
    try:
        return await standings_service.get_division_standings(session, division_id, season_id)
    except Exception as e:
        logger.error(
            f"Error loading standings for division {division_id}, season {season_id}: {e}",
            exc_info=True,
        )
        raise HTTPException(status_code=503, detail=STANDINGS_UNAVAILABLE_MESSAGE)


@router.get(
    "/api/standings/divisions/{division_id}/players/{player_id}",
    response_model=StandingResponse,
)
async def get_player_standing(
    division_id: int,
    player_id: int,
    season_id: int = Query(...),
    session: AsyncSession = Depends(get_db_session),
):
    """Get one player's standing in a division+season."""
    try:
        standing = await standings_service.get_player_standing(
            session, division_id, season_id, player_id
        )
    except Exception as e:
        logger.error(
            f"Error loading standing of player {player_id} in division {division_id}: {e}",
            exc_info=True,
        )
        raise HTTPException(status_code=503, detail=STANDINGS_UNAVAILABLE_MESSAGE)

    if not standing:
        raise HTTPException(status_code=404, detail="Standing not found")
    return standing


@router.get(
    "/api/standings/divisions/{division_id}/players/{player_id}/best6",
    response_model=Best6CompositionResponse,
)
async def get_best6_composition(
    division_id: int,
    player_id: int,
    season_id: int = Query(...),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get a player's Best 6 composition with summary figures.

    Returns:
        dict: Totals, every result with its counted flag, and a summary
    """
    try:
        config = await get_season_config(session, season_id)
        composition = await standings_service.get_best6_composition(
            session, player_id, division_id, season_id
        )
        summary = standings_service.summarize_composition(composition, config)
    except Exception as e:
        logger.error(
            f"Error loading Best 6 of player {player_id} in division {division_id}: {e}",
            exc_info=True,
        )
        raise HTTPException(status_code=503, detail=STANDINGS_UNAVAILABLE_MESSAGE)

    return {**composition, "summary": summary}
