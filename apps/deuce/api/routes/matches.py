"""Match lifecycle hook route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from deuce.database.db import get_db_session
from deuce.models.schemas import MatchEventResponse
from deuce.services import match_events
from deuce.services.match_result_service import MatchNotCompletedError, MatchNotFoundError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/matches/{match_id}/completed", response_model=MatchEventResponse)
async def match_completed(match_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Record a completed match: create its results and queue a standings recalculation.

    Returns:
        dict: Number of results created and the recalculation job ID
    """
    try:
        return await match_events.on_match_completed(session, match_id)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except MatchNotCompletedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error recording completed match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error recording completed match: {str(e)}")


@router.post("/api/matches/{match_id}/voided", response_model=MatchEventResponse)
async def match_voided(match_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Void a match: delete its results and queue a standings recalculation.

    Returns:
        dict: Number of results deleted and the recalculation job ID
    """
    try:
        return await match_events.on_match_voided(session, match_id)
    except MatchNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error voiding match {match_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error voiding match: {str(e)}")
