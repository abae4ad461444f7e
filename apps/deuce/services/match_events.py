"""
Hooks called by the match lifecycle when a match is completed or voided.
"""

import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from deuce.database.models import Match, MatchStatus
from deuce.services.match_result_service import (
    MatchNotFoundError,
    create_match_results,
    delete_match_results,
)
from deuce.services.recalc_queue import CALC_TYPE_DIVISION, get_recalculation_queue

logger = logging.getLogger(__name__)


async def _enqueue_division_recalculation(session: AsyncSession, match: Match) -> Optional[int]:
    if match.division_id is None or match.season_id is None:
        return None
    queue = get_recalculation_queue()
    return await queue.enqueue_recalculation(
        session, CALC_TYPE_DIVISION, match.division_id, match.season_id
    )


async def on_match_completed(session: AsyncSession, match_id: int) -> Dict:
    """
    Create the match's results and queue a recalculation of its division+season.

    Raises:
        MatchNotFoundError: If the match does not exist
        MatchNotCompletedError: If the match is not completed
        InvalidTeamAssignmentError, InvalidScoreError: If the match cannot be scored
    """
    try:
        rows = await create_match_results(session, match_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    match = await session.get(Match, match_id)
    job_id = await _enqueue_division_recalculation(session, match)
    logger.info(f"Match {match_id} completed: {len(rows)} results created, recalculation job {job_id}")

    return {"match_id": match_id, "results_created": len(rows), "job_id": job_id}


async def on_match_voided(session: AsyncSession, match_id: int) -> Dict:
    """
    Mark a match voided, delete its results and queue a recalculation.

    Raises:
        MatchNotFoundError: If the match does not exist
    """
    match = await session.get(Match, match_id)
    if not match:
        raise MatchNotFoundError(f"Match {match_id} not found")

    try:
        match.status = MatchStatus.VOIDED
        deleted = await delete_match_results(session, match_id)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    job_id = await _enqueue_division_recalculation(session, match)
    logger.info(f"Match {match_id} voided: {deleted} results deleted, recalculation job {job_id}")

    return {"match_id": match_id, "results_deleted": deleted, "job_id": job_id}
