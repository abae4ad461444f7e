"""Standings recalculation and health check route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from deuce.api.routes import limiter
from deuce.database.db import get_db_session
from deuce.models.schemas import RecalculateRequest, RecalculateResponse
from deuce.services.recalc_queue import CALC_TYPE_ALL, CALC_TYPE_DIVISION, get_recalculation_queue

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/admin/standings/recalculate", response_model=RecalculateResponse)
@limiter.limit("10/minute")
async def recalculate_standings(
    request: Request,
    body: RecalculateRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """
    Queue a standings recalculation job.

    Request body:
        {
            "division_id": 12,  // With season_id: recalculates one division+season
            "season_id": 3      // Omit both to recalculate every division
        }

    Returns:
        dict: Job ID and status
    """
    calc_type = CALC_TYPE_DIVISION if body.division_id is not None else CALC_TYPE_ALL
    try:
        queue = get_recalculation_queue()
        job_id = await queue.enqueue_recalculation(
            session, calc_type, body.division_id, body.season_id
        )
        return {
            "job_id": job_id,
            "status": "queued",
            "calc_type": calc_type,
            "division_id": body.division_id,
            "season_id": body.season_id,
        }
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error queueing standings recalculation: {str(e)}")


@router.get("/api/admin/standings/recalculate/status")
async def get_recalculation_status(session: AsyncSession = Depends(get_db_session)):
    """
    Get current queue status and recent jobs.

    Returns:
        dict: Queue status with running, pending, and recent jobs
    """
    try:
        queue = get_recalculation_queue()
        return await queue.get_queue_status(session)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting queue status: {str(e)}")


@router.get("/api/admin/standings/recalculate/status/{job_id}")
async def get_job_status(job_id: int, session: AsyncSession = Depends(get_db_session)):
    """
    Get status of a specific recalculation job.

    Args:
        job_id: Job ID

    Returns:
        dict: Job status
    """
    try:
        queue = get_recalculation_queue()
        job_status = await queue.get_job_status(session, job_id)

        if not job_status:
            raise HTTPException(status_code=404, detail=f"Job {job_id} not found")

        return job_status
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Error getting job status: {str(e)}")


@router.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}
