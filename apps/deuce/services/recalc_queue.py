"""
Standings recalculation queue with per-key deduplication.

Handles async standings recalculation jobs with a database-backed queue that:
- Deduplicates concurrent requests for the same division+season
- Persists across server restarts
- Tracks job status

Jobs for different keys run independently; a job for a key that is already
running waits as a single pending follow-up.
"""

import asyncio
import logging
from typing import Optional, Dict, List, Set, Callable, Awaitable
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, and_
from deuce.database.models import StandingsRecalculationJob, RecalculationJobStatus
from deuce.database import db
from deuce.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

CALC_TYPE_DIVISION = "division"
CALC_TYPE_ALL = "all"
CALC_TYPES = (CALC_TYPE_DIVISION, CALC_TYPE_ALL)


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _job_key(job: StandingsRecalculationJob):
    return (job.calc_type, job.division_id, job.season_id)


class StandingsRecalculationQueue:
    """Database-backed queue for standings recalculation jobs."""

    def __init__(self):
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()
        self._division_calc_callback: Optional[Callable[[AsyncSession, int, int], Awaitable[Dict]]] = None
        self._all_calc_callback: Optional[Callable[[Callable], Awaitable[Dict]]] = None

    async def enqueue_recalculation(
        self,
        session: AsyncSession,
        calc_type: str,
        division_id: Optional[int] = None,
        season_id: Optional[int] = None,
    ) -> int:
        """
        Enqueue a standings recalculation job.

        Deduplication logic:
        - If the same (calc_type, division_id, season_id) is already pending, return that job_id
        - If it is running, queue one pending follow-up so newer results are picked up
        - Otherwise, mark a new job running and start it immediately

        Args:
            session: Database session
            calc_type: 'division' or 'all'
            division_id: Division ID (division recalculations only)
            season_id: Season ID (division recalculations only)

        Returns:
            Job ID

        Raises:
            ValueError: If calc_type is unknown or a division job lacks its key
        """
        if calc_type not in CALC_TYPES:
            raise ValueError(f"Unknown calc_type: {calc_type}")
        if calc_type == CALC_TYPE_DIVISION and (division_id is None or season_id is None):
            raise ValueError("division_id and season_id are required for division recalculation")
        if calc_type == CALC_TYPE_ALL:
            division_id = season_id = None

        queued = await self._find_job(
            session, calc_type, division_id, season_id, RecalculationJobStatus.PENDING
        )
        if queued:
            return queued.id

        running = await self._find_job(
            session, calc_type, division_id, season_id, RecalculationJobStatus.RUNNING
        )
        if running:
            return await self._create_job(
                session, calc_type, division_id, season_id, RecalculationJobStatus.PENDING
            )

        job_id = await self._create_job(
            session, calc_type, division_id, season_id, RecalculationJobStatus.RUNNING
        )
        self._start_task(job_id)
        return job_id

    def _start_task(self, job_id: int) -> None:
        # Keep a reference so the task is not garbage collected mid-run
        task = asyncio.create_task(self._run_calculation(job_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _find_job(
        self,
        session: AsyncSession,
        calc_type: str,
        division_id: Optional[int],
        season_id: Optional[int],
        status: RecalculationJobStatus,
    ) -> Optional[StandingsRecalculationJob]:
        """Find the oldest job with the given key and status."""
        conditions = [
            StandingsRecalculationJob.status == status,
            StandingsRecalculationJob.calc_type == calc_type,
        ]
        if division_id is None:
            conditions.append(StandingsRecalculationJob.division_id.is_(None))
        else:
            conditions.append(StandingsRecalculationJob.division_id == division_id)
        if season_id is None:
            conditions.append(StandingsRecalculationJob.season_id.is_(None))
        else:
            conditions.append(StandingsRecalculationJob.season_id == season_id)

        result = await session.execute(
            select(StandingsRecalculationJob)
            .where(and_(*conditions))
            .order_by(StandingsRecalculationJob.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _create_job(
        self,
        session: AsyncSession,
        calc_type: str,
        division_id: Optional[int],
        season_id: Optional[int],
        status: RecalculationJobStatus,
    ) -> int:
        """Create a job and return its ID."""
        job = StandingsRecalculationJob(
            calc_type=calc_type,
            division_id=division_id,
            season_id=season_id,
            status=status,
            started_at=utcnow() if status == RecalculationJobStatus.RUNNING else None,
        )
        session.add(job)
        await session.commit()
        await session.refresh(job)
        return job.id

    async def _get_jobs(
        self, session: AsyncSession, status: RecalculationJobStatus
    ) -> List[StandingsRecalculationJob]:
        result = await session.execute(
            select(StandingsRecalculationJob)
            .where(StandingsRecalculationJob.status == status)
            .order_by(StandingsRecalculationJob.id.asc())
        )
        return list(result.scalars().all())

    async def _get_next_runnable_job(self, session: AsyncSession) -> Optional[StandingsRecalculationJob]:
        """Oldest pending job whose key is not currently running."""
        running_keys = {_job_key(j) for j in await self._get_jobs(session, RecalculationJobStatus.RUNNING)}
        for job in await self._get_jobs(session, RecalculationJobStatus.PENDING):
            if _job_key(job) not in running_keys:
                return job
        return None

    def register_calculation_callbacks(
        self,
        division_calc_callback: Callable[[AsyncSession, int, int], Awaitable[Dict]],
        all_calc_callback: Callable[[Callable], Awaitable[Dict]],
    ) -> None:
        """
        Register callbacks for the recalculation functions.

        This method must be called before any jobs can be executed.
        Typically called during application startup.

        Args:
            division_calc_callback: Async function taking a session, division_id and season_id
            all_calc_callback: Async function taking a session factory

        Raises:
            TypeError: If callbacks are not callable
        """
        if not callable(division_calc_callback):
            raise TypeError("division_calc_callback must be callable")
        if not callable(all_calc_callback):
            raise TypeError("all_calc_callback must be callable")

        # Allow re-registration (useful for testing), but log a warning
        if self._division_calc_callback is not None or self._all_calc_callback is not None:
            logger.warning("Re-registering recalculation callbacks (previous callbacks will be replaced)")

        self._division_calc_callback = division_calc_callback
        self._all_calc_callback = all_calc_callback
        logger.info("Standings recalculation callbacks registered successfully")

    async def _run_calculation(self, job_id: int) -> None:
        """Run a recalculation job and record its outcome on the job row."""
        async with db.AsyncSessionLocal() as session:
            result = await session.execute(
                select(StandingsRecalculationJob).where(StandingsRecalculationJob.id == job_id)
            )
            job = result.scalar_one_or_none()
            if not job:
                return
            calc_type, division_id, season_id = job.calc_type, job.division_id, job.season_id

            try:
                if self._division_calc_callback is None or self._all_calc_callback is None:
                    raise RuntimeError(
                        "Recalculation callbacks not registered. "
                        "Call register_calculation_callbacks() before starting the queue worker."
                    )

                if calc_type == CALC_TYPE_DIVISION:
                    await self._division_calc_callback(session, division_id, season_id)
                elif calc_type == CALC_TYPE_ALL:
                    await self._all_calc_callback(db.AsyncSessionLocal)
                else:
                    raise ValueError(f"Unknown calc_type: {calc_type}")

                await session.execute(
                    update(StandingsRecalculationJob)
                    .where(StandingsRecalculationJob.id == job_id)
                    .values(
                        status=RecalculationJobStatus.COMPLETED,
                        completed_at=utcnow(),
                    )
                )
                await session.commit()
                logger.info(f"Recalculation job {job_id} ({calc_type}) completed")

            except asyncio.CancelledError:
                # Put the job back so the key is not left looking busy
                await session.rollback()
                await session.execute(
                    update(StandingsRecalculationJob)
                    .where(StandingsRecalculationJob.id == job_id)
                    .values(status=RecalculationJobStatus.PENDING, started_at=None)
                )
                await session.commit()
                logger.warning(f"Recalculation job {job_id} ({calc_type}) cancelled, requeued as pending")
                raise

            except Exception as e:
                await session.rollback()
                await session.execute(
                    update(StandingsRecalculationJob)
                    .where(StandingsRecalculationJob.id == job_id)
                    .values(
                        status=RecalculationJobStatus.FAILED,
                        completed_at=utcnow(),
                        error_message=str(e),
                    )
                )
                await session.commit()
                logger.error(f"Recalculation job {job_id} ({calc_type}) failed: {e}", exc_info=True)

    async def recover_interrupted_jobs(self, session: AsyncSession) -> int:
        """
        Requeue jobs left running by a previous process.

        Called once at startup, before the worker starts; a single worker per
        deployment is assumed.

        Returns:
            Number of jobs moved back to pending
        """
        result = await session.execute(
            update(StandingsRecalculationJob)
            .where(StandingsRecalculationJob.status == RecalculationJobStatus.RUNNING)
            .values(status=RecalculationJobStatus.PENDING, started_at=None)
        )
        await session.commit()
        recovered = result.rowcount or 0
        if recovered:
            logger.warning(f"Requeued {recovered} interrupted recalculation job(s)")
        return recovered

    async def _process_queue_worker(self) -> None:
        """Background worker that processes pending jobs."""
        while not self._stop_event.is_set():
            try:
                async with db.AsyncSessionLocal() as session:
                    job = await self._get_next_runnable_job(session)
                    if job:
                        job_id = job.id
                        await session.execute(
                            update(StandingsRecalculationJob)
                            .where(StandingsRecalculationJob.id == job_id)
                            .values(
                                status=RecalculationJobStatus.RUNNING,
                                started_at=utcnow(),
                            )
                        )
                        await session.commit()

                if job:
                    # Run calculation (it will create its own session)
                    await self._run_calculation(job_id)
                else:
                    await asyncio.sleep(1)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Keep the worker alive; the next poll retries
                logger.error(f"Error in recalculation queue worker: {e}", exc_info=True)
                await asyncio.sleep(5)

    def _job_summary(self, job: StandingsRecalculationJob) -> Dict:
        return {
            "id": job.id,
            "calc_type": job.calc_type,
            "division_id": job.division_id,
            "season_id": job.season_id,
        }

    async def get_queue_status(self, session: AsyncSession) -> Dict:
        """Get current queue status."""
        running = await self._get_jobs(session, RecalculationJobStatus.RUNNING)
        pending = await self._get_jobs(session, RecalculationJobStatus.PENDING)

        # Get recent completed jobs (last 10)
        result = await session.execute(
            select(StandingsRecalculationJob)
            .where(StandingsRecalculationJob.status == RecalculationJobStatus.COMPLETED)
            .order_by(StandingsRecalculationJob.id.desc())
            .limit(10)
        )
        recent_completed = result.scalars().all()

        # Get recent failed jobs (last 10)
        result = await session.execute(
            select(StandingsRecalculationJob)
            .where(StandingsRecalculationJob.status == RecalculationJobStatus.FAILED)
            .order_by(StandingsRecalculationJob.id.desc())
            .limit(10)
        )
        recent_failed = result.scalars().all()

        return {
            "running": [
                {**self._job_summary(j), "started_at": _isoformat(j.started_at)}
                for j in running
            ],
            "pending": [
                {**self._job_summary(j), "created_at": _isoformat(j.created_at)}
                for j in pending
            ],
            "recent_completed": [
                {**self._job_summary(j), "completed_at": _isoformat(j.completed_at)}
                for j in recent_completed
            ],
            "recent_failed": [
                {
                    **self._job_summary(j),
                    "error_message": j.error_message,
                    "completed_at": _isoformat(j.completed_at),
                }
                for j in recent_failed
            ],
        }

    async def get_job_status(self, session: AsyncSession, job_id: int) -> Optional[Dict]:
        """Get status of a specific job."""
        result = await session.execute(
            select(StandingsRecalculationJob).where(StandingsRecalculationJob.id == job_id)
        )
        job = result.scalar_one_or_none()
        if not job:
            return None

        return {
            **self._job_summary(job),
            "status": job.status.value,
            "created_at": _isoformat(job.created_at),
            "started_at": _isoformat(job.started_at),
            "completed_at": _isoformat(job.completed_at),
            "error_message": job.error_message,
        }

    def start_background_worker(self) -> None:
        """Start the background worker."""
        if self._worker_task is None or self._worker_task.done():
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._process_queue_worker())

    def stop_background_worker(self) -> None:
        """Stop the background worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()


# Global queue instance
_recalculation_queue = StandingsRecalculationQueue()


def get_recalculation_queue() -> StandingsRecalculationQueue:
    """Get the global recalculation queue instance."""
    return _recalculation_queue
