"""
Tests for the match completed/voided hooks.
"""

import pytest
from sqlalchemy import select

from deuce.database.models import Match, MatchResult, MatchStatus
from deuce.services import match_events
from deuce.services.match_events import on_match_completed, on_match_voided
from deuce.services.match_result_service import MatchNotCompletedError, MatchNotFoundError
from deuce.services.recalc_queue import StandingsRecalculationQueue
from deuce.tests.factories import BASE_DATE, create_division, create_match, create_players


@pytest.fixture
def queue(monkeypatch):
    """Queue used by the hooks; jobs are created but never run."""
    queue = StandingsRecalculationQueue()
    monkeypatch.setattr(queue, "_start_task", lambda job_id: None)
    monkeypatch.setattr(match_events, "get_recalculation_queue", lambda: queue)
    return queue


async def result_count(session, match_id):
    result = await session.execute(select(MatchResult).where(MatchResult.match_id == match_id))
    return len(result.scalars().all())


@pytest.mark.asyncio
async def test_completed_match_creates_results_and_queues_job(db_session, session_factory, queue):
    division = await create_division(db_session)
    alice, bob = await create_players(db_session, ["Alice", "Bob"])
    match = await create_match(db_session, division, [alice.id], [bob.id])
    await db_session.commit()

    response = await on_match_completed(db_session, match.id)

    assert response["match_id"] == match.id
    assert response["results_created"] == 2
    assert response["job_id"] is not None
    async with session_factory() as session:
        assert await result_count(session, match.id) == 2
        job = await queue.get_job_status(session, response["job_id"])
    assert (job["division_id"], job["season_id"]) == (division.id, division.season_id)


@pytest.mark.asyncio
async def test_completing_twice_creates_no_duplicate_results(db_session, queue):
    division = await create_division(db_session)
    alice, bob = await create_players(db_session, ["Alice", "Bob"])
    match = await create_match(db_session, division, [alice.id], [bob.id])
    await db_session.commit()

    first = await on_match_completed(db_session, match.id)
    second = await on_match_completed(db_session, match.id)
    third = await on_match_completed(db_session, match.id)

    assert second["results_created"] == 0
    assert await result_count(db_session, match.id) == 2
    # First job is still running: one follow-up is queued and reused
    assert second["job_id"] != first["job_id"]
    assert third["job_id"] == second["job_id"]


@pytest.mark.asyncio
async def test_completed_hook_rejects_scheduled_match(db_session, queue):
    division = await create_division(db_session)
    alice, bob = await create_players(db_session, ["Alice", "Bob"])
    match = await create_match(db_session, division, [alice.id], [bob.id], status=MatchStatus.SCHEDULED)
    await db_session.commit()
    # The rejected call rolls back and expires the instance
    match_id = match.id

    with pytest.raises(MatchNotCompletedError):
        await on_match_completed(db_session, match_id)
    assert await result_count(db_session, match_id) == 0


@pytest.mark.asyncio
async def test_completed_hook_without_division_queues_nothing(db_session, queue):
    match = Match(status=MatchStatus.COMPLETED, match_date=BASE_DATE)
    db_session.add(match)
    await db_session.commit()

    response = await on_match_completed(db_session, match.id)

    assert response == {"match_id": match.id, "results_created": 0, "job_id": None}


@pytest.mark.asyncio
async def test_voided_match_deletes_results(db_session, session_factory, queue):
    division = await create_division(db_session)
    alice, bob = await create_players(db_session, ["Alice", "Bob"])
    match = await create_match(db_session, division, [alice.id], [bob.id])
    await db_session.commit()
    await on_match_completed(db_session, match.id)

    response = await on_match_voided(db_session, match.id)

    assert response["results_deleted"] == 2
    assert response["job_id"] is not None
    async with session_factory() as session:
        assert await result_count(session, match.id) == 0
        stored = await session.get(Match, match.id)
        assert stored.status == MatchStatus.VOIDED


@pytest.mark.asyncio
async def test_voiding_unknown_match(db_session, queue):
    with pytest.raises(MatchNotFoundError):
        await on_match_voided(db_session, 4242)
