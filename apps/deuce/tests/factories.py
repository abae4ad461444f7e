"""
Test data builders for database-backed tests.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Tuple

import pytz
from sqlalchemy.ext.asyncio import AsyncSession

from deuce.database.models import (
    Division,
    Match,
    MatchParticipant,
    MatchSetScore,
    MatchStatus,
    MatchType,
    Player,
    Season,
    SportType,
)

BASE_DATE = datetime(2025, 3, 1, 18, 0, tzinfo=pytz.UTC)


async def create_players(session: AsyncSession, names: Sequence[str]) -> List[Player]:
    players = [Player(full_name=name) for name in names]
    session.add_all(players)
    await session.flush()
    return players


async def create_division(
    session: AsyncSession,
    name: str = "Division A",
    match_type: MatchType = MatchType.SINGLES,
    sport: SportType = SportType.TENNIS,
    standings_config: Optional[str] = None,
) -> Division:
    season = Season(
        name="Spring 2025",
        start_date=date(2025, 3, 1),
        end_date=date(2025, 6, 30),
        standings_config=standings_config,
    )
    session.add(season)
    await session.flush()

    division = Division(season_id=season.id, name=name, sport=sport, match_type=match_type)
    session.add(division)
    await session.flush()
    return division


async def create_match(
    session: AsyncSession,
    division: Division,
    team1: Sequence[int],
    team2: Sequence[int],
    sets: Sequence[Tuple[int, int]] = ((6, 2), (6, 2)),
    day: int = 0,
    status: MatchStatus = MatchStatus.COMPLETED,
) -> Match:
    """Create a set-scored match; team 1 participants are listed first."""
    match = Match(
        division_id=division.id,
        season_id=division.season_id,
        sport=division.sport,
        match_type=division.match_type,
        status=status,
        match_date=BASE_DATE + timedelta(days=day),
    )
    session.add(match)
    await session.flush()

    labelled = division.match_type == MatchType.DOUBLES
    for player_id in team1:
        session.add(MatchParticipant(
            match_id=match.id, player_id=player_id, team="team1" if labelled else None
        ))
    for player_id in team2:
        session.add(MatchParticipant(
            match_id=match.id, player_id=player_id, team="team2" if labelled else None
        ))
    for number, (games1, games2) in enumerate(sets, start=1):
        session.add(MatchSetScore(
            match_id=match.id, set_number=number, team1_games=games1, team2_games=games2
        ))
    await session.flush()
    return match
