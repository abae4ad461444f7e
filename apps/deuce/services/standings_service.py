"""
Division standings recalculation and reads.

A recalculation is scoped to one division+season:
1. Batch-load match results, standings rows and player names (three queries)
2. Run Best 6 selection and aggregation per player in memory
3. Rank every player with the tiebreak pipeline
4. Write result flags and standings rows, then commit

Everything is calculated before the first write, and a failure rolls the
whole division back so the previous standings stay visible.
"""

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, union
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from deuce.database import db
from deuce.database.models import (
    DivisionStanding,
    Division,
    Match,
    MatchResult,
    MatchStatus,
    Player,
)
from deuce.services.match_result_service import get_season_config
from deuce.services.result_selection import ResultEntry, select_best6
from deuce.services.standings_aggregator import aggregate_player
from deuce.services.tiebreak_service import PlayerMetrics, rank_players
from deuce.utils.constants import RECALC_MAX_ATTEMPTS, StandingsConfig
from deuce.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

UNKNOWN_PLAYER_NAME = "Unknown"

DivisionKey = Tuple[int, int]


class KeyedLocks:
    """One asyncio.Lock per key, discarded once no task holds or waits for it."""

    def __init__(self):
        self._locks: Dict[Any, asyncio.Lock] = {}
        self._users: Dict[Any, int] = {}

    @asynccontextmanager
    async def hold(self, key):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]


# Serializes recalculations of the same division+season within this process
_division_locks = KeyedLocks()


# ============================================================================
# Display Formatting
# ============================================================================

def format_record(wins: int, losses: int) -> str:
    return f"{wins}W-{losses}L"


def format_results_counted(counted_wins: int, counted_losses: int) -> str:
    """'4W + 2L' when losses are counted, else '6 wins'."""
    if counted_losses > 0:
        return f"{counted_wins}W + {counted_losses}L"
    return f"{counted_wins} wins"


def format_percentage(won: int, total: int) -> str:
    """One-decimal percentage, or 'N/A' when there is nothing to measure."""
    if total <= 0:
        return "N/A"
    return f"{(won / total) * 100:.1f}%"


def format_standing(standing: DivisionStanding, player_name: Optional[str]) -> Dict:
    """Shape a standings row for display."""
    return {
        "rank": standing.rank,
        "player_id": standing.player_id,
        "player_name": player_name or UNKNOWN_PLAYER_NAME,
        "total_points": standing.total_points,
        "record": format_record(standing.wins, standing.losses),
        "matches_played": standing.matches_played,
        "results_counted": format_results_counted(standing.counted_wins, standing.counted_losses),
        "sets_won": standing.sets_won,
        "sets_lost": standing.sets_lost,
        "set_win_pct": format_percentage(standing.best6_sets_won, standing.best6_sets_total),
        "games_won": standing.games_won,
        "games_lost": standing.games_lost,
        "game_win_pct": format_percentage(standing.best6_games_won, standing.best6_games_total),
    }


# ============================================================================
# Loading
# ============================================================================

def to_result_entry(row: MatchResult) -> ResultEntry:
    return ResultEntry(
        result_id=row.id,
        match_id=row.match_id,
        opponent_id=row.opponent_id,
        date_played=row.date_played,
        is_win=row.is_win,
        match_points=row.match_points,
        margin=row.margin,
        sets_won=row.sets_won,
        sets_lost=row.sets_lost,
        games_won=row.games_won,
        games_lost=row.games_lost,
    )


async def load_division_results(
    session: AsyncSession, division_id: int, season_id: int
) -> List[MatchResult]:
    """All results of completed matches in a division+season."""
    result = await session.execute(
        select(MatchResult)
        .join(Match, Match.id == MatchResult.match_id)
        .where(
            MatchResult.division_id == division_id,
            MatchResult.season_id == season_id,
            Match.status == MatchStatus.COMPLETED,
        )
        .order_by(MatchResult.id)
    )
    return list(result.scalars().all())


async def load_division_standings(
    session: AsyncSession, division_id: int, season_id: int
) -> Dict[int, DivisionStanding]:
    """Existing standings rows keyed by player ID."""
    result = await session.execute(
        select(DivisionStanding).where(
            DivisionStanding.division_id == division_id,
            DivisionStanding.season_id == season_id,
        )
    )
    return {row.player_id: row for row in result.scalars().all()}


async def load_player_names(session: AsyncSession, player_ids: Iterable[int]) -> Dict[int, str]:
    ids = list(set(player_ids))
    if not ids:
        return {}
    result = await session.execute(
        select(Player.id, Player.full_name).where(Player.id.in_(ids))
    )
    return {player_id: name for player_id, name in result.all()}


# ============================================================================
# Recalculation
# ============================================================================

async def _recalculate_once(
    session: AsyncSession,
    division_id: int,
    season_id: int,
    config: Optional[StandingsConfig],
) -> Dict:
    if config is None:
        config = await get_season_config(session, season_id)

    result_rows = await load_division_results(session, division_id, season_id)
    standings = await load_division_standings(session, division_id, season_id)

    rows_by_player: Dict[int, List[MatchResult]] = defaultdict(list)
    for row in result_rows:
        rows_by_player[row.player_id].append(row)

    # Players with a standings row but no remaining results are ranked on zeros
    player_ids = sorted(set(rows_by_player) | set(standings))
    names = await load_player_names(session, player_ids)

    # Calculate everything in memory before the first write
    sequences: Dict[int, Optional[int]] = {}
    aggregates = {}
    metrics = []
    for player_id in player_ids:
        entries = [to_result_entry(row) for row in rows_by_player.get(player_id, [])]
        selection = select_best6(entries, config)
        aggregate = aggregate_player(entries, selection.counted_results)

        sequences.update(selection.sequences())
        aggregates[player_id] = aggregate
        metrics.append(PlayerMetrics(
            player_id=player_id,
            name=names.get(player_id, UNKNOWN_PLAYER_NAME),
            total_points=aggregate.total_points,
            set_win_pct=aggregate.set_win_pct,
            game_win_pct=aggregate.game_win_pct,
            head_to_head=aggregate.head_to_head,
        ))

    ranked = rank_players(metrics)

    # Write phase
    for row in result_rows:
        sequence = sequences.get(row.id)
        row.counts_for_standings = sequence is not None
        row.result_sequence = sequence

    calculated_at = utcnow()
    for ranked_player in ranked:
        player_id = ranked_player.player_id
        aggregate = aggregates[player_id]
        standing = standings.get(player_id)
        if standing is None:
            standing = DivisionStanding(
                player_id=player_id,
                division_id=division_id,
                season_id=season_id,
            )
            session.add(standing)

        standing.rank = ranked_player.rank
        standing.wins = aggregate.wins
        standing.losses = aggregate.losses
        standing.matches_played = aggregate.matches_played
        standing.counted_wins = aggregate.counted_wins
        standing.counted_losses = aggregate.counted_losses
        standing.total_points = aggregate.total_points
        standing.sets_won = aggregate.sets_won
        standing.sets_lost = aggregate.sets_lost
        standing.games_won = aggregate.games_won
        standing.games_lost = aggregate.games_lost
        standing.best6_sets_won = aggregate.best6_sets_won
        standing.best6_sets_total = aggregate.best6_sets_total
        standing.best6_games_won = aggregate.best6_games_won
        standing.best6_games_total = aggregate.best6_games_total
        standing.head_to_head = aggregate.head_to_head_json()
        standing.last_calculated_at = calculated_at

    await session.flush()

    return {
        "division_id": division_id,
        "season_id": season_id,
        "player_count": len(ranked),
        "result_count": len(result_rows),
    }


async def recalculate_division_standings(
    session: AsyncSession,
    division_id: int,
    season_id: int,
    config: Optional[StandingsConfig] = None,
    max_attempts: int = RECALC_MAX_ATTEMPTS,
) -> Dict:
    """
    Recalculate Best 6 flags, aggregates and ranks for one division+season.

    Runs under a per-division lock so two recalculations of the same key never
    interleave. Transient database errors roll back and retry the whole
    recalculation; any other error rolls back and propagates.

    Args:
        session: Database session (committed on success)
        division_id: Division ID
        season_id: Season ID
        config: Scoring configuration (defaults to the season's configuration)
        max_attempts: Attempts before an OperationalError is re-raised

    Returns:
        Dict with division_id, season_id, player_count and result_count
    """
    async with _division_locks.hold((division_id, season_id)):
        attempt = 0
        while True:
            attempt += 1
            try:
                logger.info(
                    f"Recalculating standings for division {division_id}, season {season_id} "
                    f"(attempt {attempt})"
                )
                summary = await _recalculate_once(session, division_id, season_id, config)
                await session.commit()
                logger.info(
                    f"Standings recalculated for division {division_id}, season {season_id}: "
                    f"{summary['player_count']} players, {summary['result_count']} results"
                )
                return summary
            except OperationalError as e:
                await session.rollback()
                if attempt >= max_attempts:
                    logger.error(
                        f"Standings recalculation for division {division_id}, season {season_id} "
                        f"failed after {attempt} attempts: {e}"
                    )
                    raise
                logger.warning(
                    f"Transient error recalculating division {division_id}, season {season_id}, "
                    f"retrying: {e}"
                )
            except Exception:
                await session.rollback()
                raise


async def get_division_keys(session: AsyncSession) -> List[DivisionKey]:
    """Every division+season key that has a division row or match results."""
    query = union(
        select(Division.id, Division.season_id),
        select(MatchResult.division_id, MatchResult.season_id).distinct(),
    )
    result = await session.execute(query)
    return sorted({(division_id, season_id) for division_id, season_id in result.all()})


async def recalculate_all_divisions(session_factory: Optional[Callable] = None) -> Dict:
    """
    Recalculate standings for every division+season.

    Each key runs in its own session and transaction. A failing division is
    logged and reported without stopping the others.

    Args:
        session_factory: Callable returning an AsyncSession context manager
            (defaults to db.AsyncSessionLocal)

    Returns:
        Dict with division_count, succeeded and failed lists
    """
    session_factory = session_factory or db.AsyncSessionLocal

    async with session_factory() as session:
        keys = await get_division_keys(session)

    succeeded = []
    failed = []
    for division_id, season_id in keys:
        try:
            async with session_factory() as session:
                summary = await recalculate_division_standings(session, division_id, season_id)
            succeeded.append(summary)
        except Exception as e:
            logger.error(
                f"Failed to recalculate standings for division {division_id}, season {season_id}: {e}",
                exc_info=True,
            )
            failed.append({"division_id": division_id, "season_id": season_id, "error": str(e)})

    logger.info(
        f"Recalculated {len(succeeded)} of {len(keys)} divisions ({len(failed)} failed)"
    )
    return {"division_count": len(keys), "succeeded": succeeded, "failed": failed}


def register_recalculation_callbacks() -> None:
    """
    Register the recalculation functions with the recalculation queue.

    Called during application startup, before the queue worker starts.
    """
    from deuce.services.recalc_queue import get_recalculation_queue
    queue = get_recalculation_queue()
    queue.register_calculation_callbacks(
        division_calc_callback=recalculate_division_standings,
        all_calc_callback=recalculate_all_divisions,
    )


# ============================================================================
# Reads
# ============================================================================

async def get_division_standings(session: AsyncSession, division_id: int, season_id: int) -> List[Dict]:
    """Standings of a division+season in rank order (empty when nothing is ranked yet)."""
    result = await session.execute(
        select(DivisionStanding, Player.full_name)
        .outerjoin(Player, Player.id == DivisionStanding.player_id)
        .where(
            DivisionStanding.division_id == division_id,
            DivisionStanding.season_id == season_id,
        )
        .order_by(DivisionStanding.rank.asc(), DivisionStanding.player_id.asc())
    )
    return [format_standing(standing, name) for standing, name in result.all()]


async def get_player_standing(
    session: AsyncSession, division_id: int, season_id: int, player_id: int
) -> Optional[Dict]:
    """One player's standing in a division+season, or None."""
    result = await session.execute(
        select(DivisionStanding, Player.full_name)
        .outerjoin(Player, Player.id == DivisionStanding.player_id)
        .where(
            DivisionStanding.division_id == division_id,
            DivisionStanding.season_id == season_id,
            DivisionStanding.player_id == player_id,
        )
    )
    row = result.first()
    if not row:
        return None
    standing, name = row
    return format_standing(standing, name)


def _composition_order(row: MatchResult) -> Tuple:
    # Counted results first by sequence, then the rest by play date
    return (
        not row.counts_for_standings,
        row.result_sequence or 0,
        ensure_utc(row.date_played),
        row.match_id,
    )


async def get_best6_composition(
    session: AsyncSession, player_id: int, division_id: int, season_id: int
) -> Dict:
    """
    Best 6 composition of a player: totals plus every result with its counted flag.

    Results are ordered counted-first by sequence, then uncounted by play date.
    """
    opponent = aliased(Player)
    result = await session.execute(
        select(MatchResult, opponent.full_name)
        .join(Match, Match.id == MatchResult.match_id)
        .outerjoin(opponent, opponent.id == MatchResult.opponent_id)
        .where(
            MatchResult.player_id == player_id,
            MatchResult.division_id == division_id,
            MatchResult.season_id == season_id,
            Match.status == MatchStatus.COMPLETED,
        )
    )
    rows = sorted(result.all(), key=lambda r: _composition_order(r[0]))

    all_results = [r for r, _ in rows]
    counted = [r for r in all_results if r.counts_for_standings]
    total_wins = sum(1 for r in all_results if r.is_win)
    counted_wins = sum(1 for r in counted if r.is_win)

    return {
        "player_id": player_id,
        "division_id": division_id,
        "season_id": season_id,
        "total_matches": len(all_results),
        "total_wins": total_wins,
        "total_losses": len(all_results) - total_wins,
        "counted_wins": counted_wins,
        "counted_losses": len(counted) - counted_wins,
        "total_points": sum(r.match_points for r in counted),
        "results": [
            {
                "match_id": r.match_id,
                "opponent_id": r.opponent_id,
                "opponent_name": opponent_name or UNKNOWN_PLAYER_NAME,
                "is_win": r.is_win,
                "match_points": r.match_points,
                "margin": r.margin,
                "date_played": ensure_utc(r.date_played).isoformat(),
                "sequence": r.result_sequence,
                "counted": r.counts_for_standings,
            }
            for r, opponent_name in rows
        ],
    }


def summarize_composition(composition: Dict, config: StandingsConfig) -> Dict:
    """
    Headline figures of a Best 6 composition.

    best_possible assumes every open counted slot is filled by a straight-sets win.
    """
    league_points = composition["total_points"]
    open_slots = max(0, config.max_counted_results - composition["counted_wins"])
    return {
        "record": format_record(composition["total_wins"], composition["total_losses"]),
        "league_points": league_points,
        "best_possible": league_points + open_slots * config.max_match_points,
        "results_counted": format_results_counted(
            composition["counted_wins"], composition["counted_losses"]
        ),
        "matches_remaining": max(0, config.scheduled_matches - composition["total_matches"]),
    }


async def get_player_summary(
    session: AsyncSession,
    player_id: int,
    division_id: int,
    season_id: int,
    config: Optional[StandingsConfig] = None,
) -> Dict:
    """Record, league points, best possible and results counted for one player."""
    if config is None:
        config = await get_season_config(session, season_id)
    composition = await get_best6_composition(session, player_id, division_id, season_id)
    return summarize_composition(composition, config)
