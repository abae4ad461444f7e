"""
SQLAlchemy ORM models for the DEUCE league standings system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from deuce.database.db import Base


class SportType(str, enum.Enum):
    """Sport played in a division."""

    TENNIS = "tennis"
    PADEL = "padel"
    PICKLEBALL = "pickleball"


class MatchType(str, enum.Enum):
    """Singles or doubles."""

    SINGLES = "singles"
    DOUBLES = "doubles"


class MatchStatus(str, enum.Enum):
    """Match lifecycle status (owned by the match workflow)."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    VOIDED = "voided"


class Set3Format(str, enum.Enum):
    """How a deciding third set is played."""

    MATCH_TIEBREAK = "match_tiebreak"
    FULL_SET = "full_set"


# JSON on every backend, JSONB on PostgreSQL
JSONType = JSON().with_variant(JSONB, "postgresql")


class Player(Base):
    """League players."""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_players_full_name", "full_name"),)


class Season(Base):
    """League seasons."""

    __tablename__ = "seasons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    standings_config = Column(Text, nullable=True)  # JSON overrides of StandingsConfig fields
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    divisions = relationship("Division", back_populates="season")


class Division(Base):
    """Divisions within a season; standings are ranked per division+season."""

    __tablename__ = "divisions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=False)
    name = Column(String, nullable=False)
    sport = Column(Enum(SportType), default=SportType.TENNIS, nullable=False)
    match_type = Column(Enum(MatchType), default=MatchType.SINGLES, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    season = relationship("Season", back_populates="divisions")

    __table_args__ = (Index("idx_divisions_season", "season_id"),)


class Match(Base):
    """Matches supplied by the match lifecycle workflow."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    division_id = Column(Integer, ForeignKey("divisions.id"), nullable=True)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=True)
    sport = Column(Enum(SportType), default=SportType.TENNIS, nullable=False)
    match_type = Column(Enum(MatchType), default=MatchType.SINGLES, nullable=False)
    status = Column(Enum(MatchStatus), default=MatchStatus.SCHEDULED, nullable=False)
    match_date = Column(DateTime(timezone=True), nullable=False)
    set3_format = Column(Enum(Set3Format), default=Set3Format.MATCH_TIEBREAK, nullable=False)
    is_walkover = Column(Boolean, default=False, nullable=False)
    team1_score = Column(Integer, nullable=True)  # Walkover only
    team2_score = Column(Integer, nullable=True)  # Walkover only
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    division = relationship("Division")
    participants = relationship(
        "MatchParticipant",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchParticipant.id",
    )
    set_scores = relationship(
        "MatchSetScore",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchSetScore.set_number",
    )
    game_scores = relationship(
        "MatchGameScore",
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MatchGameScore.game_number",
    )
    results = relationship("MatchResult", back_populates="match", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_matches_division_season", "division_id", "season_id"),
        Index("idx_matches_status", "status"),
        Index("idx_matches_date", "match_date"),
    )


class MatchParticipant(Base):
    """Players in a match with their team assignment (listed order is significant)."""

    __tablename__ = "match_participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    team = Column(String(10), nullable=True)  # 'team1' / 'team2', NULL when unassigned

    match = relationship("Match", back_populates="participants")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_participants_match_player"),
        Index("idx_match_participants_match", "match_id"),
    )


class MatchSetScore(Base):
    """Set scores for tennis/padel matches."""

    __tablename__ = "match_set_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    set_number = Column(Integer, nullable=False)
    team1_games = Column(Integer, nullable=False)
    team2_games = Column(Integer, nullable=False)
    team1_tiebreak = Column(Integer, nullable=True)
    team2_tiebreak = Column(Integer, nullable=True)

    match = relationship("Match", back_populates="set_scores")

    __table_args__ = (
        UniqueConstraint("match_id", "set_number", name="uq_match_set_scores_match_set"),
    )


class MatchGameScore(Base):
    """Game scores for pickleball matches."""

    __tablename__ = "match_game_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    game_number = Column(Integer, nullable=False)
    team1_points = Column(Integer, nullable=False)
    team2_points = Column(Integer, nullable=False)

    match = relationship("Match", back_populates="game_scores")

    __table_args__ = (
        UniqueConstraint("match_id", "game_number", name="uq_match_game_scores_match_game"),
    )


class MatchResult(Base):
    """One row per (match, player): the points breakdown and Best 6 flags."""

    __tablename__ = "match_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    opponent_id = Column(Integer, ForeignKey("players.id"), nullable=True)
    division_id = Column(Integer, ForeignKey("divisions.id"), nullable=False)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=False)
    date_played = Column(DateTime(timezone=True), nullable=False)
    is_win = Column(Boolean, nullable=False)
    participation_points = Column(Integer, nullable=False)
    sets_won_points = Column(Integer, nullable=False)
    win_bonus_points = Column(Integer, nullable=False)
    match_points = Column(Integer, nullable=False)
    margin = Column(Integer, nullable=False)
    sets_won = Column(Integer, default=0, nullable=False)
    sets_lost = Column(Integer, default=0, nullable=False)
    games_won = Column(Integer, default=0, nullable=False)
    games_lost = Column(Integer, default=0, nullable=False)
    counts_for_standings = Column(Boolean, default=False, nullable=False)
    result_sequence = Column(Integer, nullable=True)  # 1..N among counted results
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    match = relationship("Match", back_populates="results")
    player = relationship("Player", foreign_keys=[player_id])
    opponent = relationship("Player", foreign_keys=[opponent_id])

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_match_results_match_player"),
        CheckConstraint("match_points >= 0", name="check_match_results_points_non_negative"),
        Index("idx_match_results_division_season", "division_id", "season_id"),
        Index("idx_match_results_player", "player_id"),
    )


class DivisionStanding(Base):
    """One row per (player, division, season); fully rewritten on every recalculation."""

    __tablename__ = "division_standings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    division_id = Column(Integer, ForeignKey("divisions.id"), nullable=False)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=False)
    rank = Column(Integer, default=0, nullable=False)
    wins = Column(Integer, default=0, nullable=False)
    losses = Column(Integer, default=0, nullable=False)
    matches_played = Column(Integer, default=0, nullable=False)
    counted_wins = Column(Integer, default=0, nullable=False)
    counted_losses = Column(Integer, default=0, nullable=False)
    total_points = Column(Integer, default=0, nullable=False)
    sets_won = Column(Integer, default=0, nullable=False)
    sets_lost = Column(Integer, default=0, nullable=False)
    games_won = Column(Integer, default=0, nullable=False)
    games_lost = Column(Integer, default=0, nullable=False)
    best6_sets_won = Column(Integer, default=0, nullable=False)
    best6_sets_total = Column(Integer, default=0, nullable=False)
    best6_games_won = Column(Integer, default=0, nullable=False)
    best6_games_total = Column(Integer, default=0, nullable=False)
    head_to_head = Column(JSONType, nullable=False, default=dict)  # {opponent_id: {wins, losses}}, all matches
    last_calculated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    player = relationship("Player")
    division = relationship("Division")

    __table_args__ = (
        UniqueConstraint("player_id", "division_id", "season_id", name="uq_division_standings_player_key"),
        Index("idx_division_standings_division_season", "division_id", "season_id"),
    )


class RecalculationJobStatus(str, enum.Enum):
    """Standings recalculation job status enum."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class StandingsRecalculationJob(Base):
    """Queue for standings recalculation jobs."""

    __tablename__ = "standings_recalculation_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    calc_type = Column(String, nullable=False)  # 'division' or 'all'
    division_id = Column(Integer, ForeignKey("divisions.id"), nullable=True)
    season_id = Column(Integer, ForeignKey("seasons.id"), nullable=True)
    status = Column(
        Enum(RecalculationJobStatus), default=RecalculationJobStatus.PENDING, nullable=False
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_standings_recalculation_jobs_status", "status"),
        Index("idx_standings_recalculation_jobs_key", "calc_type", "division_id", "season_id"),
        Index("idx_standings_recalculation_jobs_created_at", "created_at"),
    )
