"""
Constants and scoring configuration for the standings engine.
"""

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Optional


# Recalculation constants
RECALC_MAX_ATTEMPTS = int(os.getenv("RECALC_MAX_ATTEMPTS", "3"))
STANDINGS_UNAVAILABLE_MESSAGE = "Standings temporarily unavailable for this division"


@dataclass(frozen=True)
class StandingsConfig:
    """Point weights and result caps used by the calculator and Best 6 selection."""

    participation_points: int = 1
    win_bonus_points: int = 2
    max_counted_results: int = 6
    sets_to_win: int = 2  # Also credited to a walkover winner
    walkover_games: int = 12  # Games credited to the walkover winner
    scheduled_matches: int = 9

    @property
    def max_match_points(self) -> int:
        """Points for a straight-sets win (participation + sets + bonus)."""
        return self.participation_points + self.sets_to_win + self.win_bonus_points

    @classmethod
    def from_json(cls, raw: Optional[str], base: Optional["StandingsConfig"] = None) -> "StandingsConfig":
        """
        Build a config from a season's JSON override, falling back to ``base``.

        Args:
            raw: JSON object string, e.g. '{"max_counted_results": 8}', or None
            base: Config supplying defaults for keys not present in ``raw``

        Raises:
            ValueError: If the JSON is not an object, has unknown keys or non-integer values
        """
        base = base or DEFAULT_STANDINGS_CONFIG
        if not raw:
            return base

        overrides = json.loads(raw)
        if not isinstance(overrides, dict):
            raise ValueError("standings_config must be a JSON object")

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown standings_config keys: {', '.join(sorted(unknown))}")

        for key, value in overrides.items():
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"standings_config.{key} must be a non-negative integer")

        return replace(base, **overrides)


DEFAULT_STANDINGS_CONFIG = StandingsConfig()
