#!/usr/bin/env python3
"""
Recalculate division standings.

This script:
1. Recalculates one division+season (--division-id and --season-id), or every division
2. Provides progress feedback and summary statistics
3. Prints the top of the updated standings

Usage:
    python scripts/recalculate_standings.py
    python scripts/recalculate_standings.py --division-id 12 --season-id 3
"""

import argparse
import asyncio
import os
import sys

# Add apps to path (so deuce.* imports work)
# This mirrors the Docker setup where PYTHONPATH=/app and deuce is at /app/deuce
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
apps_path = os.path.join(project_root, "apps")
sys.path.insert(0, apps_path)

from deuce.database.db import AsyncSessionLocal  # noqa: E402
from deuce.services import standings_service  # noqa: E402


async def print_standings(division_id: int, season_id: int, limit: int = 20):
    """Print the top of a division's standings."""
    async with AsyncSessionLocal() as session:
        standings = await standings_service.get_division_standings(session, division_id, season_id)

    print(f"\n📊 Division {division_id}, season {season_id}")
    print("Rank | Player            | P  | Record  | Pts | Counted")
    print("-----|-------------------|----|---------|-----|--------")
    for row in standings[:limit]:
        name = row["player_name"][:17].ljust(17)
        print(
            f"{row['rank']:>4} | {name} | {row['matches_played']:>2} | "
            f"{row['record']:<7} | {row['total_points']:>3} | {row['results_counted']}"
        )


async def recalculate_one(division_id: int, season_id: int) -> bool:
    """Recalculate a single division+season. Returns True on success."""
    print("=" * 60)
    print(f"🔄 Recalculating standings for division {division_id}, season {season_id}")
    print("=" * 60)

    async with AsyncSessionLocal() as session:
        try:
            result = await standings_service.recalculate_division_standings(
                session, division_id, season_id
            )
        except Exception as e:
            print(f"❌ Error: {str(e)}")
            return False

    print(f"✓ Success: {result['player_count']} players, {result['result_count']} results")
    await print_standings(division_id, season_id)
    return True


async def recalculate_all() -> bool:
    """Recalculate every division+season. Returns True when none failed."""
    print("=" * 60)
    print("🔄 Recalculating standings for all divisions...")
    print("=" * 60)

    summary = await standings_service.recalculate_all_divisions(AsyncSessionLocal)

    for result in summary["succeeded"]:
        print(
            f"   ✓ Division {result['division_id']}, season {result['season_id']}: "
            f"{result['player_count']} players, {result['result_count']} results"
        )

    # Summary
    print("=" * 60)
    print("📊 Summary")
    print("=" * 60)
    print(f"Total divisions: {summary['division_count']}")
    print(f"✅ Successful: {len(summary['succeeded'])}")
    print(f"❌ Failed: {len(summary['failed'])}")

    if summary["failed"]:
        print("\nFailed divisions:")
        for failure in summary["failed"]:
            print(
                f"  - Division {failure['division_id']}, season {failure['season_id']}: "
                f"{failure['error']}"
            )
        print("\n❌ Some recalculations failed")
        return False

    print("\n✅ All recalculations complete!")
    return True


def main():
    parser = argparse.ArgumentParser(description="Recalculate division standings")
    parser.add_argument("--division-id", type=int, help="Division ID to recalculate", default=None)
    parser.add_argument("--season-id", type=int, help="Season ID of the division", default=None)
    args = parser.parse_args()

    if (args.division_id is None) != (args.season_id is None):
        parser.error("--division-id and --season-id must be given together")

    if args.division_id is not None:
        ok = asyncio.run(recalculate_one(args.division_id, args.season_id))
    else:
        ok = asyncio.run(recalculate_all())

    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
